"""
Job lifecycle rules.

Everything here is a pure function of a Job instance, a few counts read by the
caller, and an explicit ``now``. Nothing in this module touches the database or
mutates its arguments; services apply the decisions inside a transaction.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from core.constants import PRE_START_WINDOW, NO_APPLICANTS_REASON, EXPIRED_REASON
from core.exceptions import InvalidTransition, CapacityExceeded, RedirectRequired

CENT = Decimal('0.01')

# action -> statuses the action may start from
ACTION_SOURCES = {
    'submit': {'draft'},
    'publish': {'draft', 'pending_payment'},
    'approve': {'pending_approval'},
    'select_worker': {'open', 'in_progress'},
    'pause': {'open'},
    'resume': {'paused'},
    'cancel': {'draft', 'pending_payment', 'pending_approval', 'open', 'paused', 'in_progress', 'suspended'},
    'change_budget': {'pending_approval', 'open', 'paused'},
    'confirm_budget_payment': {'paused'},
    'cancel_budget_change': {'paused'},
    'delete': {'draft', 'pending_payment'},
    'complete': {'in_progress'},
    'suspend': {'open'},
    'reactivate': {'suspended'},
    'auto_select': {'open'},
    'auto_cancel': {'open'},
    'auto_resume': {'paused'},
    'expire': {'open', 'paused', 'pending_approval'},
}

TRANSITIONS = {
    'draft': {'pending_payment', 'pending_approval', 'open', 'cancelled'},
    'pending_payment': {'pending_approval', 'open', 'cancelled'},
    'pending_approval': {'open', 'paused', 'cancelled'},
    'open': {'in_progress', 'paused', 'cancelled', 'suspended'},
    'in_progress': {'completed', 'cancelled'},
    'paused': {'open', 'pending_approval', 'cancelled'},
    'suspended': {'open', 'in_progress', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}

TERMINAL_STATUSES = {'completed', 'cancelled'}


def check_action(job, action):
    if job.status not in ACTION_SOURCES[action]:
        raise InvalidTransition(job.status, action)


def check_transition(current, target, action):
    if target not in TRANSITIONS.get(current, set()):
        raise InvalidTransition(current, action)


def time_until_start(job, now):
    return job.start_date - now


def selection_deadline(job):
    """Moment the 24h pre-start window opens."""
    return job.start_date - PRE_START_WINDOW


def is_before_deadline(job, now):
    return time_until_start(job, now) > PRE_START_WINDOW


def in_pre_start_window(job, now):
    return now >= selection_deadline(job)


def can_cancel(job, now):
    """
    Client-side cancellation is open until 24h before the start, from any
    non-terminal status. Jobs still pending approval can always be cancelled.

    Jobs with a worker under contract are refused by ``ensure_can_cancel``.
    """
    if job.status == 'pending_approval':
        return True
    if job.status in TERMINAL_STATUSES:
        return False
    return is_before_deadline(job, now)


def can_pause(job, now):
    return job.status in ACTION_SOURCES['pause'] and is_before_deadline(job, now)


def can_delete(job):
    return job.status in ACTION_SOURCES['delete']


def slots_remaining(job, selected_count):
    return max(job.max_workers - selected_count, 0)


def status_with_workers(selected_count):
    return 'in_progress' if selected_count > 0 else 'open'


def commission_for(amount, rate):
    return (Decimal(amount) * Decimal(rate)).quantize(CENT, rounding=ROUND_HALF_UP)


def ensure_can_cancel(job, now, active_contracts=0):
    check_action(job, 'cancel')
    if not can_cancel(job, now):
        raise InvalidTransition(
            job.status, 'cancel',
            "You cannot cancel the job less than 24 hours before it starts. Contact support if you need help.",
        )
    if active_contracts:
        raise InvalidTransition(job.status, 'cancel', "A worker is already under contract for this job")


def ensure_can_pause(job, now):
    check_action(job, 'pause')
    if not is_before_deadline(job, now):
        raise InvalidTransition(job.status, 'pause', "You cannot pause the job less than 24 hours before it starts.")


def ensure_can_select(job, selected_count):
    check_action(job, 'select_worker')
    if slots_remaining(job, selected_count) == 0:
        raise CapacityExceeded(
            f"All {job.max_workers} worker slot(s) for this job are already filled",
            maxWorkers=job.max_workers,
        )


def ensure_can_delete(job):
    if not can_delete(job):
        raise InvalidTransition(job.status, 'delete', "Only unpublished jobs can be deleted")


def cancellation_refund(job):
    """
    Amount refunded when the client cancels.

    From pending_approval the client gets everything back (price plus the
    publication commission). Otherwise the commission is forfeited and nothing
    is refunded.
    """
    if job.status == 'pending_approval':
        return full_refund(job)
    return Decimal('0')


def full_refund(job):
    return Decimal(job.price) + Decimal(job.publication_amount or 0)


def publication_target(requires_approval):
    return 'pending_approval' if requires_approval else 'open'


@dataclass
class BudgetChange:
    old_price: Decimal
    new_price: Decimal
    max_paid_price: Decimal
    difference: Decimal
    commission: Decimal
    commission_rate: Decimal
    total: Decimal

    @property
    def requires_payment(self):
        return self.difference > 0

    @property
    def credit_available(self):
        return self.max_paid_price - self.new_price

    def breakdown(self):
        return {
            'oldPrice': self.old_price,
            'newPrice': self.new_price,
            'maxPaidPrice': self.max_paid_price,
            'priceDifference': self.difference,
            'commission': self.commission,
            'commissionRate': self.commission_rate,
            'total': self.total,
        }


def plan_budget_change(job, new_price, commission_rate, active_contract_id=None):
    """
    Decide how a budget change applies.

    A job with an active contract is redirected to the contract's price-change
    resource. Increases beyond the highest price already paid need a
    supplemental payment of the difference plus commission.
    """
    if active_contract_id is not None:
        raise RedirectRequired(
            f"/contracts/{active_contract_id}/request-price-change/",
            "Use the contract price-change workflow to change the budget of a job in progress",
        )
    check_action(job, 'change_budget')
    if job.pending_new_price is not None:
        raise InvalidTransition(job.status, 'change_budget', "A budget change is already awaiting payment")

    new_price = Decimal(new_price)
    old_price = Decimal(job.price)
    max_paid = max(Decimal(job.original_price), old_price) if job.original_price is not None else old_price
    difference = new_price - max_paid
    if difference > 0:
        commission = commission_for(difference, commission_rate)
    else:
        difference = Decimal('0.00')
        commission = Decimal('0.00')
    return BudgetChange(
        old_price=old_price,
        new_price=new_price,
        max_paid_price=max_paid,
        difference=difference,
        commission=commission,
        commission_rate=Decimal(commission_rate),
        total=difference + commission,
    )


def needs_end_date(job):
    return job.end_date is None or job.end_date_flexible


def can_reactivate(job, now, selected_count):
    """
    A suspended job returns once it has a fixed end date. Without selected
    workers it goes back to open, which only makes sense before the start.
    """
    if needs_end_date(job) or job.end_date < job.start_date:
        return False
    return selected_count > 0 or job.start_date > now


@dataclass
class DueTransition:
    action: str
    target_status: str
    reason: Optional[str] = None
    proposal: object = None
    extra: dict = field(default_factory=dict)


def due_transition(job, now, *, proposal_count, pending_proposals, selected_count):
    """
    Return the automatic transition owed by ``job`` at ``now``, or None.

    ``pending_proposals`` must be ordered oldest first.
    """
    status = job.status

    if status in ACTION_SOURCES['expire'] and job.end_date is not None and job.end_date < now:
        reason = NO_APPLICANTS_REASON if proposal_count == 0 else EXPIRED_REASON
        return DueTransition('expire', 'cancelled', reason=reason)

    if status == 'suspended' and can_reactivate(job, now, selected_count):
        return DueTransition('reactivate', status_with_workers(selected_count))

    if not in_pre_start_window(job, now):
        return None

    if status == 'open' and selected_count == 0 and proposal_count == 0:
        return DueTransition('auto_cancel', 'cancelled', reason=NO_APPLICANTS_REASON)

    if status in ACTION_SOURCES['suspend'] and needs_end_date(job):
        return DueTransition('suspend', 'suspended', reason='missing_end_date')

    if status == 'open' and selected_count == 0 and pending_proposals:
        return DueTransition('auto_select', 'in_progress', proposal=pending_proposals[0])

    if status == 'paused' and job.pending_new_price is None:
        return DueTransition('auto_resume', job.previous_status or status_with_workers(selected_count))

    return None


def lifecycle_summary(job, now, *, selected_count=0, pending_count=0):
    """Read model used by the job detail endpoint."""
    deadline = selection_deadline(job)
    return {
        'code': job.code,
        'canCancel': can_cancel(job, now),
        'canPause': can_pause(job, now),
        'canDelete': can_delete(job),
        'refundOnCancel': str(cancellation_refund(job)),
        'slotsRemaining': slots_remaining(job, selected_count),
        'pendingProposals': pending_count,
        'autoSelectAt': deadline.isoformat() if job.status == 'open' and selected_count == 0 else None,
        'secondsUntilAutoSelect': max(int((deadline - now).total_seconds()), 0),
        'awaitingBudgetPayment': job.pending_new_price is not None,
    }
