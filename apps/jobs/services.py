"""
Transactional job operations.

Each function locks the job row, re-reads whatever it needs under the lock,
asks ``lifecycle`` whether the action is allowed and only then writes. Events
(signals, payment outbox) are released after commit.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from apps.contracts.models import Contract
from apps.payments.utils import record_event
from core import clock as clocks
from core.constants import SELECTION_REJECTION_REASON, AUTO_SELECT_REJECTION_REASON
from core.exceptions import CapacityExceeded, InvalidTransition, LifecycleError, NotAllowed
from . import lifecycle
from .models import Job, Proposal
from .signals import job_updated, proposal_created, contract_updated, send_on_commit

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('title', 'description', 'location', 'start_date', 'end_date', 'end_date_flexible', 'max_workers')


def lock_job(job_id):
    return Job.objects.select_for_update().get(pk=job_id)


def ensure_owner(job, user):
    if user is not None and job.client_id != user.pk:
        raise NotAllowed("Only the client who posted this job can do that")


def active_contracts(job):
    return job.contracts.exclude(status='cancelled')


def save_job(job, action, fields=None):
    if fields is not None:
        fields = list(fields) + ['updated_at']
    job.save(update_fields=fields)
    send_on_commit(job_updated, sender=Job, job=job, action=action)


def create_job(client, **data):
    with transaction.atomic():
        job = Job(client=client, **data)
        job.full_clean(exclude=['client'])
        job.save()
        send_on_commit(job_updated, sender=Job, job=job, action='created')
    logger.info(f"Job {job.code} created by {client.username}")
    return job


def update_job(job_id, user, data, clock=None):
    """
    Edit the descriptive fields and dates of a job.

    Supplying an end date fixes it, and a suspended job goes back into
    circulation.
    """
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        if job.status in lifecycle.TERMINAL_STATUSES:
            raise InvalidTransition(job.status, 'update')

        selected_count = job.selected_workers.count()
        if 'max_workers' in data and data['max_workers'] < selected_count:
            raise CapacityExceeded(
                f"{selected_count} worker(s) are already selected for this job",
                maxWorkers=job.max_workers,
            )

        changed = []
        for name in EDITABLE_FIELDS:
            if name in data and getattr(job, name) != data[name]:
                setattr(job, name, data[name])
                changed.append(name)
        if data.get('end_date') is not None and job.end_date_flexible:
            job.end_date_flexible = False
            changed.append('end_date_flexible')
        job.full_clean(exclude=['client'])

        if job.status == 'suspended' and lifecycle.can_reactivate(job, now, selected_count):
            job.status = lifecycle.status_with_workers(selected_count)
            changed.append('status')
            logger.info(f"Job {job.code} reactivated after end date was supplied")

        if changed:
            save_job(job, 'updated', changed)
    return job


def submit_job(job_id, user):
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        lifecycle.check_action(job, 'submit')
        job.status = 'pending_payment'
        save_job(job, 'submitted', ['status'])
    return job


def publish_job(job_id, amount=None):
    """Publication payment confirmed: move to open (or pending_approval)."""
    with transaction.atomic():
        job = lock_job(job_id)
        lifecycle.check_action(job, 'publish')
        job.status = lifecycle.publication_target(settings.JOB_REQUIRES_APPROVAL)
        job.publication_amount = (
            Decimal(amount) if amount is not None
            else lifecycle.commission_for(job.price, settings.PLATFORM_COMMISSION_RATE)
        )
        if job.original_price is None:
            job.original_price = job.price
        save_job(job, 'published', ['status', 'publication_amount', 'original_price'])
    logger.info(f"Job {job.code} published with status {job.status}")
    return job


def approve_job(job_id):
    with transaction.atomic():
        job = lock_job(job_id)
        lifecycle.check_action(job, 'approve')
        job.status = 'open'
        save_job(job, 'approved', ['status'])
    logger.info(f"Job {job.code} approved")
    return job


def delete_job(job_id, user):
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        lifecycle.ensure_can_delete(job)
        code = job.code
        job.delete()
    logger.info(f"Job {code} deleted by {user.username}")


def pause_job(job_id, user, clock=None):
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        lifecycle.ensure_can_pause(job, now)
        job.previous_status = job.status
        job.status = 'paused'
        job.paused_at = now
        save_job(job, 'paused', ['status', 'previous_status', 'paused_at'])
    logger.info(f"Job {job.code} paused")
    return job


def resume_job(job_id, user):
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        lifecycle.check_action(job, 'resume')
        if job.pending_new_price is not None:
            raise InvalidTransition(
                job.status, 'resume', "Complete or cancel the pending budget change before resuming"
            )
        _resume(job, 'resumed')
    logger.info(f"Job {job.code} resumed to {job.status}")
    return job


def _resume(job, action):
    job.status = job.previous_status or lifecycle.status_with_workers(job.selected_workers.count())
    job.previous_status = None
    job.paused_at = None
    save_job(job, action, ['status', 'previous_status', 'paused_at'])


def cancel_job(job_id, user, reason='', clock=None):
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        lifecycle.ensure_can_cancel(job, now, active_contracts(job).count())
        refund = lifecycle.cancellation_refund(job)
        cancel_locked(job, reason or 'Cancelled by the client', now, cancelled_by=user)
        if refund > 0:
            record_event('refund', job, refund, reason='client_cancelled')
    logger.info(f"Job {job.code} cancelled by {user.username}, refund {refund}")
    return job, refund


def cancel_locked(job, reason, now, cancelled_by=None, action='cancelled'):
    job.status = 'cancelled'
    job.cancellation_reason = reason
    job.cancelled_at = now
    job.cancelled_by = cancelled_by
    job.pending_new_price = None
    job.pending_payment_amount = None
    save_job(job, action, [
        'status', 'cancellation_reason', 'cancelled_at', 'cancelled_by',
        'pending_new_price', 'pending_payment_amount',
    ])
    job.proposals.filter(status='pending').update(status='rejected', rejection_reason=reason)


def change_budget(job_id, user, new_price, reason, clock=None):
    """
    Change the job price.

    Returns ``(job, plan)``. When the increase needs a supplemental payment the
    job is left paused with the pending amounts stored and ``plan.requires_payment``
    is True; the caller answers with 402.
    """
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        contract = active_contracts(job).first()
        plan = lifecycle.plan_budget_change(
            job, new_price, settings.PLATFORM_COMMISSION_RATE,
            active_contract_id=contract.pk if contract else None,
        )
        if plan.requires_payment:
            # a client pause already recorded where to resume to
            if job.status != 'paused':
                job.previous_status = job.status
            job.status = 'paused'
            job.paused_at = now
            job.pending_new_price = plan.new_price
            job.pending_payment_amount = plan.total
            job.price_change_reason = reason
            if job.original_price is None:
                job.original_price = job.price
            save_job(job, 'budget_payment_required', [
                'status', 'previous_status', 'paused_at', 'pending_new_price',
                'pending_payment_amount', 'price_change_reason', 'original_price',
            ])
            record_event(
                'charge_supplemental', job, plan.total,
                new_price=plan.new_price, difference=plan.difference, commission=plan.commission,
            )
            logger.info(f"Job {job.code} paused awaiting supplemental payment of {plan.total}")
        else:
            _apply_price(job, plan.new_price, reason, now)
            logger.info(f"Job {job.code} price changed from {plan.old_price} to {plan.new_price}")
    return job, plan


def _apply_price(job, new_price, reason, now, paid=None):
    entry = {
        'old_price': str(job.price),
        'new_price': str(new_price),
        'reason': reason,
        'changed_at': now.isoformat(),
    }
    if paid is not None:
        entry['paid'] = str(paid)
    job.price_history = list(job.price_history or []) + [entry]
    if job.original_price is None:
        job.original_price = job.price
    job.price = new_price
    job.price_change_reason = reason
    save_job(job, 'budget_changed', ['price', 'price_history', 'original_price', 'price_change_reason'])


def confirm_budget_payment(job_id, clock=None):
    """Supplemental payment received: apply the pending price and resume."""
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job = lock_job(job_id)
        lifecycle.check_action(job, 'confirm_budget_payment')
        if job.pending_new_price is None:
            raise InvalidTransition(job.status, 'confirm_budget_payment', "No budget change is awaiting payment")
        new_price = job.pending_new_price
        paid = job.pending_payment_amount
        _apply_price(job, new_price, job.price_change_reason, now, paid=paid)
        # the new price is now the highest amount paid
        job.original_price = max(job.original_price, new_price)
        job.pending_new_price = None
        job.pending_payment_amount = None
        job.save(update_fields=['original_price', 'pending_new_price', 'pending_payment_amount', 'updated_at'])
        _resume(job, 'budget_paid')
    logger.info(f"Job {job.code} budget payment confirmed, price now {job.price}")
    return job


def cancel_budget_change(job_id, user):
    with transaction.atomic():
        job = lock_job(job_id)
        ensure_owner(job, user)
        lifecycle.check_action(job, 'cancel_budget_change')
        if job.pending_new_price is None:
            raise InvalidTransition(job.status, 'cancel_budget_change', "No budget change is awaiting payment")
        job.pending_new_price = None
        job.pending_payment_amount = None
        job.save(update_fields=['pending_new_price', 'pending_payment_amount', 'updated_at'])
        _resume(job, 'budget_change_cancelled')
    logger.info(f"Job {job.code} pending budget change cancelled")
    return job


def apply_to_job(job_id, worker, proposed_price=None, message='', estimated_duration=None):
    with transaction.atomic():
        job = lock_job(job_id)
        if job.client_id == worker.pk:
            raise NotAllowed("You cannot apply to your own job")
        if job.status not in ('open', 'in_progress'):
            raise InvalidTransition(job.status, 'apply')
        if lifecycle.slots_remaining(job, job.selected_workers.count()) == 0:
            raise CapacityExceeded()
        if job.proposals.filter(freelancer=worker).exists():
            raise LifecycleError("You have already applied to this job")

        price = Decimal(proposed_price) if proposed_price is not None else job.price
        proposal = Proposal(
            job=job,
            freelancer=worker,
            proposed_price=price,
            is_counter_offer=price != job.price,
            message=message or '',
        )
        if estimated_duration:
            proposal.estimated_duration = estimated_duration
        proposal.save()
        send_on_commit(proposal_created, sender=Proposal, proposal=proposal, action='created')
    logger.info(f"{worker.username} applied to job {job.code}")
    return proposal


def _lock_proposal(proposal_id):
    job_id = Proposal.objects.values_list('job_id', flat=True).get(pk=proposal_id)
    job = lock_job(job_id)
    proposal = Proposal.objects.select_for_update().get(pk=proposal_id)
    return job, proposal


def select_worker(proposal_id, user, clock=None):
    """Client approves a proposal. Creates the contract under the job lock."""
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job, proposal = _lock_proposal(proposal_id)
        ensure_owner(job, user)
        contract = select_proposal(job, proposal, now, SELECTION_REJECTION_REASON)
    logger.info(f"Proposal {proposal.pk} approved for job {job.code}")
    return contract


def select_proposal(job, proposal, now, rejection_reason):
    """
    Approve ``proposal`` and create its contract.

    The caller holds the lock on ``job``. Slot accounting happens here so that
    explicit selection and auto-selection share one check.
    """
    if proposal.status != 'pending':
        raise InvalidTransition(proposal.status, 'approve_proposal', "This proposal has already been processed")
    selected_count = job.selected_workers.count()
    lifecycle.ensure_can_select(job, selected_count)

    price = proposal.proposed_price
    commission = lifecycle.commission_for(price, settings.PLATFORM_COMMISSION_RATE)
    contract = Contract.objects.create(
        job=job,
        proposal=proposal,
        client_id=job.client_id,
        doer_id=proposal.freelancer_id,
        price=price,
        commission=commission,
        total_price=price + commission,
        start_date=job.start_date,
        end_date=job.end_date or job.start_date + timedelta(days=proposal.estimated_duration),
    )
    proposal.status = 'approved'
    proposal.save(update_fields=['status', 'updated_at'])

    job.selected_workers.add(proposal.freelancer_id)
    fields = ['status']
    if job.doer_id is None:
        job.doer_id = proposal.freelancer_id
        fields.append('doer')
    job.status = 'in_progress'
    save_job(job, 'worker_selected', fields)
    send_on_commit(contract_updated, sender=Contract, contract=contract, action='created')

    if lifecycle.slots_remaining(job, selected_count + 1) == 0:
        rejected = job.proposals.filter(status='pending').exclude(pk=proposal.pk)
        rejected.update(status='rejected', rejection_reason=rejection_reason, updated_at=now)
    return contract


def auto_select(job, proposal, now):
    return select_proposal(job, proposal, now, AUTO_SELECT_REJECTION_REASON)


def reject_proposal(proposal_id, user, reason=None):
    with transaction.atomic():
        job, proposal = _lock_proposal(proposal_id)
        ensure_owner(job, user)
        if proposal.status != 'pending':
            raise InvalidTransition(proposal.status, 'reject_proposal', "This proposal has already been processed")
        proposal.status = 'rejected'
        proposal.rejection_reason = reason or None
        proposal.save(update_fields=['status', 'rejection_reason', 'updated_at'])
        send_on_commit(job_updated, sender=Job, job=job, action='proposal_rejected', proposal=proposal)
    return proposal


def withdraw_proposal(proposal_id, user):
    with transaction.atomic():
        job, proposal = _lock_proposal(proposal_id)
        if proposal.freelancer_id != user.pk:
            raise NotAllowed("Only the worker who applied can withdraw this proposal")
        if proposal.status != 'pending':
            raise InvalidTransition(proposal.status, 'withdraw_proposal')
        proposal.status = 'withdrawn'
        proposal.save(update_fields=['status', 'updated_at'])
    logger.info(f"{user.username} withdrew from job {job.code}")
    return proposal
