"""
Completion confirmations.

Both the client and the doer confirm a contract once its confirmation window
opens (5 minutes before the scheduled end). The first confirmation moves the
contract to awaiting_confirmation; the second completes it. A job completes when
all of its non-cancelled contracts are completed.
"""
from core.constants import CONFIRMATION_LEAD
from core.exceptions import AlreadyConfirmed, InvalidTransition, NotAllowed, WindowNotOpen

CONFIRMABLE_STATUSES = ('in_progress', 'awaiting_confirmation')
ROLES = ('client', 'doer')


def scheduled_end(contract, job=None):
    job = job or contract.job
    return job.end_date or contract.end_date


def window_opens_at(contract, job=None):
    end = scheduled_end(contract, job)
    if end is None:
        return None
    return end - CONFIRMATION_LEAD


def has_confirmed(contract, role):
    return getattr(contract, f'{role}_confirmed')


def can_confirm(contract, role, now, job=None):
    """True when ``role`` may confirm ``contract`` at ``now``."""
    job = job or contract.job
    if job.status == 'suspended':
        return False
    if contract.status not in CONFIRMABLE_STATUSES or has_confirmed(contract, role):
        return False
    opens_at = window_opens_at(contract, job)
    return opens_at is not None and now >= opens_at


def confirm(contract, role, now, job=None):
    """
    Record the confirmation of ``role`` on ``contract``.

    Mutates the instance in memory and returns True when this confirmation
    completed the contract. Nothing is changed when a check fails.
    """
    if role not in ROLES:
        raise NotAllowed("Only the client or the doer of this contract can confirm it")
    if has_confirmed(contract, role):
        raise AlreadyConfirmed()
    if contract.status not in CONFIRMABLE_STATUSES:
        raise InvalidTransition(contract.status, 'confirm')
    job = job or contract.job
    if job.status == 'suspended':
        raise InvalidTransition(job.status, 'confirm', "The job is suspended until it has a fixed end date")

    opens_at = window_opens_at(contract, job)
    if opens_at is None:
        raise WindowNotOpen(message="The job has no scheduled end date yet")
    if now < opens_at:
        raise WindowNotOpen(opens_at)

    setattr(contract, f'{role}_confirmed', True)
    setattr(contract, f'{role}_confirmed_at', now)
    return _settle(contract, now)


def auto_confirm(contract, now):
    """Confirm on behalf of whichever party has not answered."""
    if contract.status != 'awaiting_confirmation':
        raise InvalidTransition(contract.status, 'auto_confirm')
    for role in ROLES:
        if not has_confirmed(contract, role):
            setattr(contract, f'{role}_confirmed', True)
            setattr(contract, f'{role}_confirmed_at', now)
    contract.auto_confirmed = True
    return _settle(contract, now)


def _settle(contract, now):
    if contract.client_confirmed and contract.doer_confirmed:
        contract.status = 'completed'
        contract.completed_at = now
        return True
    contract.status = 'awaiting_confirmation'
    if contract.awaiting_confirmation_at is None:
        contract.awaiting_confirmation_at = now
    return False


def is_due_for_auto_confirm(contract, now, delay):
    return (
        contract.status == 'awaiting_confirmation'
        and contract.awaiting_confirmation_at is not None
        and now - contract.awaiting_confirmation_at >= delay
    )


def all_completed(contracts):
    """True when every non-cancelled contract is completed (and there is at least one)."""
    live = [contract for contract in contracts if contract.status != 'cancelled']
    return bool(live) and all(contract.status == 'completed' for contract in live)


def team_progress(contracts):
    live = [contract for contract in contracts if contract.status != 'cancelled']
    return {
        'total': len(live),
        'completed': sum(1 for contract in live if contract.status == 'completed'),
        'awaiting': sum(1 for contract in live if contract.status == 'awaiting_confirmation'),
    }


def confirmation_matrix(job, contracts, viewer, now):
    """
    Per-contract confirmation state as seen by ``viewer``.

    The client sees every row. A worker sees their own row in full and only
    the name and status of the other workers' contracts.
    """
    is_client = viewer is not None and viewer.pk == job.client_id
    rows = []
    for contract in contracts:
        role = contract.role_of(viewer)
        if not is_client and role is None:
            rows.append({'doer': contract.doer.display_name, 'status': contract.status})
            continue
        rows.append({
            'contractId': str(contract.id),
            'doer': contract.doer.display_name,
            'status': contract.status,
            'clientConfirmed': contract.client_confirmed,
            'doerConfirmed': contract.doer_confirmed,
            'autoConfirmed': contract.auto_confirmed,
            'viewerRole': role,
            'canConfirm': role is not None and can_confirm(contract, role, now, job),
        })
    opens_at = window_opens_at(contracts[0], job) if contracts else None
    return {
        'jobId': str(job.id),
        'windowOpensAt': opens_at.isoformat() if opens_at else None,
        'progress': team_progress(contracts),
        'allCompleted': all_completed(contracts),
        'contracts': rows,
    }
