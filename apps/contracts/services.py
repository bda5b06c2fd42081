import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction

from apps.jobs import lifecycle
from apps.jobs.models import Job
from apps.jobs.signals import contract_updated, job_updated, send_on_commit
from apps.payments.utils import record_event
from core import clock as clocks
from core.exceptions import InvalidTransition, NotAllowed
from . import confirmation, pairing
from .models import Contract

logger = logging.getLogger(__name__)


def lock_contract(contract_id):
    """Lock the job first, then the contract. Every contract mutation uses this order."""
    job_id = Contract.objects.values_list('job_id', flat=True).get(pk=contract_id)
    job = Job.objects.select_for_update().get(pk=job_id)
    contract = Contract.objects.select_for_update().get(pk=contract_id)
    return job, contract


def role_or_deny(contract, user):
    role = contract.role_of(user)
    if role is None:
        raise NotAllowed("You are not a party to this contract")
    return role


def _save(contract, action, fields):
    contract.save(update_fields=list(fields) + ['updated_at'])
    send_on_commit(contract_updated, sender=Contract, contract=contract, action=action)


def accept_terms(contract_id, user, clock=None):
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job, contract = lock_contract(contract_id)
        role = role_or_deny(contract, user)
        if contract.status != 'pending':
            raise InvalidTransition(contract.status, 'accept_terms')
        setattr(contract, f'terms_accepted_by_{role}', True)
        fields = [f'terms_accepted_by_{role}']
        if contract.terms_accepted_by_client and contract.terms_accepted_by_doer:
            contract.status = 'accepted'
            contract.terms_accepted_at = now
            fields += ['status', 'terms_accepted_at']
        _save(contract, 'terms_accepted', fields)
    logger.info(f"Contract {contract.pk} terms accepted by {role}")
    return contract


def generate_pairing(contract_id, user, clock=None):
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job, contract = lock_contract(contract_id)
        role_or_deny(contract, user)
        pairing.issue(contract, now, settings.PAIRING_CODE_TTL_HOURS)
        _save(contract, 'pairing_generated', [
            'pairing_code', 'pairing_generated_at', 'pairing_expiry',
            'client_confirmed_pairing', 'doer_confirmed_pairing',
        ])
    logger.info(f"Pairing code generated for contract {contract.pk}")
    return contract


def confirm_pairing(contract_id, user, code, clock=None):
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job, contract = lock_contract(contract_id)
        role = role_or_deny(contract, user)
        started = pairing.confirm(contract, role, code, now)
        _save(contract, 'pairing_confirmed', [
            'status', 'actual_start_date', 'client_confirmed_pairing', 'doer_confirmed_pairing',
        ])
    if started:
        logger.info(f"Contract {contract.pk} started after pairing")
    return contract, started


def confirm_completion(contract_id, user, clock=None):
    """
    Record the caller's completion confirmation.

    Returns ``(contract, job)``. Escrow is released exactly once, by whichever
    confirmation completes the contract.
    """
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job, contract = lock_contract(contract_id)
        role = role_or_deny(contract, user)
        completed = confirmation.confirm(contract, role, now, job)
        _save(contract, 'confirmed', [
            'status', f'{role}_confirmed', f'{role}_confirmed_at', 'awaiting_confirmation_at', 'completed_at',
        ])
        if completed:
            _release(job, contract)
    logger.info(f"Contract {contract.pk} confirmed by {role}, status {contract.status}")
    return contract, job


def auto_confirm(contract_id, clock=None):
    """Confirm a contract that sat in awaiting_confirmation past the grace period. No-op otherwise."""
    now = clocks.resolve(clock).now()
    delay = timedelta(hours=settings.CONTRACT_AUTO_CONFIRM_HOURS)
    with transaction.atomic():
        job, contract = lock_contract(contract_id)
        if not confirmation.is_due_for_auto_confirm(contract, now, delay):
            return None
        confirmation.auto_confirm(contract, now)
        _save(contract, 'auto_confirmed', [
            'status', 'client_confirmed', 'client_confirmed_at', 'doer_confirmed', 'doer_confirmed_at',
            'auto_confirmed', 'completed_at',
        ])
        _release(job, contract)
    logger.info(f"Contract {contract.pk} auto-confirmed")
    return contract


def _release(job, contract):
    contract.escrow_status = 'released'
    contract.save(update_fields=['escrow_status', 'updated_at'])
    record_event('release_escrow', job, contract.price, contract=contract, doer=contract.doer_id)

    contracts = list(job.contracts.all())
    if confirmation.all_completed(contracts):
        lifecycle.check_transition(job.status, 'completed', 'complete')
        job.status = 'completed'
        job.save(update_fields=['status', 'updated_at'])
        send_on_commit(job_updated, sender=Job, job=job, action='completed')
        logger.info(f"Job {job.code} completed")
