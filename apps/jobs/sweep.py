"""
Deadline-driven transitions.

``run_sweep`` picks candidate jobs and contracts with cheap unlocked queries,
then re-evaluates every candidate under its row lock before acting. Running two
sweeps at the same time is safe: the second one finds nothing left to do.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q

from apps.contracts import services as contract_services
from apps.contracts.models import Contract
from apps.payments.utils import record_event
from core import clock as clocks
from core.constants import PRE_START_WINDOW
from core.exceptions import LifecycleError
from . import lifecycle, services
from .models import Job

logger = logging.getLogger(__name__)

# resume -> auto-select is the longest chain a job can go through in one pass
MAX_STEPS_PER_JOB = 3


@dataclass
class SweepReport:
    actions: Counter = field(default_factory=Counter)
    auto_confirmed: int = 0
    errors: list = field(default_factory=list)

    @property
    def total(self):
        return sum(self.actions.values()) + self.auto_confirmed

    def as_dict(self):
        data = dict(self.actions)
        data['auto_confirmed'] = self.auto_confirmed
        data['errors'] = len(self.errors)
        return data


def candidate_jobs(now):
    window_open = Q(start_date__lte=now + PRE_START_WINDOW)
    open_ended = Q(end_date__isnull=True) | Q(end_date_flexible=True)
    return Job.objects.filter(
        Q(status='open', selected_workers__isnull=True) & window_open
        | Q(status='open') & open_ended & window_open
        | Q(status='paused', pending_new_price__isnull=True) & window_open
        | Q(status__in=['open', 'paused', 'pending_approval'], end_date__lt=now)
        | Q(status='suspended', end_date__isnull=False, end_date_flexible=False)
        & (Q(start_date__gt=now) | Q(selected_workers__isnull=False))
    ).order_by('start_date').values_list('pk', flat=True).distinct()


def candidate_contracts(now):
    cutoff = now - timedelta(hours=settings.CONTRACT_AUTO_CONFIRM_HOURS)
    return Contract.objects.filter(
        status='awaiting_confirmation', awaiting_confirmation_at__lte=cutoff,
    ).values_list('pk', flat=True)


def apply_due_transition(job_id, clock=None):
    """
    Apply at most one automatic transition to the job, under its lock.

    Returns the action name, or None when nothing was due.
    """
    now = clocks.resolve(clock).now()
    with transaction.atomic():
        job = services.lock_job(job_id)
        pending = list(job.proposals.filter(status='pending').order_by('created_at', 'pk'))
        due = lifecycle.due_transition(
            job, now,
            proposal_count=job.proposals.count(),
            pending_proposals=pending,
            selected_count=job.selected_workers.count(),
        )
        if due is None:
            return None

        if due.action in ('expire', 'auto_cancel'):
            refund = lifecycle.full_refund(job)
            services.cancel_locked(job, due.reason, now, action=due.action)
            if refund > 0:
                record_event('refund', job, refund, reason=due.action)
            logger.info(f"Job {job.code} cancelled automatically ({due.action})")
        elif due.action == 'auto_select':
            contract = services.auto_select(job, due.proposal, now)
            logger.info(f"Auto-selected worker {due.proposal.freelancer_id} for job {job.code}, contract {contract.pk}")
        elif due.action in ('auto_resume', 'reactivate'):
            lifecycle.check_transition(job.status, due.target_status, due.action)
            job.status = due.target_status
            job.previous_status = None
            job.paused_at = None
            services.save_job(job, due.action, ['status', 'previous_status', 'paused_at'])
            logger.info(f"Job {job.code} moved to {job.status} ({due.action})")
        elif due.action == 'suspend':
            lifecycle.check_transition(job.status, 'suspended', 'suspend')
            job.status = 'suspended'
            services.save_job(job, 'suspended', ['status'])
            logger.info(f"Job {job.code} suspended: no fixed end date before the start window")
        return due.action


def sweep_job(job_id, clock=None, report=None):
    report = report if report is not None else SweepReport()
    for _ in range(MAX_STEPS_PER_JOB):
        try:
            action = apply_due_transition(job_id, clock)
        except Job.DoesNotExist:
            break
        except LifecycleError as e:
            logger.error(f"Sweep could not process job {job_id}: {e.message}")
            report.errors.append((str(job_id), e.message))
            break
        if action is None:
            break
        report.actions[action] += 1
    return report


def run_sweep(clock=None):
    clock = clocks.resolve(clock)
    now = clock.now()
    report = SweepReport()
    for job_id in list(candidate_jobs(now)):
        sweep_job(job_id, clock, report)
    for contract_id in list(candidate_contracts(now)):
        try:
            if contract_services.auto_confirm(contract_id, clock) is not None:
                report.auto_confirmed += 1
        except LifecycleError as e:
            logger.error(f"Sweep could not auto-confirm contract {contract_id}: {e.message}")
            report.errors.append((str(contract_id), e.message))
    if report.total:
        logger.info(f"Lifecycle sweep finished: {report.as_dict()}")
    return report
