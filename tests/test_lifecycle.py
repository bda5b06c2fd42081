from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.jobs import lifecycle
from apps.jobs.models import Job
from core.constants import NO_APPLICANTS_MARKER
from core.exceptions import CapacityExceeded, InvalidTransition, RedirectRequired

NOW = timezone.now()


def job(**fields):
    data = {
        'title': 'Paint the fence',
        'price': Decimal('100.00'),
        'status': 'open',
        'start_date': NOW + timedelta(days=3),
        'end_date': NOW + timedelta(days=3, hours=6),
        'max_workers': 1,
    }
    data.update(fields)
    return Job(**data)


class TestCancelAndPause:
    def test_cancel_boundary_is_exclusive_at_24_hours(self):
        exactly = job(start_date=NOW + timedelta(hours=24))
        just_before = job(start_date=NOW + timedelta(hours=24, seconds=1))
        assert lifecycle.can_cancel(exactly, NOW) is False
        assert lifecycle.can_cancel(just_before, NOW) is True

    def test_pending_approval_can_always_be_cancelled(self):
        assert lifecycle.can_cancel(job(status='pending_approval', start_date=NOW + timedelta(hours=1)), NOW)

    @pytest.mark.parametrize('status', ['draft', 'pending_payment', 'open', 'paused', 'in_progress', 'suspended'])
    def test_cancel_follows_the_deadline_before_completion(self, status):
        assert lifecycle.can_cancel(job(status=status), NOW) is True
        assert lifecycle.can_cancel(job(status=status, start_date=NOW + timedelta(hours=23)), NOW) is False

    @pytest.mark.parametrize('status', ['completed', 'cancelled'])
    def test_finished_jobs_cannot_be_cancelled(self, status):
        assert lifecycle.can_cancel(job(status=status), NOW) is False
        with pytest.raises(InvalidTransition):
            lifecycle.ensure_can_cancel(job(status=status), NOW)

    def test_cancel_refused_inside_window(self):
        inside = job(start_date=NOW + timedelta(hours=10))
        with pytest.raises(InvalidTransition):
            lifecycle.ensure_can_cancel(inside, NOW)

    def test_cancel_refused_with_active_contracts(self):
        with pytest.raises(InvalidTransition):
            lifecycle.ensure_can_cancel(job(), NOW, active_contracts=1)

    def test_pause_only_open_and_before_deadline(self):
        assert lifecycle.can_pause(job(), NOW)
        assert not lifecycle.can_pause(job(status='paused'), NOW)
        assert not lifecycle.can_pause(job(start_date=NOW + timedelta(hours=23)), NOW)

    def test_invalid_transition_carries_status_and_action(self):
        with pytest.raises(InvalidTransition) as excinfo:
            lifecycle.check_action(job(status='completed'), 'pause')
        assert excinfo.value.extra == {'currentStatus': 'completed', 'action': 'pause'}

    def test_only_unpublished_jobs_can_be_deleted(self):
        assert lifecycle.can_delete(job(status='draft'))
        assert lifecycle.can_delete(job(status='pending_payment'))
        assert not lifecycle.can_delete(job(status='open'))

    def test_refund_depends_on_status(self):
        pending = job(status='pending_approval', publication_amount=Decimal('10.00'))
        assert lifecycle.cancellation_refund(pending) == Decimal('110.00')
        assert lifecycle.cancellation_refund(job(publication_amount=Decimal('10.00'))) == Decimal('0')


class TestCapacity:
    def test_select_within_capacity(self):
        lifecycle.ensure_can_select(job(max_workers=2), 1)

    def test_select_beyond_capacity(self):
        with pytest.raises(CapacityExceeded):
            lifecycle.ensure_can_select(job(max_workers=2, status='in_progress'), 2)

    def test_slots_remaining_never_negative(self):
        assert lifecycle.slots_remaining(job(max_workers=1), 3) == 0


class TestBudgetChange:
    rate = Decimal('0.10')

    def test_increase_requires_payment_with_breakdown(self):
        plan = lifecycle.plan_budget_change(job(), Decimal('150.00'), self.rate)
        assert plan.requires_payment
        assert plan.breakdown() == {
            'oldPrice': Decimal('100.00'),
            'newPrice': Decimal('150.00'),
            'maxPaidPrice': Decimal('100.00'),
            'priceDifference': Decimal('50.00'),
            'commission': Decimal('5.00'),
            'commissionRate': Decimal('0.10'),
            'total': Decimal('55.00'),
        }

    def test_decrease_applies_without_payment(self):
        plan = lifecycle.plan_budget_change(job(), Decimal('80.00'), self.rate)
        assert not plan.requires_payment
        assert plan.total == Decimal('0.00')

    def test_increase_covered_by_earlier_payment(self):
        lowered = job(price=Decimal('150.00'), original_price=Decimal('200.00'))
        plan = lifecycle.plan_budget_change(lowered, Decimal('180.00'), self.rate)
        assert not plan.requires_payment
        assert plan.credit_available == Decimal('20.00')

    def test_job_with_contract_is_redirected(self):
        with pytest.raises(RedirectRequired) as excinfo:
            lifecycle.plan_budget_change(job(status='in_progress'), Decimal('150.00'), self.rate, 'abc')
        assert excinfo.value.extra['redirectTo'] == '/contracts/abc/request-price-change/'

    def test_completed_job_rejected(self):
        with pytest.raises(InvalidTransition):
            lifecycle.plan_budget_change(job(status='completed'), Decimal('150.00'), self.rate)

    def test_pending_change_blocks_another(self):
        waiting = job(status='paused', pending_new_price=Decimal('150.00'))
        with pytest.raises(InvalidTransition):
            lifecycle.plan_budget_change(waiting, Decimal('160.00'), self.rate)

    def test_commission_rounds_half_up(self):
        assert lifecycle.commission_for(Decimal('0.05'), Decimal('0.10')) == Decimal('0.01')


class TestDueTransition:
    def due(self, target, **counts):
        data = {'proposal_count': 0, 'pending_proposals': [], 'selected_count': 0}
        data.update(counts)
        return lifecycle.due_transition(target, NOW, **data)

    def test_nothing_due_before_window(self):
        assert self.due(job(), proposal_count=1, pending_proposals=['p']) is None

    def test_auto_select_picks_first_pending(self):
        due = self.due(job(start_date=NOW + timedelta(hours=23)), proposal_count=2, pending_proposals=['first', 'second'])
        assert due.action == 'auto_select'
        assert due.proposal == 'first'

    def test_auto_cancel_without_applicants(self):
        due = self.due(job(start_date=NOW + timedelta(hours=23)))
        assert due.action == 'auto_cancel'
        assert NO_APPLICANTS_MARKER in due.reason

    def test_no_auto_select_once_a_worker_is_selected(self):
        team = job(status='open', max_workers=2, start_date=NOW + timedelta(hours=23))
        assert self.due(team, proposal_count=2, pending_proposals=['p'], selected_count=1) is None

    def test_suspend_without_end_date(self):
        flexible = job(start_date=NOW + timedelta(hours=23), end_date=None, end_date_flexible=True)
        due = self.due(flexible, proposal_count=1, pending_proposals=['p'])
        assert due.action == 'suspend'

    def test_expire_after_end_date(self):
        stale = job(start_date=NOW - timedelta(days=2), end_date=NOW - timedelta(days=1))
        due = self.due(stale, proposal_count=1)
        assert due.action == 'expire'
        assert due.target_status == 'cancelled'

    def test_auto_resume_paused_job(self):
        paused = job(status='paused', previous_status='open', start_date=NOW + timedelta(hours=20))
        due = self.due(paused)
        assert (due.action, due.target_status) == ('auto_resume', 'open')

    def test_paused_for_budget_stays_paused(self):
        paused = job(status='paused', pending_new_price=Decimal('150'), start_date=NOW + timedelta(hours=20))
        assert self.due(paused) is None

    def test_reactivate_suspended_job_with_end_date(self):
        suspended = job(status='suspended', start_date=NOW + timedelta(hours=30))
        due = self.due(suspended, selected_count=1)
        assert (due.action, due.target_status) == ('reactivate', 'in_progress')

    def test_suspend_flexible_end_date(self):
        flexible = job(start_date=NOW + timedelta(hours=23), end_date_flexible=True)
        due = self.due(flexible, proposal_count=1, pending_proposals=['p'])
        assert (due.action, due.target_status) == ('suspend', 'suspended')

    def test_jobs_with_workers_are_not_suspended(self):
        staffed = job(status='in_progress', start_date=NOW + timedelta(hours=23), end_date=None)
        assert self.due(staffed, proposal_count=1, selected_count=1) is None

    def test_flexible_suspended_job_stays_suspended(self):
        flexible = job(status='suspended', start_date=NOW + timedelta(hours=30), end_date_flexible=True)
        assert self.due(flexible) is None

    def test_staffed_suspended_job_returns_to_work_after_start(self):
        started = job(status='suspended', start_date=NOW - timedelta(hours=1), end_date=NOW + timedelta(hours=5))
        due = self.due(started, selected_count=1)
        assert (due.action, due.target_status) == ('reactivate', 'in_progress')
        assert self.due(started) is None


def test_lifecycle_summary_flags():
    summary = lifecycle.lifecycle_summary(job(), NOW, pending_count=2)
    assert summary['canCancel'] is True
    assert summary['canPause'] is True
    assert summary['canDelete'] is False
    assert summary['pendingProposals'] == 2
    assert summary['autoSelectAt'] == (job().start_date - timedelta(hours=24)).isoformat()
    assert len(summary['code']) == 8
