from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.contracts import confirmation
from apps.contracts.models import Contract
from apps.jobs.models import Job
from apps.users.models import User
from core.exceptions import AlreadyConfirmed, InvalidTransition, WindowNotOpen

NOW = timezone.now()


@pytest.fixture
def people():
    return User(username='client'), User(username='doer-one'), User(username='doer-two')


@pytest.fixture
def job(people):
    return Job(
        client=people[0], title='Move a sofa', price=Decimal('80.00'), status='in_progress',
        start_date=NOW - timedelta(hours=2), end_date=NOW + timedelta(minutes=5),
    )


def contract_for(job, doer, **fields):
    data = {
        'job': job, 'client': job.client, 'doer': doer,
        'price': job.price, 'commission': Decimal('8.00'), 'total_price': Decimal('88.00'),
        'status': 'in_progress',
    }
    data.update(fields)
    return Contract(**data)


def test_window_opens_five_minutes_before_end(job, people):
    contract = contract_for(job, people[1])
    assert confirmation.can_confirm(contract, 'client', NOW, job)
    assert not confirmation.can_confirm(contract, 'client', NOW - timedelta(seconds=1), job)


def test_confirm_before_window_is_rejected_and_leaves_contract_unchanged(job, people):
    contract = contract_for(job, people[1])
    with pytest.raises(WindowNotOpen) as excinfo:
        confirmation.confirm(contract, 'client', NOW - timedelta(minutes=1), job)
    assert excinfo.value.extra['opensAt'] == (job.end_date - timedelta(minutes=5)).isoformat()
    assert contract.client_confirmed is False
    assert contract.status == 'in_progress'
    assert contract.awaiting_confirmation_at is None


def test_two_confirmations_complete_the_contract(job, people):
    contract = contract_for(job, people[1])
    assert confirmation.confirm(contract, 'client', NOW, job) is False
    assert contract.status == 'awaiting_confirmation'
    assert contract.awaiting_confirmation_at == NOW

    later = NOW + timedelta(minutes=10)
    assert confirmation.confirm(contract, 'doer', later, job) is True
    assert contract.status == 'completed'
    assert contract.client_confirmed and contract.doer_confirmed
    assert contract.completed_at == later


def test_second_confirmation_by_same_actor_is_rejected(job, people):
    contract = contract_for(job, people[1])
    confirmation.confirm(contract, 'doer', NOW, job)
    with pytest.raises(AlreadyConfirmed):
        confirmation.confirm(contract, 'doer', NOW, job)
    confirmation.confirm(contract, 'client', NOW, job)
    with pytest.raises(AlreadyConfirmed):
        confirmation.confirm(contract, 'client', NOW, job)


def test_contract_not_started_cannot_be_confirmed(job, people):
    contract = contract_for(job, people[1], status='accepted')
    with pytest.raises(InvalidTransition):
        confirmation.confirm(contract, 'client', NOW, job)


def test_missing_end_date_falls_back_to_contract(job, people):
    job.end_date = None
    contract = contract_for(job, people[1], end_date=NOW + timedelta(hours=1))
    with pytest.raises(WindowNotOpen):
        confirmation.confirm(contract, 'client', NOW, job)
    contract.end_date = None
    with pytest.raises(WindowNotOpen):
        confirmation.confirm(contract, 'client', NOW, job)


def test_auto_confirm_fills_the_missing_side(job, people):
    contract = contract_for(job, people[1])
    confirmation.confirm(contract, 'client', NOW, job)
    assert not confirmation.is_due_for_auto_confirm(contract, NOW + timedelta(hours=1), timedelta(hours=2))
    assert confirmation.is_due_for_auto_confirm(contract, NOW + timedelta(hours=2), timedelta(hours=2))

    assert confirmation.auto_confirm(contract, NOW + timedelta(hours=2)) is True
    assert contract.status == 'completed'
    assert contract.auto_confirmed
    assert contract.doer_confirmed


def test_suspended_job_cannot_be_confirmed(job, people):
    job.status = 'suspended'
    contract = contract_for(job, people[1])
    assert not confirmation.can_confirm(contract, 'client', NOW, job)
    with pytest.raises(InvalidTransition):
        confirmation.confirm(contract, 'client', NOW, job)
    assert not contract.client_confirmed


def test_team_completes_only_after_last_confirmation(job, people):
    job.max_workers = 2
    first, second = contract_for(job, people[1]), contract_for(job, people[2])
    contracts = [first, second]
    steps = [(first, 'client'), (first, 'doer'), (second, 'doer'), (second, 'client')]
    for contract, role in steps:
        assert not confirmation.all_completed(contracts)
        confirmation.confirm(contract, role, NOW, job)
    assert confirmation.all_completed(contracts)


def test_all_completed_ignores_cancelled_and_needs_one_contract(job, people):
    assert not confirmation.all_completed([])
    done = contract_for(job, people[1], status='completed')
    dropped = contract_for(job, people[2], status='cancelled')
    assert confirmation.all_completed([done, dropped])


def test_matrix_hides_other_workers_details(job, people):
    client, first_doer, second_doer = people
    contracts = [contract_for(job, first_doer), contract_for(job, second_doer, client_confirmed=True)]

    as_client = confirmation.confirmation_matrix(job, contracts, client, NOW)
    assert [row['clientConfirmed'] for row in as_client['contracts']] == [False, True]

    as_worker = confirmation.confirmation_matrix(job, contracts, first_doer, NOW)
    own, other = as_worker['contracts']
    assert own['viewerRole'] == 'doer'
    assert own['canConfirm'] is True
    assert other == {'doer': 'doer-two', 'status': 'in_progress'}
    assert as_worker['progress'] == {'total': 2, 'completed': 0, 'awaiting': 0}
