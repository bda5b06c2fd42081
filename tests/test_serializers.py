from datetime import timedelta
from decimal import Decimal

import pytest

from apps.contracts.serializers import ContractSerializer
from apps.jobs.serializers import BudgetChangeSerializer, JobRecordSerializer, JobSerializer

pytestmark = pytest.mark.django_db


def test_contract_serializer_keeps_confirmation_and_money_fields(make_job, make_contract, worker, now):
    job = make_job(status='in_progress')
    contract = make_contract(
        job, worker, status='awaiting_confirmation',
        client_confirmed=True, client_confirmed_at=now, awaiting_confirmation_at=now,
    )
    data = ContractSerializer(contract).data
    assert data['code'] == job.code
    assert data['total_price'] == '110.00'

    serializer = ContractSerializer(contract, data=data)

    assert serializer.is_valid(), serializer.errors
    validated = serializer.validated_data
    assert validated['status'] == 'awaiting_confirmation'
    assert validated['client_confirmed'] is True
    assert validated['doer_confirmed'] is False
    assert validated['client_confirmed_at'] == now
    assert validated['price'] == Decimal('100.00')
    assert validated['commission'] == Decimal('10.00')
    assert validated['end_date'] == job.end_date


def test_contract_serializer_hides_pairing_code_from_client(make_job, make_contract, worker, client_user):
    contract = make_contract(make_job(status='in_progress'), worker, pairing_code='ABCDEFGH23')
    assert ContractSerializer(contract, context={'user': client_user}).data['pairing_code'] is None
    assert ContractSerializer(contract, context={'user': worker}).data['pairing_code'] == 'ABCDEFGH23'


def test_job_record_carries_lifecycle_fields(make_job, now):
    job = make_job(
        status='paused', previous_status='open', paused_at=now,
        pending_new_price=Decimal('150.00'), pending_payment_amount=Decimal('55.00'),
        original_price=Decimal('100.00'),
    )
    data = JobRecordSerializer(job).data
    assert data['status'] == 'paused'
    assert data['previous_status'] == 'open'
    assert data['pending_new_price'] == '150.00'
    assert data['pending_payment_amount'] == '55.00'
    assert data['original_price'] == '100.00'
    assert data['max_workers'] == 1


def test_job_serializer_refuses_price_edits(make_job):
    serializer = JobSerializer(make_job(), data={'price': '150.00'}, partial=True)
    assert not serializer.is_valid()
    assert 'price' in serializer.errors


def test_job_serializer_ignores_status_in_input(make_job, now):
    job = make_job()
    serializer = JobSerializer(job, data={'status': 'completed', 'end_date': (job.end_date + timedelta(hours=1)).isoformat()}, partial=True)
    assert serializer.is_valid(), serializer.errors
    assert 'status' not in serializer.validated_data


def test_budget_reason_needs_ten_characters():
    assert not BudgetChangeSerializer(data={'newPrice': '10.00', 'reason': 'too short'}).is_valid()
    assert BudgetChangeSerializer(data={'newPrice': '10.00', 'reason': 'long enough now'}).is_valid()
