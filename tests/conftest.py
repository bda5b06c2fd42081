from datetime import timedelta
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from apps.contracts.models import Contract
from apps.jobs.models import Job, Proposal
from apps.users.models import User, Client, Worker
from core.clock import FixedClock


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def now(clock):
    return clock.now()


@pytest.fixture
def client_user(db):
    user = User.objects.create_user(username='carla', email='carla@example.com', password='secret-pass-1')
    Client.objects.create(user=user, location='Palermo')
    return user


@pytest.fixture
def make_worker(db):
    def make(username):
        user = User.objects.create_user(username=username, email=f'{username}@example.com', password='secret-pass-1')
        Worker.objects.create(user=user, has_experience=True)
        return user
    return make


@pytest.fixture
def worker(make_worker):
    return make_worker('walter')


@pytest.fixture
def make_job(client_user, now):
    def make(**overrides):
        data = {
            'client': client_user,
            'title': 'Fix the kitchen sink',
            'price': Decimal('100.00'),
            'status': 'open',
            'start_date': now + timedelta(days=3),
            'end_date': now + timedelta(days=3, hours=4),
            'max_workers': 1,
        }
        data.update(overrides)
        return Job.objects.create(**data)
    return make


@pytest.fixture
def make_proposal(now):
    def make(job, freelancer, minutes_ago=0, **overrides):
        data = {'job': job, 'freelancer': freelancer, 'proposed_price': job.price}
        data.update(overrides)
        proposal = Proposal.objects.create(**data)
        # created_at is auto_now_add; pin it so ordering is deterministic
        Proposal.objects.filter(pk=proposal.pk).update(created_at=now - timedelta(minutes=minutes_ago))
        proposal.refresh_from_db()
        return proposal
    return make


@pytest.fixture
def make_contract():
    def make(job, doer, **overrides):
        data = {
            'job': job,
            'client': job.client,
            'doer': doer,
            'price': job.price,
            'commission': Decimal('10.00'),
            'total_price': job.price + Decimal('10.00'),
            'status': 'in_progress',
            'start_date': job.start_date,
            'end_date': job.end_date,
        }
        data.update(overrides)
        contract = Contract.objects.create(**data)
        job.selected_workers.add(doer)
        return contract
    return make


@pytest.fixture
def api():
    return APIClient()


@pytest.fixture
def client_api(client_user):
    api = APIClient()
    api.force_authenticate(user=client_user)
    return api


@pytest.fixture
def worker_api(worker):
    api = APIClient()
    api.force_authenticate(user=worker)
    return api
