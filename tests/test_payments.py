from decimal import Decimal

import pytest
import requests

from apps.payments import utils
from apps.payments.models import PaymentEvent

pytestmark = pytest.mark.django_db

EVENTS_URL = 'https://payments.example.test/events'


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Server Error")


@pytest.fixture
def payments_settings(settings):
    settings.PAYMENTS_EVENTS_URL = EVENTS_URL
    settings.PAYMENTS_API_KEY = 'test-key'
    settings.PAYMENTS_CURRENCY = 'ARS'
    return settings


@pytest.fixture
def posted(monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        return FakeResponse()

    monkeypatch.setattr(utils.requests, 'post', fake_post)
    return calls


def test_event_is_dispatched_after_commit(make_job, payments_settings, posted, django_capture_on_commit_callbacks):
    job = make_job()

    with django_capture_on_commit_callbacks(execute=True):
        event = utils.record_event('refund', job, Decimal('110.00'), reason='client_cancelled')
        assert posted == []

    event.refresh_from_db()
    assert event.status == 'sent'
    assert event.sent_at is not None
    call = posted[0]
    assert call['url'] == EVENTS_URL
    assert call['headers']['Authorization'] == 'Bearer test-key'
    assert call['json']['kind'] == 'refund'
    assert call['json']['job_id'] == str(job.pk)
    assert call['json']['amount'] == '110.00'
    assert call['json']['currency'] == 'ARS'
    assert call['json']['reason'] == 'client_cancelled'


def test_failed_delivery_is_recorded_and_retried(make_job, payments_settings, monkeypatch):
    job = make_job()
    event = PaymentEvent.objects.create(kind='refund', job=job, amount=Decimal('10.00'))

    def broken_post(*args, **kwargs):
        raise requests.exceptions.ConnectionError('connection refused')

    monkeypatch.setattr(utils.requests, 'post', broken_post)
    utils.dispatch_event(event.pk)
    event.refresh_from_db()
    assert event.status == 'failed'
    assert 'connection refused' in event.error_message

    monkeypatch.setattr(utils.requests, 'post', lambda *args, **kwargs: FakeResponse())
    assert utils.dispatch_pending() == 1
    event.refresh_from_db()
    assert event.status == 'sent'


def test_http_error_marks_event_failed(make_job, payments_settings, monkeypatch):
    event = PaymentEvent.objects.create(kind='refund', job=make_job(), amount=Decimal('10.00'))
    monkeypatch.setattr(utils.requests, 'post', lambda *args, **kwargs: FakeResponse(502))

    utils.dispatch_event(event.pk)

    event.refresh_from_db()
    assert event.status == 'failed'


def test_events_stay_pending_without_endpoint(make_job, settings, posted):
    settings.PAYMENTS_EVENTS_URL = ''
    event = PaymentEvent.objects.create(kind='refund', job=make_job(), amount=Decimal('10.00'))

    utils.dispatch_event(event.pk)

    event.refresh_from_db()
    assert event.status == 'pending'
    assert posted == []


def test_sent_events_are_not_posted_again(make_job, payments_settings, posted):
    event = PaymentEvent.objects.create(kind='refund', job=make_job(), amount=Decimal('10.00'), status='sent')
    utils.dispatch_event(event.pk)
    assert posted == []


def test_signature_verification(settings):
    settings.PAYMENTS_WEBHOOK_SECRET = 'whsec-test'
    body = b'{"event": "budget_paid"}'
    signature = utils.compute_signature(body)

    assert utils.verify_signature(body, signature)
    assert not utils.verify_signature(body + b' ', signature)
    assert not utils.verify_signature(body, None)
