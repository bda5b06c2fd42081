import hashlib
import hmac
import logging

import requests
from django.conf import settings
from django.db import transaction

from .models import PaymentEvent

logger = logging.getLogger(__name__)


def record_event(kind, job, amount, contract=None, **payload):
    """
    Add an event to the outbox. Must run inside the caller's transaction; the
    event is pushed to the payment subsystem after commit.
    """
    event = PaymentEvent.objects.create(
        kind=kind,
        job=job,
        contract=contract,
        amount=amount,
        payload={key: str(value) for key, value in payload.items()},
    )
    transaction.on_commit(lambda: dispatch_event(event.pk))
    return event


def build_payload(event):
    payload = {
        'event_id': event.pk,
        'kind': event.kind,
        'job_id': str(event.job_id),
        'contract_id': str(event.contract_id) if event.contract_id else None,
        'amount': str(event.amount),
        'currency': settings.PAYMENTS_CURRENCY,
    }
    payload.update(event.payload)
    return payload


def dispatch_event(event_id):
    """POST a pending event to PAYMENTS_EVENTS_URL. Failures are recorded on the event."""
    try:
        event = PaymentEvent.objects.get(pk=event_id)
    except PaymentEvent.DoesNotExist:
        logger.error(f"Payment event {event_id} not found")
        return None

    if event.status == 'sent':
        return event
    if not settings.PAYMENTS_EVENTS_URL:
        logger.info(f"PAYMENTS_EVENTS_URL not set, leaving payment event {event.pk} pending")
        return event

    headers = {
        'Authorization': f'Bearer {settings.PAYMENTS_API_KEY.strip()}',
        'Content-Type': 'application/json',
    }
    try:
        response = requests.post(
            settings.PAYMENTS_EVENTS_URL,
            json=build_payload(event),
            headers=headers,
            timeout=settings.PAYMENTS_TIMEOUT,
        )
        response.raise_for_status()
        event.mark_as_sent()
        logger.info(f"Payment event {event.pk} ({event.kind}) sent for job {event.job_id}")
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send payment event {event.pk}: {str(e)}")
        event.mark_as_failed(str(e))
    return event


def dispatch_pending(limit=100):
    """Retry events that were never delivered."""
    sent = 0
    for event_id in PaymentEvent.objects.filter(status__in=['pending', 'failed']).values_list('pk', flat=True)[:limit]:
        event = dispatch_event(event_id)
        if event is not None and event.status == 'sent':
            sent += 1
    return sent


def compute_signature(body):
    secret = settings.PAYMENTS_WEBHOOK_SECRET.encode('utf-8')
    return hmac.new(secret, body, hashlib.sha256).hexdigest()


def verify_signature(body, signature):
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(body), signature)
