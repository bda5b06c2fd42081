from django.db import transaction
from django.dispatch import Signal

# Lifecycle events. Receivers get the instance plus an ``action`` string.
proposal_created = Signal()
job_updated = Signal()
contract_updated = Signal()


def send_on_commit(signal, sender, **kwargs):
    """Send ``signal`` once the surrounding transaction commits."""
    transaction.on_commit(lambda: signal.send(sender=sender, **kwargs))
