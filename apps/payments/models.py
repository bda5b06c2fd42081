from django.db import models
from django.db.models import Q
from django.utils import timezone

PAYMENT_EVENT_KIND_CHOICES = [
    ('release_escrow', 'Release Escrow'),
    ('charge_supplemental', 'Charge Supplemental Amount'),
    ('refund', 'Refund'),
]

PAYMENT_EVENT_STATUS_CHOICES = [
    ('pending', 'Pending'),
    ('sent', 'Sent'),
    ('failed', 'Failed'),
]


class PaymentEvent(models.Model):
    """Outbox of events handed to the external payment subsystem."""
    kind = models.CharField(max_length=30, choices=PAYMENT_EVENT_KIND_CHOICES)
    job = models.ForeignKey('jobs.Job', on_delete=models.CASCADE, related_name='payment_events')
    contract = models.ForeignKey(
        'contracts.Contract', on_delete=models.CASCADE, null=True, blank=True, related_name='payment_events'
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=PAYMENT_EVENT_STATUS_CHOICES, default='pending')
    error_message = models.TextField(blank=True, null=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']
        constraints = [
            # Escrow for a contract is released at most once.
            models.UniqueConstraint(
                fields=['contract'],
                condition=Q(kind='release_escrow'),
                name='payment_event_single_escrow_release',
            ),
        ]

    def __str__(self):
        return f"{self.kind} {self.amount} for job {self.job_id} ({self.status})"

    def mark_as_sent(self):
        self.status = 'sent'
        self.sent_at = timezone.now()
        self.save(update_fields=['status', 'sent_at'])

    def mark_as_failed(self, error_message):
        self.status = 'failed'
        self.error_message = error_message
        self.save(update_fields=['status', 'error_message'])
