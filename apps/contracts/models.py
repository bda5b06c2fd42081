import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.constants import CONTRACT_STATUS_CHOICES, ESCROW_STATUS_CHOICES


class Contract(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job = models.ForeignKey('jobs.Job', on_delete=models.CASCADE, related_name='contracts')
    proposal = models.OneToOneField(
        'jobs.Proposal', on_delete=models.SET_NULL, null=True, blank=True, related_name='contract'
    )
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='client_contracts')
    doer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='doer_contracts')

    price = models.DecimalField(max_digits=12, decimal_places=2)
    commission = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=30, choices=CONTRACT_STATUS_CHOICES, default='pending')
    escrow_status = models.CharField(max_length=20, choices=ESCROW_STATUS_CHOICES, default='held')

    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)

    terms_accepted_by_client = models.BooleanField(default=False)
    terms_accepted_by_doer = models.BooleanField(default=False)
    terms_accepted_at = models.DateTimeField(null=True, blank=True)

    client_confirmed = models.BooleanField(default=False)
    doer_confirmed = models.BooleanField(default=False)
    client_confirmed_at = models.DateTimeField(null=True, blank=True)
    doer_confirmed_at = models.DateTimeField(null=True, blank=True)
    awaiting_confirmation_at = models.DateTimeField(null=True, blank=True)
    auto_confirmed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)

    pairing_code = models.CharField(max_length=10, null=True, blank=True)
    pairing_generated_at = models.DateTimeField(null=True, blank=True)
    pairing_expiry = models.DateTimeField(null=True, blank=True)
    client_confirmed_pairing = models.BooleanField(default=False)
    doer_confirmed_pairing = models.BooleanField(default=False)
    actual_start_date = models.DateTimeField(null=True, blank=True)

    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['job', 'doer'], name='contract_unique_job_doer'),
            models.CheckConstraint(
                condition=~Q(status='completed') | Q(client_confirmed=True, doer_confirmed=True),
                name='contract_completed_requires_both_confirmations',
            ),
        ]

    def __str__(self):
        return f"Contract {self.id} for job {self.job_id}"

    def role_of(self, user):
        """Return 'client', 'doer' or None for the given user."""
        if user is None:
            return None
        if user.pk == self.client_id:
            return 'client'
        if user.pk == self.doer_id:
            return 'doer'
        return None
