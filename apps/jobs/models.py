import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from core.constants import JOB_STATUS_CHOICES, PROPOSAL_STATUS_CHOICES, DEFAULT_ESTIMATED_DURATION_DAYS


class Job(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='jobs')
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    location = models.CharField(max_length=200, blank=True, default='')
    status = models.CharField(max_length=20, choices=JOB_STATUS_CHOICES, default='draft')

    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    # Commission paid when the job was published; forfeited on cancellation.
    publication_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    start_date = models.DateTimeField()
    end_date = models.DateTimeField(null=True, blank=True)
    end_date_flexible = models.BooleanField(default=False)

    max_workers = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    selected_workers = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name='selected_jobs'
    )
    doer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='doer_jobs'
    )

    cancellation_reason = models.TextField(blank=True, null=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    # Budget increase awaiting a supplemental payment
    pending_new_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    pending_payment_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    original_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    previous_status = models.CharField(max_length=20, choices=JOB_STATUS_CHOICES, null=True, blank=True)
    price_change_reason = models.TextField(blank=True, null=True)
    price_history = models.JSONField(default=list, blank=True)

    paused_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'start_date'], name='job_status_start_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.code})"

    @property
    def code(self):
        """Human-shareable job code: first 8 hex characters of the id."""
        return self.id.hex[:8].upper()

    @property
    def is_team_job(self):
        return self.max_workers > 1

    def clean(self):
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': "End date must be on or after the start date."})


class Proposal(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='proposals')
    freelancer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='proposals')
    proposed_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    is_counter_offer = models.BooleanField(default=False)
    estimated_duration = models.PositiveIntegerField(default=DEFAULT_ESTIMATED_DURATION_DAYS)
    message = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=PROPOSAL_STATUS_CHOICES, default='pending')
    rejection_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']
        unique_together = ('job', 'freelancer')

    def __str__(self):
        return f"{self.freelancer.username} applied to {self.job.title}"
