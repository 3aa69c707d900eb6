"""Upscale job database model.

This module defines the `UpscaleJob` model used to track the lifecycle of a
paid upscale request. The job carries two orthogonal state axes:

- ``status``: awaiting_payment -> pending -> processing -> completed, with side
  exits to abandoned (checkout never paid) and failed.
- ``payment_status``: pending -> paid | failed.

Rows are mutated through ``sellmyimages.services.jobs`` so that every state
change is a guarded, partial update.
"""

import uuid

from django.db import models
from django.db.models import Q

from sellmyimages.const import VALID_RESOLUTIONS


class JobStatus(models.TextChoices):
    AWAITING_PAYMENT = 'awaiting_payment', 'Awaiting payment'
    PENDING = 'pending', 'Pending'
    PROCESSING = 'processing', 'Processing'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    ABANDONED = 'abandoned', 'Abandoned'


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    FAILED = 'failed', 'Failed'


class SourceType(models.TextChoices):
    SITE = 'site', 'Site image'
    UPLOAD = 'upload', 'Uploaded image'


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.ABANDONED)

RESOLUTION_CHOICES = [(value, value) for value in VALID_RESOLUTIONS]


class UpscaleJob(models.Model):
    """Image upscale job tracking"""

    job_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)

    # Source reference
    source_type = models.CharField(max_length=10, choices=SourceType.choices)
    site_image = models.ForeignKey(
        'SiteImage',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='jobs'
    )
    post_id = models.PositiveIntegerField(null=True, blank=True)
    upload = models.ForeignKey(
        'UploadedImage',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='jobs'
    )
    image_url = models.URLField(
        max_length=1000,
        help_text="Source image URL handed to the upscaling provider"
    )
    image_width = models.PositiveIntegerField(null=True, blank=True)
    image_height = models.PositiveIntegerField(null=True, blank=True)

    # Request parameters
    resolution = models.CharField(max_length=5, choices=RESOLUTION_CHOICES)
    email = models.EmailField(blank=True, default='')

    # Pricing snapshot, frozen once written
    customer_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    provider_cost = models.DecimalField(max_digits=10, decimal_places=4, null=True, blank=True)
    output_width = models.PositiveIntegerField(null=True, blank=True)
    output_height = models.PositiveIntegerField(null=True, blank=True)
    credits_used = models.PositiveIntegerField(null=True, blank=True)
    cost_recorded_at = models.DateTimeField(null=True, blank=True)

    # Payment linkage
    checkout_session_id = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    payment_intent_id = models.CharField(max_length=255, null=True, blank=True)
    amount_charged = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount Stripe reported on completion, in major units"
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_status = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )

    status = models.CharField(
        max_length=20,
        choices=JobStatus.choices,
        default=JobStatus.AWAITING_PAYMENT
    )

    # Processing outcome
    provider_task_id = models.CharField(max_length=255, blank=True, default='')
    failure_reason = models.TextField(blank=True, default='')
    upscaled_file_path = models.CharField(max_length=500, blank=True, default='')
    download_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    download_expires_at = models.DateTimeField(null=True, blank=True)
    download_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    processing_started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'smi_jobs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['site_image', 'resolution', 'created_at']),
            models.Index(fields=['upload', 'resolution', 'created_at']),
            models.Index(fields=['status', 'created_at']),
            models.Index(fields=['post_id', 'created_at']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(status='completed') | Q(payment_status='paid'),
                name='smi_job_completed_requires_payment',
            ),
        ]

    def __str__(self):
        """Return a human-readable representation of the job."""
        return f"Job {self.job_id} - {self.status}/{self.payment_status} ({self.resolution})"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def has_cost_snapshot(self):
        return self.customer_price is not None

    @property
    def profit(self):
        """Customer price minus provider cost, when both are known."""
        if self.customer_price is None or self.provider_cost is None:
            return None
        return self.customer_price - self.provider_cost
