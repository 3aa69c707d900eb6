"""Job store: the only code that writes `UpscaleJob` rows.

Every update is partial (``QuerySet.update`` with the named columns only) so
concurrent handlers touching different fields of the same job never clobber
each other. State changes go through :func:`transition`, a single
``UPDATE ... WHERE`` whose guard is re-checked by the database, so two
deliveries of the same event cannot both apply.
"""

import logging
import uuid

from django.utils import timezone

from sellmyimages.const import VALID_RESOLUTIONS
from sellmyimages.models import JobStatus, PaymentStatus, UpscaleJob
from sellmyimages.models.job import TERMINAL_STATUSES
from sellmyimages.utils.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

INITIAL_STATUSES = (JobStatus.AWAITING_PAYMENT, JobStatus.PENDING)


def _as_tuple(value):
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(value)
    return (value,)


def normalize_job_id(job_id) -> uuid.UUID:
    if isinstance(job_id, uuid.UUID):
        return job_id
    try:
        return uuid.UUID(str(job_id))
    except (TypeError, ValueError):
        raise NotFoundError("Job not found", code="job_not_found")


def _job_queryset(job_id):
    return UpscaleJob.objects.filter(job_id=normalize_job_id(job_id))


def _update(job_id, **changes) -> int:
    changes["updated_at"] = timezone.now()
    updated = _job_queryset(job_id).update(**changes)
    if not updated:
        raise NotFoundError("Job not found", code="job_not_found")
    return updated


def create_job(source, resolution, email=None, status=JobStatus.AWAITING_PAYMENT) -> UpscaleJob:
    """
    Create a job for an image source.

    Args:
        source: ``ImageSource`` (site image or upload)
        resolution: one of ``VALID_RESOLUTIONS``
        email: optional customer email, may be backfilled later
        status: ``awaiting_payment`` for checkouts, ``pending`` for pre-paid
            admin jobs

    Raises:
        ValidationError: missing or ambiguous source, missing or unsupported
            resolution, or an invalid initial status.
    """
    if source is None:
        raise ValidationError(
            "Either attachment_id or upload_id must be provided", code="missing_id"
        )
    if source.site_image is not None and source.upload is not None:
        raise ValidationError(
            "Cannot provide both attachment_id and upload_id", code="conflicting_ids"
        )
    if source.site_image is None and source.upload is None:
        raise ValidationError(
            "Either attachment_id or upload_id must be provided", code="missing_id"
        )
    if not resolution:
        raise ValidationError("Resolution parameter is required", code="missing_resolution")
    if resolution not in VALID_RESOLUTIONS:
        raise ValidationError(
            f"Unsupported resolution: {resolution}",
            code="invalid_resolution",
            details={"valid_resolutions": list(VALID_RESOLUTIONS)},
        )
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"Jobs cannot be created as {status}", code="invalid_status")

    job = UpscaleJob.objects.create(
        source_type=source.source_type,
        site_image=source.site_image,
        post_id=source.post_id,
        upload=source.upload,
        image_url=source.image_url,
        image_width=source.width or None,
        image_height=source.height or None,
        resolution=resolution,
        email=email or "",
        status=status,
        payment_status=PaymentStatus.PENDING,
    )
    logger.info(f"Created job {job.job_id} ({source.reference}, {resolution}, {status})")
    return job


def get_job(job_id) -> UpscaleJob:
    try:
        return _job_queryset(job_id).select_related("site_image", "upload").get()
    except UpscaleJob.DoesNotExist:
        raise NotFoundError("Job not found", code="job_not_found")


def transition(job_id, *, from_status=None, from_payment_status=None, **changes) -> bool:
    """
    Apply ``changes`` only if the job still matches the guard.

    Args:
        from_status: status (or statuses) the job must currently be in. When
            omitted and ``changes`` sets a status, terminal jobs are excluded.
        from_payment_status: payment status (or statuses) the job must be in.

    Returns:
        True when the row matched the guard and was updated.
    """
    queryset = _job_queryset(job_id)
    if from_status is not None:
        queryset = queryset.filter(status__in=_as_tuple(from_status))
    elif "status" in changes:
        queryset = queryset.exclude(status__in=TERMINAL_STATUSES)
    if from_payment_status is not None:
        queryset = queryset.filter(payment_status__in=_as_tuple(from_payment_status))

    changes["updated_at"] = timezone.now()
    return queryset.update(**changes) == 1


def update_status(job_id, status) -> bool:
    if status not in JobStatus.values:
        raise ValidationError(f"Unknown status: {status}", code="invalid_status")
    if transition(job_id, status=status):
        return True
    job = get_job(job_id)
    raise ConflictError(
        f"Job {job.job_id} is {job.status} and cannot change status",
        details={"status": job.status},
    )


def update_cost_data(job_id, quote) -> bool:
    """
    Record the pricing snapshot once.

    Returns:
        False when the job already carries a snapshot; it is never recomputed.
    """
    written = _job_queryset(job_id).filter(customer_price__isnull=True).update(
        customer_price=quote.customer_price,
        provider_cost=quote.provider_cost,
        output_width=quote.output_width,
        output_height=quote.output_height,
        credits_used=quote.credits,
        cost_recorded_at=timezone.now(),
        updated_at=timezone.now(),
    )
    if not written:
        get_job(job_id)
        logger.info(f"Cost snapshot for job {job_id} already recorded, keeping it")
    return written == 1


def update_payment_status(job_id, payment_status) -> bool:
    if payment_status not in PaymentStatus.values:
        raise ValidationError(f"Unknown payment status: {payment_status}", code="invalid_payment_status")
    changes = {"payment_status": payment_status}
    if payment_status == PaymentStatus.PAID:
        changes["paid_at"] = timezone.now()
    return _update(job_id, **changes) == 1


def update_checkout_session(job_id, session_id) -> bool:
    return _update(job_id, checkout_session_id=session_id) == 1


def update_email(job_id, email, only_if_empty=True) -> bool:
    queryset = _job_queryset(job_id)
    if only_if_empty:
        queryset = queryset.filter(email="")
    return queryset.update(email=email, updated_at=timezone.now()) == 1


def update_processing_result(job_id, file_path, download_token, download_expires_at) -> bool:
    """Complete a processing job with its output file and download token."""
    return transition(
        job_id,
        from_status=JobStatus.PROCESSING,
        from_payment_status=PaymentStatus.PAID,
        status=JobStatus.COMPLETED,
        upscaled_file_path=file_path,
        download_token=download_token,
        download_expires_at=download_expires_at,
        download_count=0,
        completed_at=timezone.now(),
    )


def mark_failed(job_id, reason) -> bool:
    """Fail a job that was handed to (or about to be handed to) the provider."""
    failed = transition(
        job_id,
        from_status=(JobStatus.PENDING, JobStatus.PROCESSING),
        status=JobStatus.FAILED,
        failure_reason=str(reason)[:2000],
    )
    if failed:
        logger.error(f"Job {job_id} failed: {reason}")
    return failed


def delete_job(job_id) -> int:
    deleted, _ = _job_queryset(job_id).delete()
    return deleted
