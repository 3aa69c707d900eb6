"""Hand-off of paid jobs to the upscaling provider and intake of its results."""

import logging
import os
from urllib.parse import urlencode, urlparse

import requests
from django.conf import settings
from django.core import signing
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.urls import reverse
from django.utils import timezone

from sellmyimages.const import RESOLUTION_FACTORS
from sellmyimages.models import JobStatus, PaymentStatus
from sellmyimages.services import downloads, jobs
from sellmyimages.utils.exceptions import ConflictError, NotFoundError
from sellmyimages.utils.upsampler_client import UpsamplerError, get_upsampler_client

logger = logging.getLogger(__name__)

CALLBACK_SALT = "sellmyimages.upscale-callback"
CALLBACK_MAX_AGE = 7 * 24 * 60 * 60
OUTPUT_FOLDER = "upscaled"
ALLOWED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")


def trigger_upscaling(job_id, context=None) -> bool:
    """
    Claim a paid job for processing and queue its submission.

    Args:
        job_id: job to start
        context: ``{"admin_override": True}`` marks the job paid first (admin
            jobs never go through checkout)

    Raises:
        ConflictError: the job is not a paid ``pending`` job, e.g. a second
            delivery of the same completion already claimed it.
    """
    context = context or {}

    if context.get("admin_override"):
        jobs.transition(
            job_id,
            from_status=JobStatus.PENDING,
            from_payment_status=PaymentStatus.PENDING,
            payment_status=PaymentStatus.PAID,
            paid_at=timezone.now(),
        )

    claimed = jobs.transition(
        job_id,
        from_status=JobStatus.PENDING,
        from_payment_status=PaymentStatus.PAID,
        status=JobStatus.PROCESSING,
        processing_started_at=timezone.now(),
    )
    if not claimed:
        job = jobs.get_job(job_id)
        raise ConflictError(
            f"Job {job.job_id} cannot start processing",
            code="not_processable",
            details={"status": job.status, "payment_status": job.payment_status},
        )

    from sellmyimages.tasks.upscaling import dispatch_upscale

    dispatch_upscale.delay(str(job_id))
    logger.info(f"Queued upscaling for job {job_id}")
    return True


def build_callback_url(job_id) -> str:
    token = signing.dumps(str(job_id), salt=CALLBACK_SALT)
    return f"{settings.SITE_URL}{reverse('upscale_callback')}?{urlencode({'token': token})}"


def read_callback_token(token) -> str:
    """
    Return the job id a callback token was minted for.

    Raises:
        NotFoundError: the token is missing, forged or too old.
    """
    try:
        return signing.loads(token or "", salt=CALLBACK_SALT, max_age=CALLBACK_MAX_AGE)
    except signing.BadSignature:
        raise NotFoundError("Invalid callback token", code="invalid_callback")


def submit_to_provider(job_id, client=None) -> bool:
    """Send a processing job to Upsampler; a rejected submission fails the job."""
    job = jobs.get_job(job_id)
    if job.status != JobStatus.PROCESSING:
        logger.warning(f"Job {job.job_id} is {job.status}, not submitting")
        return False

    client = client or get_upsampler_client()
    try:
        task = client.create_task(
            image_url=job.image_url,
            upscale_factor=RESOLUTION_FACTORS[job.resolution],
            callback_url=build_callback_url(job.job_id),
        )
    except (requests.RequestException, UpsamplerError) as exc:
        logger.error(f"Upsampler rejected job {job.job_id}: {exc}")
        jobs.mark_failed(job.job_id, f"Upscaling request failed: {exc}")
        return False

    jobs.transition(
        job.job_id,
        from_status=JobStatus.PROCESSING,
        provider_task_id=str(task["id"]),
    )
    logger.info(f"Job {job.job_id} submitted to Upsampler as task {task['id']}")
    return True


def _output_name(job_id, file_url, content_type=""):
    ext = os.path.splitext(urlparse(file_url).path)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        ext = ".jpg" if "jpeg" in content_type else ".png"
    return f"{OUTPUT_FOLDER}/{job_id}{ext}"


def handle_upscale_result(job_id, success, file_url_or_reason) -> bool:
    """
    Record the provider's outcome for a processing job.

    On success the output is copied into our storage, a download token is
    minted and the job completes. A job that already left ``processing``
    keeps its state and the copied file is discarded.
    """
    job = jobs.get_job(job_id)

    if not success:
        failed = jobs.transition(
            job.job_id,
            from_status=JobStatus.PROCESSING,
            status=JobStatus.FAILED,
            failure_reason=str(file_url_or_reason or "Upscaling failed")[:2000],
        )
        if failed:
            logger.error(f"Upscaling failed for job {job.job_id}: {file_url_or_reason}")
        return failed

    if job.status != JobStatus.PROCESSING:
        logger.info(f"Result for job {job.job_id} arrived in status {job.status}, ignoring")
        return False

    try:
        response = requests.get(file_url_or_reason, timeout=settings.UPSAMPLER_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error(f"Could not fetch upscaled image for job {job.job_id}: {exc}")
        jobs.mark_failed(job.job_id, f"Could not download upscaled image: {exc}")
        return False

    name = _output_name(job.job_id, file_url_or_reason, response.headers.get("Content-Type", ""))
    stored_path = default_storage.save(name, ContentFile(response.content))

    token, expires_at = downloads.new_token()
    completed = jobs.update_processing_result(job.job_id, stored_path, token, expires_at)
    if not completed:
        default_storage.delete(stored_path)
        logger.info(f"Job {job.job_id} left processing before its result was stored")
        return False

    logger.info(f"Job {job.job_id} completed, output stored at {stored_path}")
    return True


def create_admin_job(source, resolution, email=None):
    """Create a pre-paid job and start it immediately."""
    job = jobs.create_job(source, resolution, email=email, status=JobStatus.PENDING)
    trigger_upscaling(job.job_id, {"admin_override": True})
    return jobs.get_job(job.job_id)
