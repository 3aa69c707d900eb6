"""Download tokens for finished upscales."""

import logging
import os
import secrets
from datetime import timedelta

from django.conf import settings
from django.core.files.storage import default_storage
from django.db.models import F
from django.utils import timezone

from sellmyimages.models import JobStatus, UpscaleJob
from sellmyimages.services import jobs
from sellmyimages.utils.exceptions import ForbiddenError, GoneError, NotFoundError

logger = logging.getLogger(__name__)


def new_token(now=None):
    """Return a fresh ``(token, expires_at)`` pair.

    Tokens are 64 hex characters of randomness and carry nothing about the job.
    """
    now = now or timezone.now()
    return secrets.token_hex(32), now + timedelta(hours=settings.DOWNLOAD_EXPIRY_HOURS)


def issue_token(job_id) -> UpscaleJob:
    """Replace the download token of a completed job and restart its window."""
    token, expires_at = new_token()
    reissued = jobs.transition(
        job_id,
        from_status=JobStatus.COMPLETED,
        download_token=token,
        download_expires_at=expires_at,
        download_count=0,
    )
    job = jobs.get_job(job_id)
    if not reissued:
        raise ForbiddenError(f"Job {job.job_id} has no download to reissue")
    logger.info(f"Reissued download token for job {job.job_id}")
    return job


def download_filename(job) -> str:
    ext = os.path.splitext(job.upscaled_file_path)[1] or ".png"
    return f"upscaled-{job.resolution}-{job.job_id}{ext}"


def redeem(token, now=None):
    """
    Spend one use of a download token.

    Returns:
        ``(file, filename)`` with the stored file opened for reading.

    Raises:
        NotFoundError: unknown token.
        ForbiddenError: the job has not completed.
        GoneError: the link expired, its uses are spent or the file is gone.
    """
    now = now or timezone.now()
    if not token:
        raise NotFoundError("Download not found", code="invalid_token")

    try:
        job = UpscaleJob.objects.get(download_token=token)
    except UpscaleJob.DoesNotExist:
        raise NotFoundError("Download not found", code="invalid_token")

    if job.status != JobStatus.COMPLETED:
        raise ForbiddenError(code="download_not_ready")

    if job.download_expires_at is None or job.download_expires_at <= now:
        raise GoneError(code="download_expired")

    if not job.upscaled_file_path or not default_storage.exists(job.upscaled_file_path):
        raise GoneError("The upscaled file is no longer available", code="file_missing")

    spent = UpscaleJob.objects.filter(
        pk=job.pk,
        download_token=token,
        download_count__lt=settings.DOWNLOAD_MAX_USES,
    ).update(download_count=F("download_count") + 1, updated_at=now)
    if not spent:
        raise GoneError("This download link has already been used", code="download_used")

    logger.info(f"Download token redeemed for job {job.job_id}")
    return default_storage.open(job.upscaled_file_path, "rb"), download_filename(job)
