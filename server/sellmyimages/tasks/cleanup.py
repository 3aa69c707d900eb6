from celery import shared_task
from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone
from datetime import timedelta
from sellmyimages.models import JobStatus, PaymentStatus, UpscaleJob
from sellmyimages.services.images import destroy_upload
import logging

logger = logging.getLogger(__name__)


def _release_upload(upload):
    """Delete an uploaded source image once no job points at it."""
    if upload is None:
        return
    if UpscaleJob.objects.filter(upload=upload).exists():
        return
    destroy_upload(upload)


@shared_task(name="sellmyimages.tasks.cleanup_abandoned_jobs")
def cleanup_abandoned_jobs(now=None):
    """
    Hourly task to retire unpaid checkouts

    1. Jobs still awaiting payment after ABANDONED_JOB_TTL_HOURS become abandoned
    2. Abandoned jobs older than ABANDONED_JOB_RETENTION_DAYS are deleted, with
       their uploaded source image when nothing else uses it

    Jobs abandoned in step 1 are never deleted in the same run.

    Returns the number of deleted jobs.
    """
    now = now or timezone.now()
    ttl_cutoff = now - timedelta(hours=settings.ABANDONED_JOB_TTL_HOURS)
    retention_cutoff = now - timedelta(days=settings.ABANDONED_JOB_RETENTION_DAYS)

    stale = UpscaleJob.objects.filter(
        status=JobStatus.AWAITING_PAYMENT,
        payment_status=PaymentStatus.PENDING,
        created_at__lt=ttl_cutoff,
    )
    stale_ids = list(stale.values_list("pk", flat=True))
    abandoned = 0
    if stale_ids:
        abandoned = UpscaleJob.objects.filter(
            pk__in=stale_ids,
            status=JobStatus.AWAITING_PAYMENT,
        ).update(status=JobStatus.ABANDONED, updated_at=now)
    logger.info(f"Marked {abandoned} unpaid jobs as abandoned")

    expired_jobs = (
        UpscaleJob.objects.filter(
            status=JobStatus.ABANDONED,
            created_at__lt=retention_cutoff,
        )
        .exclude(pk__in=stale_ids)
        .select_related("upload")
    )

    count = 0
    for job in expired_jobs:
        try:
            upload = job.upload
            job.delete()
            count += 1
            _release_upload(upload)
        except Exception as e:
            logger.error(f"Error cleaning up abandoned job {job.job_id}: {e}")

    logger.info(f"Deleted {count} abandoned jobs")
    return count


@shared_task(name="sellmyimages.tasks.purge_expired_downloads")
def purge_expired_downloads(now=None):
    """
    Daily task to delete upscaled files whose download window closed more than
    DOWNLOAD_FILE_RETENTION_DAYS ago
    """
    now = now or timezone.now()
    cutoff = now - timedelta(days=settings.DOWNLOAD_FILE_RETENTION_DAYS)
    expired_jobs = UpscaleJob.objects.filter(
        status=JobStatus.COMPLETED,
        download_expires_at__lt=cutoff,
    ).exclude(upscaled_file_path="")

    count = 0
    for job in expired_jobs:
        try:
            if default_storage.exists(job.upscaled_file_path):
                default_storage.delete(job.upscaled_file_path)
            UpscaleJob.objects.filter(pk=job.pk).update(upscaled_file_path="", updated_at=now)
            count += 1
        except Exception as e:
            logger.error(f"Error purging download for job {job.job_id}: {e}")

    logger.info(f"Purged {count} expired downloads")
    return count
