from celery import shared_task
from sellmyimages.services import upscaling
import logging

logger = logging.getLogger(__name__)


@shared_task(name="sellmyimages.tasks.dispatch_upscale")
def dispatch_upscale(job_id):
    """
    Submit a claimed job to Upsampler

    The job is already ``processing`` when this runs; a rejected submission
    fails it. There are no automatic retries: a failed job is re-run from the
    admin as a new job.
    """
    logger.info(f"Submitting job {job_id} to Upsampler")
    return upscaling.submit_to_provider(job_id)
