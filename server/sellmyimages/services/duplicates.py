"""Duplicate prevention for checkout requests.

Rapid repeat clicks on the same buy button would otherwise create one unpaid
job (and one Stripe session) per click. A recent unpaid job for the same
source and resolution is reused instead, with a fresh checkout session.
"""

import logging
import secrets
from contextlib import contextmanager
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from sellmyimages.models import JobStatus, PaymentStatus, UpscaleJob
from sellmyimages.utils.exceptions import ConflictError

logger = logging.getLogger(__name__)

REUSABLE_STATUSES = (JobStatus.AWAITING_PAYMENT, JobStatus.ABANDONED)
CHECKOUT_LOCK_PREFIX = "smi:checkout-lock"


def _lock_key(source, resolution: str) -> str:
    return f"{CHECKOUT_LOCK_PREFIX}:{source.reference}:{resolution}"


def find_reusable_job(source, resolution, now=None):
    """
    Return the newest unpaid job for the same source and resolution created
    inside the reuse window, or None.
    """
    now = now or timezone.now()
    cutoff = now - timedelta(minutes=settings.CHECKOUT_REUSE_WINDOW_MINUTES)

    return (
        UpscaleJob.objects.filter(
            **source.lookup(),
            resolution=resolution,
            status__in=REUSABLE_STATUSES,
            payment_status=PaymentStatus.PENDING,
            created_at__gt=cutoff,
        )
        .order_by("-created_at")
        .first()
    )


@contextmanager
def checkout_lock(source, resolution):
    """
    Serialize checkout creation per (source, resolution).

    The lookup for a reusable job and the creation of a new one happen while
    holding the lock, so two near-simultaneous clicks cannot both miss the
    lookup and create two billable jobs.

    Raises:
        ConflictError: another request holds the lock.
    """
    key = _lock_key(source, resolution)
    owner = secrets.token_hex(8)
    if not cache.add(key, owner, timeout=settings.CHECKOUT_LOCK_SECONDS):
        logger.info(f"Checkout already in progress for {source.reference} ({resolution})")
        raise ConflictError(
            "A checkout for this image is already being prepared, please try again",
            code="checkout_in_progress",
        )
    try:
        yield
    finally:
        if cache.get(key) == owner:
            cache.delete(key)
