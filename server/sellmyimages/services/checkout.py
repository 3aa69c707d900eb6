"""Pricing and checkout creation for the buy button."""

import logging

from django.conf import settings

from sellmyimages.const import VALID_RESOLUTIONS
from sellmyimages.models import JobStatus, PaymentStatus
from sellmyimages.services import cost_calculator, jobs
from sellmyimages.services.duplicates import checkout_lock, find_reusable_job
from sellmyimages.services.payments import PaymentService
from sellmyimages.utils.exceptions import (
    PriceUnavailableError,
    ProviderError,
    ServiceDisabledError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def calculate_prices(source):
    """Quote every resolution; unquotable ones are listed with a reason."""
    prices = []
    for resolution in VALID_RESOLUTIONS:
        try:
            quote = cost_calculator.calculate(source.width, source.height, resolution)
        except PriceUnavailableError as exc:
            prices.append({"resolution": resolution, "available": False, "reason": exc.reason})
            continue
        prices.append(
            {
                "resolution": resolution,
                "price": quote.customer_price,
                "output_width": quote.output_width,
                "output_height": quote.output_height,
                "credits": quote.credits,
                "available": True,
            }
        )
    return prices


def _reuse(job):
    """Bring a reusable job back to ``awaiting_payment`` for a fresh session."""
    if job.status == JobStatus.ABANDONED:
        revived = jobs.transition(
            job.job_id,
            from_status=JobStatus.ABANDONED,
            from_payment_status=PaymentStatus.PENDING,
            status=JobStatus.AWAITING_PAYMENT,
        )
        if not revived:
            return None
        logger.info(f"Revived abandoned job {job.job_id} for a new checkout")
    return jobs.get_job(job.job_id)


def create_checkout(source, resolution, email=None, payment_service=None):
    """
    Open a Stripe checkout for an image, reusing a recent unpaid job when the
    same image and resolution were requested moments ago.

    Returns:
        dict with ``job_id``, ``checkout_url``, ``amount`` and ``reused``

    Raises:
        ServiceDisabledError: sales are switched off.
        ConfigurationError: Stripe is not configured.
        ValidationError: missing or unsupported resolution.
        PriceUnavailableError: the image cannot be priced at this resolution.
        ConflictError: another checkout for the same image is being prepared.
        ProviderError: Stripe rejected the session.
    """
    if not settings.SMI_ENABLED:
        raise ServiceDisabledError()

    payment_service = payment_service or PaymentService()
    payment_service.validate_configuration()

    if not resolution:
        raise ValidationError("Resolution parameter is required", code="missing_resolution")
    if resolution not in VALID_RESOLUTIONS:
        raise ValidationError(
            f"Unsupported resolution: {resolution}",
            code="invalid_resolution",
            details={"valid_resolutions": list(VALID_RESOLUTIONS)},
        )

    with checkout_lock(source, resolution):
        job = None
        revived = False
        existing = find_reusable_job(source, resolution)
        if existing is not None:
            job = _reuse(existing)
            revived = job is not None and existing.status == JobStatus.ABANDONED

        reused = job is not None
        previous_session_id = job.checkout_session_id if reused else None

        if not reused:
            quote = cost_calculator.calculate(source.width, source.height, resolution)
            job = jobs.create_job(source, resolution, email=email)
            jobs.update_cost_data(job.job_id, quote)
            job = jobs.get_job(job.job_id)

        try:
            session = payment_service.create_checkout_session(job, email)
        except ProviderError:
            if not reused:
                jobs.delete_job(job.job_id)
            elif revived:
                jobs.transition(
                    job.job_id,
                    from_status=JobStatus.AWAITING_PAYMENT,
                    from_payment_status=PaymentStatus.PENDING,
                    status=JobStatus.ABANDONED,
                )
            raise

        jobs.update_checkout_session(job.job_id, session.session_id)
        if reused and email:
            jobs.update_email(job.job_id, email, only_if_empty=True)

    if previous_session_id and previous_session_id != session.session_id:
        payment_service.expire_checkout_session(previous_session_id)

    logger.info(
        f"Checkout {session.session_id} opened for job {job.job_id} "
        f"({'reused' if reused else 'new'}, {session.amount})"
    )
    return {
        "job_id": str(job.job_id),
        "checkout_url": session.checkout_url,
        "amount": session.amount,
        "reused": reused,
    }
