"""Stripe checkout creation and webhook reconciliation.

`PaymentService` owns the translation between Stripe's objects and the rest of
the app: callers only ever see `CheckoutSession` (session id, checkout URL and
amount in major units), and webhook events are reconciled into job state
through guarded updates so provider retries are harmless.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import urlencode

import stripe
from django.conf import settings
from django.utils import timezone

from sellmyimages.const import PAYMENT_SOURCE
from sellmyimages.models import JobStatus, PaymentStatus
from sellmyimages.services import jobs
from sellmyimages.services.upscaling import trigger_upscaling
from sellmyimages.utils.exceptions import (
    ConfigurationError,
    NotFoundError,
    ProviderError,
    ValidationError,
)

logger = logging.getLogger(__name__)

MINOR_UNITS = Decimal(100)

# An expired checkout may still be paid late; failed jobs stay failed.
COMPLETABLE_STATUSES = (JobStatus.AWAITING_PAYMENT, JobStatus.ABANDONED)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * MINOR_UNITS).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / MINOR_UNITS).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    checkout_url: str
    amount: Decimal


class PaymentService:
    """Stripe-backed payment orchestration"""

    def validate_configuration(self):
        if not settings.STRIPE_SECRET_KEY:
            raise ConfigurationError(details={"missing": "STRIPE_SECRET_KEY"})
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise ConfigurationError(details={"missing": "STRIPE_WEBHOOK_SECRET"})
        return True

    # --- Checkout -----------------------------------------------------------

    def _return_urls(self, job):
        base = settings.FRONTEND_URL
        success = urlencode({"smi_payment": "success", "job_id": str(job.job_id)})
        cancel = urlencode({"smi_payment": "cancelled", "job_id": str(job.job_id)})
        return f"{base}/?{success}", f"{base}/?{cancel}"

    def create_checkout_session(self, job, email=None) -> CheckoutSession:
        """
        Open a Stripe checkout session charging the job's frozen price.

        Raises:
            ConfigurationError: Stripe is not configured.
            ValidationError: the job has no price snapshot.
            ProviderError: Stripe rejected the session.
        """
        self.validate_configuration()

        if job.customer_price is None:
            raise ValidationError("Job has no price", code="missing_price")

        unit_amount = to_minor_units(job.customer_price)
        success_url, cancel_url = self._return_urls(job)
        metadata = {
            "job_id": str(job.job_id),
            "resolution": job.resolution,
            "source": PAYMENT_SOURCE,
        }

        dimensions = ""
        if job.output_width and job.output_height:
            dimensions = f" ({job.output_width}x{job.output_height} pixels)"

        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": settings.STRIPE_CURRENCY,
                        "product_data": {
                            "name": f"{job.resolution} Upscaled Image",
                            "description": f"High-resolution {job.resolution} AI upscale{dimensions}",
                        },
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "api_key": settings.STRIPE_SECRET_KEY,
        }
        if email:
            params["customer_email"] = email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as exc:
            logger.error(f"Stripe rejected checkout session for job {job.job_id}: {exc}")
            raise ProviderError(code="stripe_error")

        return self._normalize_session(session, unit_amount)

    def _normalize_session(self, session, unit_amount) -> CheckoutSession:
        session_id = getattr(session, "id", None)
        checkout_url = getattr(session, "url", None)
        if not session_id or not checkout_url:
            logger.error(f"Stripe returned an incomplete checkout session: {session}")
            raise ProviderError(code="stripe_error")

        amount_total = getattr(session, "amount_total", None)
        if not isinstance(amount_total, int):
            amount_total = unit_amount

        return CheckoutSession(
            session_id=session_id,
            checkout_url=checkout_url,
            amount=from_minor_units(amount_total),
        )

    def expire_checkout_session(self, session_id) -> bool:
        """Close a superseded session so a job has one open session at most."""
        try:
            stripe.checkout.Session.expire(session_id, api_key=settings.STRIPE_SECRET_KEY)
        except stripe.StripeError as exc:
            logger.warning(f"Could not expire checkout session {session_id}: {exc}")
            return False
        return True

    # --- Webhooks -----------------------------------------------------------

    def handle_event(self, event) -> bool:
        """Dispatch a verified Stripe event; unknown event types are ignored."""
        handlers = {
            "checkout.session.completed": self.handle_checkout_completed,
            "checkout.session.async_payment_succeeded": self.handle_checkout_completed,
            "checkout.session.expired": self.handle_checkout_expired,
            "checkout.session.async_payment_failed": self.handle_payment_failed,
            "payment_intent.payment_failed": self.handle_payment_failed,
        }
        event_type = event.get("type")
        handler = handlers.get(event_type)
        if handler is None:
            logger.debug(f"Ignoring Stripe event {event_type}")
            return False

        obj = (event.get("data") or {}).get("object") or {}
        return handler(obj)

    def _job_for(self, obj):
        metadata = obj.get("metadata") or {}
        if metadata.get("source") != PAYMENT_SOURCE:
            logger.debug(f"Ignoring Stripe object {obj.get('id')} from another integration")
            return None

        job_id = metadata.get("job_id")
        if not job_id:
            logger.warning(f"Stripe object {obj.get('id')} has no job_id in metadata")
            return None

        try:
            return jobs.get_job(job_id)
        except NotFoundError:
            logger.warning(f"Stripe object {obj.get('id')} references unknown job {job_id}")
            return None

    def handle_checkout_completed(self, session) -> bool:
        """
        Mark the job paid and start upscaling.

        Re-deliveries are no-ops: once the job is paid the guard no longer
        matches.
        """
        job = self._job_for(session)
        if job is None:
            return False

        if session.get("payment_status") == "unpaid":
            logger.info(f"Checkout {session.get('id')} completed without payment yet, waiting")
            return False

        changes = {
            "status": JobStatus.PENDING,
            "payment_status": PaymentStatus.PAID,
            "paid_at": timezone.now(),
        }
        if session.get("payment_intent"):
            changes["payment_intent_id"] = session["payment_intent"]
        if isinstance(session.get("amount_total"), int):
            changes["amount_charged"] = from_minor_units(session["amount_total"])

        applied = jobs.transition(
            job.job_id,
            from_status=COMPLETABLE_STATUSES,
            from_payment_status=PaymentStatus.PENDING,
            **changes,
        )
        if not applied:
            self._log_unapplied_payment(job, session)
            return False

        customer_email = (session.get("customer_details") or {}).get("email") or session.get(
            "customer_email"
        )
        if customer_email:
            jobs.update_email(job.job_id, customer_email, only_if_empty=True)

        logger.info(f"Payment completed for job {job.job_id}")
        trigger_upscaling(job.job_id, {"payment_intent": session.get("payment_intent")})
        return True

    def _log_unapplied_payment(self, job, session):
        """Tell a redelivery apart from money taken that the job cannot accept."""
        job = jobs.get_job(job.job_id)
        intent = session.get("payment_intent")
        if job.payment_status == PaymentStatus.PAID and intent == job.payment_intent_id:
            logger.info(f"Payment for job {job.job_id} already reconciled, ignoring")
            return
        logger.warning(
            f"Payment {intent} from checkout {session.get('id')} was taken for job "
            f"{job.job_id} in status {job.status}/{job.payment_status}; refund it"
        )

    def handle_checkout_expired(self, session) -> bool:
        job = self._job_for(session)
        if job is None:
            return False

        if job.checkout_session_id and session.get("id") != job.checkout_session_id:
            logger.info(
                f"Expired session {session.get('id')} was superseded for job {job.job_id}"
            )
            return False

        applied = jobs.transition(
            job.job_id,
            from_status=JobStatus.AWAITING_PAYMENT,
            from_payment_status=PaymentStatus.PENDING,
            status=JobStatus.ABANDONED,
        )
        if applied:
            logger.info(f"Checkout expired, job {job.job_id} abandoned")
        else:
            logger.info(f"Checkout expired for job {job.job_id} in status {job.status}, ignoring")
        return applied

    def handle_payment_failed(self, obj) -> bool:
        job = self._job_for(obj)
        if job is None:
            return False

        applied = jobs.transition(
            job.job_id,
            from_status=JobStatus.AWAITING_PAYMENT,
            from_payment_status=PaymentStatus.PENDING,
            status=JobStatus.FAILED,
            payment_status=PaymentStatus.FAILED,
            failure_reason=_payment_failure_reason(obj),
        )
        if applied:
            logger.info(f"Payment failed for job {job.job_id}")
        return applied


def _payment_failure_reason(obj) -> str:
    error = obj.get("last_payment_error") or {}
    return error.get("message") or "Payment failed"
