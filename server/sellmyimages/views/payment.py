import json
import logging

import stripe
from django.conf import settings
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from sellmyimages.services.payments import PaymentService

logger = logging.getLogger(__name__)


@csrf_exempt
@api_view(["POST"])
@permission_classes([AllowAny])
def stripe_webhook(request):
    """
    Reconcile Stripe events into job state.

    Only a bad signature is refused. Once verified, the event is always
    acknowledged so Stripe stops retrying; reconciliation problems are logged.
    """
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), sig_header, settings.STRIPE_WEBHOOK_SECRET
        )
        event = json.loads(payload)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning(f"Rejected Stripe webhook: {exc}")
        return HttpResponse(status=400)

    try:
        PaymentService().handle_event(event)
    except Exception:
        logger.exception(f"Error handling Stripe event {event.get('id')} ({event.get('type')})")

    return HttpResponse(status=200)
