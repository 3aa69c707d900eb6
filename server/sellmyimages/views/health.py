from celery import current_app
from django.conf import settings
from django.core.cache import cache
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import connection
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from sellmyimages.models import UpscaleJob
from sellmyimages.services.payments import PaymentService
from sellmyimages.services.upscaling import OUTPUT_FOLDER
from sellmyimages.utils import ConfigurationError

HEALTH_FILE = f"{OUTPUT_FOLDER}/.health"


def _check_database():
    connection.ensure_connection()
    UpscaleJob.objects.exists()
    return "ok"


def _check_cache():
    cache.set("smi:health", "ok", 10)
    return "ok" if cache.get("smi:health") == "ok" else "error"


def _check_worker():
    broker_url = (settings.CELERY_BROKER_URL or "").strip()
    if not broker_url or broker_url.startswith("memory://"):
        return "not configured"
    inspector = current_app.control.inspect()
    return "ok" if inspector and inspector.stats() else "no workers"


def _check_output_storage():
    """Upscaled files must be writable or paid jobs cannot complete."""
    name = default_storage.save(HEALTH_FILE, ContentFile(b"ok"))
    default_storage.delete(name)
    return "ok"


def _check_payments():
    try:
        PaymentService().validate_configuration()
    except ConfigurationError:
        return "not configured"
    return "ok"


def _check_upscaler():
    return "ok" if settings.UPSAMPLER_API_KEY else "not configured"


CHECKS = (
    ("database", _check_database),
    ("cache", _check_cache),
    ("celery", _check_worker),
    ("storage", _check_output_storage),
    ("payments", _check_payments),
    ("upsampler", _check_upscaler),
)


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """
    Readiness of everything a sale depends on: checkout (payments, cache
    lock), hand-off (worker, upsampler) and delivery (storage).
    """
    checks = {}
    for name, check in CHECKS:
        try:
            checks[name] = check()
        except Exception as exc:
            checks[name] = f"error: {exc}"

    healthy = all(value == "ok" for value in checks.values())

    return Response(
        {
            "status": "healthy" if healthy else "degraded",
            "sales_enabled": settings.SMI_ENABLED,
            "checks": checks,
        },
        status=200 if healthy else 503,
    )
