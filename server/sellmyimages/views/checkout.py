import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse

from sellmyimages.models import JobStatus
from sellmyimages.serializers import (
    CheckoutRequestSerializer,
    JobStatusSerializer,
    PriceRequestSerializer,
    TrackClickSerializer,
    UploadCheckoutRequestSerializer,
)
from sellmyimages.services import analytics, checkout, jobs
from sellmyimages.services.images import site_image_source, upload_source
from sellmyimages.utils import SellMyImagesError, format_error

logger = logging.getLogger(__name__)

# Callers only poll for the outcome; unpaid and queued jobs look the same.
CLIENT_STATUSES = {
    JobStatus.COMPLETED: "completed",
    JobStatus.FAILED: "failed",
    JobStatus.ABANDONED: "failed",
}


def _invalid(serializer, message):
    return Response(
        format_error(code="validation_error", message=message, details=serializer.errors),
        status=status.HTTP_400_BAD_REQUEST,
    )


def _checkout_response(result):
    return Response(
        {
            "job_id": result["job_id"],
            "checkout_url": result["checkout_url"],
            "amount": float(result["amount"]),
            "reused": result["reused"],
        },
        status=status.HTTP_200_OK if result["reused"] else status.HTTP_201_CREATED,
    )


@api_view(["POST"])
@permission_classes([AllowAny])
def calculate_prices(request):
    """
    Quote every resolution for a site image or an upload.
    """
    serializer = PriceRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer, "Invalid price request")

    data = serializer.validated_data
    try:
        if data.get("attachment_id") is not None:
            source = site_image_source(data["attachment_id"], data.get("post_id"))
        else:
            source = upload_source(data["upload_id"])
    except SellMyImagesError as exc:
        return exc.to_response()

    prices = [
        dict(entry, price=float(entry["price"])) if entry["available"] else entry
        for entry in checkout.calculate_prices(source)
    ]
    image = {"src": source.image_url, "width": source.width, "height": source.height}
    if source.site_image is not None:
        image["attachment_id"] = source.site_image.pk
    else:
        image["upload_id"] = str(source.upload.upload_id)

    return Response({"prices": prices, "image": image})


@api_view(["POST"])
@permission_classes([AllowAny])
def create_checkout(request):
    """
    Create a Stripe checkout for a site image.
    """
    serializer = CheckoutRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer, "Invalid checkout request")

    data = serializer.validated_data
    try:
        source = site_image_source(data["attachment_id"], data["post_id"])
        result = checkout.create_checkout(source, data["resolution"], email=data.get("email") or None)
    except SellMyImagesError as exc:
        return exc.to_response()

    return _checkout_response(result)


@api_view(["POST"])
@permission_classes([AllowAny])
def create_upload_checkout(request):
    """
    Create a Stripe checkout for a previously uploaded image.
    """
    serializer = UploadCheckoutRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid(serializer, "Invalid checkout request")

    data = serializer.validated_data
    try:
        source = upload_source(data["upload_id"])
        result = checkout.create_checkout(source, data["resolution"], email=data.get("email") or None)
    except SellMyImagesError as exc:
        return exc.to_response()

    return _checkout_response(result)


@api_view(["GET"])
@permission_classes([AllowAny])
def job_status(request, job_id):
    """
    Get job status for polling after checkout.
    """
    try:
        job = jobs.get_job(job_id)
    except SellMyImagesError as exc:
        return exc.to_response()

    client_status = CLIENT_STATUSES.get(job.status, "processing")
    data = {
        "job_id": job.job_id,
        "status": client_status,
        "payment_status": job.payment_status,
        "download_url": None,
        "error": "Upscaling failed" if client_status == "failed" else None,
    }
    if job.status == JobStatus.COMPLETED and job.download_token:
        data["download_url"] = reverse("download", args=[job.download_token], request=request)

    return Response(JobStatusSerializer(data).data)


@api_view(["POST"])
@permission_classes([AllowAny])
def track_click(request):
    """
    Record a buy-button click. Always answers 200.
    """
    serializer = TrackClickSerializer(data=request.data)
    if not serializer.is_valid():
        logger.debug(f"Dropping malformed click: {serializer.errors}")
        return Response({"tracked": False})

    tracked = analytics.track_click(
        serializer.validated_data["post_id"],
        serializer.validated_data["attachment_id"],
    )
    return Response({"tracked": tracked})
