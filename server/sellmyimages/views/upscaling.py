import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response

from sellmyimages.serializers import AdminUpscaleSerializer
from sellmyimages.services import jobs, upscaling
from sellmyimages.services.images import site_image_source, upload_source
from sellmyimages.utils import SellMyImagesError, format_error

logger = logging.getLogger(__name__)

SUCCESS_STATES = ("SUCCESS", "COMPLETED")
FAILURE_STATES = ("FAILED", "ERROR")


@api_view(["POST"])
@permission_classes([AllowAny])
def upscale_callback(request):
    """
    Receive the Upsampler result for a job.

    The callback URL carries a signed job id; the body is Upsampler's task
    payload (``id``, ``status``, ``imageUrl``, ``error``).
    """
    try:
        job_id = upscaling.read_callback_token(request.query_params.get("token"))
        job = jobs.get_job(job_id)
    except SellMyImagesError as exc:
        logger.warning(f"Rejected upscale callback: {exc.message}")
        return exc.to_response()

    payload = request.data if isinstance(request.data, dict) else {}
    task_id = str(payload.get("id") or "")
    if job.provider_task_id and task_id and task_id != job.provider_task_id:
        logger.warning(f"Callback task {task_id} does not match job {job.job_id}")
        return Response(
            format_error(code="task_mismatch", message="Callback does not match this job"),
            status=status.HTTP_400_BAD_REQUEST,
        )

    state = str(payload.get("status") or "").upper()
    if state in SUCCESS_STATES and payload.get("imageUrl"):
        applied = upscaling.handle_upscale_result(job.job_id, True, payload["imageUrl"])
    elif state in SUCCESS_STATES or state in FAILURE_STATES:
        reason = payload.get("error") or "Upscaling failed"
        applied = upscaling.handle_upscale_result(job.job_id, False, reason)
    else:
        logger.info(f"Job {job.job_id} reported {state or 'no status'}, waiting")
        applied = False

    return Response({"received": True, "applied": applied})


@api_view(["POST"])
@permission_classes([IsAdminUser])
def admin_upscale(request):
    """
    Start a pre-paid upscale without checkout.
    """
    serializer = AdminUpscaleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            format_error(
                code="validation_error",
                message="Invalid upscale request",
                details=serializer.errors,
            ),
            status=status.HTTP_400_BAD_REQUEST,
        )

    data = serializer.validated_data
    try:
        if data.get("attachment_id") is not None:
            source = site_image_source(data["attachment_id"], data.get("post_id"))
        else:
            source = upload_source(data["upload_id"])
        job = upscaling.create_admin_job(source, data["resolution"], email=data.get("email") or None)
    except SellMyImagesError as exc:
        return exc.to_response()

    logger.info(f"Admin {request.user.pk} started job {job.job_id}")
    return Response(
        {"job_id": str(job.job_id), "status": job.status, "payment_status": job.payment_status},
        status=status.HTTP_201_CREATED,
    )
