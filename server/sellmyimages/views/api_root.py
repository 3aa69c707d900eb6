from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse


@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """
    API root endpoint to make the browsable API navigable.
    """
    return Response(
        {
            "health": reverse("health_check", request=request, format=format),
            "prices": reverse("calculate_prices", request=request, format=format),
            "checkout": reverse("create_checkout", request=request, format=format),
            "checkout_upload": reverse("create_upload_checkout", request=request, format=format),
            "uploads": reverse("upload_image", request=request, format=format),
            "track_click": reverse("track_click", request=request, format=format),
            "job_status_template": "/api/jobs/{job_id}/status/",
            "download_template": "/api/download/{token}/",
        }
    )
