from django.http import FileResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from sellmyimages.services import downloads
from sellmyimages.utils import SellMyImagesError


@api_view(["GET"])
@permission_classes([AllowAny])
def download(request, token):
    """
    Stream the upscaled file for a valid download token.
    """
    try:
        handle, filename = downloads.redeem(token)
    except SellMyImagesError as exc:
        return exc.to_response()

    return FileResponse(handle, as_attachment=True, filename=filename)
