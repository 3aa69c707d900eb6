from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from sellmyimages.serializers import ImageUploadSerializer, UploadedImageSerializer
from sellmyimages.services.images import store_upload
from sellmyimages.utils import SellMyImagesError, format_error


@api_view(["POST"])
@permission_classes([AllowAny])
@parser_classes([MultiPartParser, FormParser])
def upload_image(request):
    """
    Upload a source image to sell an upscale of.
    """
    serializer = ImageUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            format_error(
                code="validation_error",
                message="Invalid upload",
                details=serializer.errors,
            ),
            status=status.HTTP_400_BAD_REQUEST,
        )

    data = serializer.validated_data
    try:
        upload = store_upload(data["image"], data["width"], data["height"])
    except SellMyImagesError as exc:
        return exc.to_response()

    return Response(UploadedImageSerializer(upload).data, status=status.HTTP_201_CREATED)
