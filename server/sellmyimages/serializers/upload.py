"""DRF serializers for visitor image uploads.

Uploads are checked with Pillow before they are sent to Cloudinary so that
only real images in a supported format reach the upscaler.
"""

from PIL import Image, UnidentifiedImageError
from rest_framework import serializers

from sellmyimages.const import UPLOAD_ALLOWED_FORMATS, UPLOAD_MAX_BYTES, UPLOAD_MIN_DIMENSION
from sellmyimages.models import UploadedImage


class UploadImageField(serializers.ImageField):
    """ImageField with stable validation error messages."""

    default_error_messages = {
        "invalid_image": "Invalid image file",
    }


class ImageUploadSerializer(serializers.Serializer):
    """Serializer for image upload"""

    image = UploadImageField(
        max_length=None,
        allow_empty_file=False,
        use_url=True,
    )

    def validate_image(self, value):
        """Validate the uploaded file and remember its pixel dimensions."""
        if value.size > UPLOAD_MAX_BYTES:
            raise serializers.ValidationError("File must be under 10MB")

        try:
            img = Image.open(value)
            img.load()
        except (UnidentifiedImageError, OSError):
            raise serializers.ValidationError("Invalid image file")
        try:
            if img.format not in UPLOAD_ALLOWED_FORMATS:
                raise serializers.ValidationError("Only JPG, PNG, WEBP formats allowed")

            if min(img.width, img.height) < UPLOAD_MIN_DIMENSION:
                raise serializers.ValidationError(
                    f"Image must be at least {UPLOAD_MIN_DIMENSION}px on shortest side"
                )

            self._dimensions = (img.width, img.height)
        finally:
            value.seek(0)

        return value

    def validate(self, attrs):
        attrs["width"], attrs["height"] = self._dimensions
        return attrs


class UploadedImageSerializer(serializers.ModelSerializer):
    """Serializer for UploadedImage model"""

    class Meta:
        model = UploadedImage
        fields = [
            'upload_id',
            'file_url',
            'original_filename',
            'width',
            'height',
            'created_at',
        ]
        read_only_fields = fields
