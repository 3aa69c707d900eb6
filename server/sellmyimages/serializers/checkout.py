"""DRF serializers for pricing, checkout and job status requests."""

from rest_framework import serializers

from sellmyimages.const import VALID_RESOLUTIONS


class PriceRequestSerializer(serializers.Serializer):
    """Serializer for price quotes; one image reference is required"""

    attachment_id = serializers.IntegerField(required=False, min_value=1)
    post_id = serializers.IntegerField(required=False, min_value=1)
    upload_id = serializers.UUIDField(required=False)

    def validate(self, attrs):
        has_attachment = attrs.get("attachment_id") is not None
        has_upload = attrs.get("upload_id") is not None
        if has_attachment and has_upload:
            raise serializers.ValidationError(
                "Cannot provide both attachment_id and upload_id", code="conflicting_ids"
            )
        if not has_attachment and not has_upload:
            raise serializers.ValidationError(
                "Either attachment_id or upload_id must be provided", code="missing_id"
            )
        return attrs


class CheckoutRequestSerializer(serializers.Serializer):
    """Serializer for a site image checkout"""

    attachment_id = serializers.IntegerField(min_value=1)
    post_id = serializers.IntegerField(min_value=1)
    resolution = serializers.ChoiceField(choices=VALID_RESOLUTIONS)
    email = serializers.EmailField(required=False, allow_blank=True)


class UploadCheckoutRequestSerializer(serializers.Serializer):
    """Serializer for an uploaded image checkout"""

    upload_id = serializers.UUIDField()
    resolution = serializers.ChoiceField(choices=VALID_RESOLUTIONS)
    email = serializers.EmailField(required=False, allow_blank=True)


class AdminUpscaleSerializer(PriceRequestSerializer):
    """Serializer for admin pre-paid upscales"""

    resolution = serializers.ChoiceField(choices=VALID_RESOLUTIONS)
    email = serializers.EmailField(required=False, allow_blank=True)


class JobStatusSerializer(serializers.Serializer):
    """Serializer for job status polling response"""

    job_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=['processing', 'completed', 'failed'])
    payment_status = serializers.CharField()
    download_url = serializers.URLField(required=False, allow_null=True)
    error = serializers.CharField(required=False, allow_null=True)
