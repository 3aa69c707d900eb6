from rest_framework import serializers


class TrackClickSerializer(serializers.Serializer):
    """Serializer for buy-button click tracking"""

    post_id = serializers.IntegerField(min_value=1)
    attachment_id = serializers.IntegerField(min_value=1)
