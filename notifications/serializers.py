from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for Notification model."""

    class Meta:
        model = Notification
        fields = [
            "id", "notification_type", "title", "message", "data", "sender", "friend_request",
            "subject_id", "status", "is_read", "read_at", "created_at",
        ]
        read_only_fields = fields


class FeedQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, default=10)
