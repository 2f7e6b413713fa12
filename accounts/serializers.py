from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    """Public identity of a user as shown in relationship lists."""

    class Meta:
        model = User
        fields = ["id", "profile_name", "name"]
        read_only_fields = fields
