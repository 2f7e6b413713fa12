from rest_framework import serializers


class FollowTargetSerializer(serializers.Serializer):
    """Body of follow/unfollow calls: the id of the user on the other end."""
    followed = serializers.IntegerField(min_value=1)
