from django.core.cache import cache
from django.contrib.auth import get_user_model
from rest_framework import generics, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from accounts.serializers import UserSummarySerializer
from backend.message_constants import message_text
from backend.utils import fail, get_user_or_404, request_actor
from .messages import STANDARD_MESSAGES
from .serializers import FollowTargetSerializer
from .services import follow_user, unfollow_user
from .signals import follower_cache_key

User = get_user_model()


class FollowerPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class FollowView(APIView):
    """POST follows, DELETE unfollows the user given as `followed`."""
    permission_classes = [IsAuthenticated]

    def _target_id(self, request):
        serializer = FollowTargetSerializer(data=request.data)
        if not serializer.is_valid():
            return None
        return serializer.validated_data['followed']

    def post(self, request):
        target_id = self._target_id(request)
        if target_id is None:
            return fail(message_text(STANDARD_MESSAGES, 'FOLLOWED_ID_REQUIRED')).to_response()
        return follow_user(request_actor(request), target_id).to_response(success_status=status.HTTP_201_CREATED)

    def delete(self, request):
        target_id = self._target_id(request)
        if target_id is None:
            return fail(message_text(STANDARD_MESSAGES, 'FOLLOWED_ID_REQUIRED')).to_response()
        return unfollow_user(request_actor(request), target_id).to_response()


class _RelationListView(generics.ListAPIView):
    serializer_class = UserSummarySerializer
    permission_classes = [IsAuthenticated]
    pagination_class = FollowerPagination
    direction = None

    def get_queryset(self):
        if self.direction == 'followers':
            return User.objects.filter(following__followed_id=self.user.id).order_by('-following__created_at')
        return User.objects.filter(followers__follower_id=self.user.id).order_by('-followers__created_at')

    def list(self, request, *args, **kwargs):
        self.user = get_user_or_404(self.kwargs['user_id'])
        cache_key = follower_cache_key(self.user.id, self.direction)
        data = cache.get(cache_key)
        if data is None:
            data = self.get_serializer(self.get_queryset(), many=True).data
            cache.set(cache_key, data, 60 * 15)
        page = self.paginate_queryset(data)
        return self.get_paginated_response(page)


class FollowerListView(_RelationListView):
    direction = 'followers'


class FollowingListView(_RelationListView):
    direction = 'following'
