from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, generics, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from backend.utils import request_actor
from .serializers import FriendRequestSerializer
from .services import (
    accept_friend_request,
    cancel_friend_request,
    decline_friend_request,
    get_relationship_status,
    list_friend_requests,
    list_friends,
    remove_friend,
    send_friend_request,
)


class FriendRequestPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class FriendRequestView(APIView):
    """POST sends a request to `user_id`, DELETE cancels the one the caller sent."""
    permission_classes = [IsAuthenticated]

    def post(self, request, user_id):
        result = send_friend_request(request_actor(request), user_id)
        return result.to_response(success_status=status.HTTP_201_CREATED)

    def delete(self, request, user_id):
        return cancel_friend_request(request_actor(request), user_id).to_response()


class AcceptFriendRequestView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, user_id):
        return accept_friend_request(request_actor(request), user_id).to_response()


class DeclineFriendRequestView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, user_id):
        return decline_friend_request(request_actor(request), user_id).to_response()


class ReceivedFriendRequestListView(generics.ListAPIView):
    """Requests addressed to the caller, filterable by `?status=`."""
    serializer_class = FriendRequestSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = FriendRequestPagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status']
    ordering_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']

    def get_queryset(self):
        return list_friend_requests(request_actor(self.request))


class FriendListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return list_friends(request_actor(request)).to_response()


class FriendDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def delete(self, request, user_id):
        return remove_friend(request_actor(request), user_id).to_response()


class RelationshipStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id):
        return get_relationship_status(request_actor(request), user_id).to_response()
