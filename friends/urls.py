from django.urls import path
from .views import (
    AcceptFriendRequestView,
    DeclineFriendRequestView,
    FriendDetailView,
    FriendListView,
    FriendRequestView,
    ReceivedFriendRequestListView,
    RelationshipStatusView,
)

urlpatterns = [
    path('', FriendListView.as_view(), name='friend-list'),
    path('<int:user_id>/', FriendDetailView.as_view(), name='friend-detail'),
    path('requests/', ReceivedFriendRequestListView.as_view(), name='friend-request-list'),
    path('requests/<int:user_id>/', FriendRequestView.as_view(), name='friend-request'),
    path('requests/<int:user_id>/accept/', AcceptFriendRequestView.as_view(), name='friend-request-accept'),
    path('requests/<int:user_id>/decline/', DeclineFriendRequestView.as_view(), name='friend-request-decline'),
    path('status/<int:user_id>/', RelationshipStatusView.as_view(), name='relationship-status'),
]
