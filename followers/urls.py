from django.urls import path
from .views import FollowView, FollowerListView, FollowingListView

urlpatterns = [
    path('follow/', FollowView.as_view(), name='follow-unfollow'),
    path('<int:user_id>/followers/', FollowerListView.as_view(), name='follower-list'),
    path('<int:user_id>/following/', FollowingListView.as_view(), name='following-list'),
]
