from django.urls import path
from .views import (
    BulkMarkNotificationsAsReadView,
    MarkNotificationAsReadView,
    NotificationListView,
    NotificationStreamView,
    UnreadCountView,
)

urlpatterns = [
    path("notifications/", NotificationListView.as_view(), name="notification-list"),
    path("notifications/unread-count/", UnreadCountView.as_view(), name="notification-unread-count"),
    path("notifications/<int:pk>/mark-read/", MarkNotificationAsReadView.as_view(), name="mark-notification-read"),
    path("notifications/mark-all-read/", BulkMarkNotificationsAsReadView.as_view(), name="mark-all-notifications-read"),
    path("notifications/stream/", NotificationStreamView.as_view(), name="notification-stream"),
]
