from django.conf import settings
from django.db import models
from django.utils import timezone
from django.contrib.auth import get_user_model
from friends.models import RequestStatus


class NotificationType(models.TextChoices):
    LIKE = "LIKE", "Like"
    COMMENT = "COMMENT", "Comment"
    FOLLOW = "FOLLOW", "Friend request"
    FRIEND_ACCEPTED = "FRIEND_ACCEPTED", "Friend request accepted"
    MENTION = "MENTION", "Mention"
    CLUB_INVITE = "CLUB_INVITE", "Club invite"
    EVENT_REMINDER = "EVENT_REMINDER", "Event reminder"


# A FOLLOW notification in one of these states no longer counts as active.
INACTIVE_STATUSES = (RequestStatus.DECLINED, RequestStatus.CANCELLED)


class Notification(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    notification_type = models.CharField(max_length=32, choices=NotificationType.choices)
    title = models.CharField(max_length=255, blank=True)
    message = models.TextField(blank=True)
    data = models.JSONField(default=dict, blank=True)
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="sent_notifications"
    )
    friend_request = models.ForeignKey(
        "friends.FriendRequest", on_delete=models.SET_NULL, null=True, blank=True, related_name="notifications"
    )
    subject_id = models.CharField(max_length=64, blank=True, default="")
    status = models.CharField(max_length=10, choices=RequestStatus.choices, null=True, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    read_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Notification for {self.user.profile_name} - {self.notification_type}"

    def save(self, *args, **kwargs):
        if self._state.adding and not get_user_model().objects.filter(id=self.user_id).exists():
            raise get_user_model().DoesNotExist("User does not exist")
        super().save(*args, **kwargs)

    def mark_as_read(self):
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=["is_read", "read_at"])

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["notification_type", "subject_id", "sender", "user"],
                condition=models.Q(notification_type__in=[NotificationType.LIKE, NotificationType.COMMENT]),
                name="unique_interaction_notification",
            ),
        ]
        indexes = [
            models.Index(fields=['user', '-created_at'], name='notif_user_created_idx'),
            models.Index(fields=['user', 'is_read'], name='notif_user_unread_idx'),
            models.Index(fields=['user', 'notification_type', '-created_at'], name='notif_user_type_idx'),
            models.Index(fields=['user', 'sender', 'notification_type'], name='notif_user_sender_idx'),
        ]
        ordering = ['-created_at', '-id']
