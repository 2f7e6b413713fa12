from django.conf import settings
from django.db import models


class RequestStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    ACCEPTED = "ACCEPTED", "Accepted"
    DECLINED = "DECLINED", "Declined"
    CANCELLED = "CANCELLED", "Cancelled"


def pair_key(first_id, second_id):
    """Order-independent key for an unordered pair of users."""
    low, high = sorted((int(first_id), int(second_id)))
    return f"{low}:{high}"


class FriendRequest(models.Model):
    """
    A proposal from one user to another to become friends.

    Created PENDING and moved exactly once to a terminal status. Terminal rows
    stay as history; only unfriending deletes ACCEPTED rows.
    """
    from_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="sent_friend_requests", on_delete=models.CASCADE
    )
    to_user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="received_friend_requests", on_delete=models.CASCADE
    )
    status = models.CharField(max_length=10, choices=RequestStatus.choices, default=RequestStatus.PENDING)
    pair_key = models.CharField(max_length=64, editable=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["pair_key"],
                condition=models.Q(status="PENDING"),
                name="unique_pending_friend_request",
            ),
            models.CheckConstraint(condition=~models.Q(from_user=models.F("to_user")), name="friend_request_no_self"),
        ]
        indexes = [
            models.Index(fields=["from_user", "to_user", "status"], name="friendreq_pair_status_idx"),
            models.Index(fields=["to_user", "status"], name="friendreq_inbox_idx"),
        ]

    def save(self, *args, **kwargs):
        self.pair_key = pair_key(self.from_user_id, self.to_user_id)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.from_user_id} -> {self.to_user_id} ({self.status})"


class Friend(models.Model):
    """One direction of a friendship. Rows are always written and removed in pairs."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="friend_edges", on_delete=models.CASCADE)
    friend = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="+", on_delete=models.CASCADE)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user", "friend"], name="unique_friend_edge"),
            models.CheckConstraint(condition=~models.Q(user=models.F("friend")), name="friend_no_self"),
        ]

    def __str__(self):
        return f"{self.user_id} <-> {self.friend_id}"
