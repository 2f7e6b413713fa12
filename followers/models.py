from django.db import models
from django.conf import settings

class Follow(models.Model):
    """Directed follow edge; the row existing is the whole relationship."""
    follower = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="following", on_delete=models.CASCADE
    )
    followed = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="followers", on_delete=models.CASCADE
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["follower", "followed"], name="unique_follow"),
            models.CheckConstraint(condition=~models.Q(follower=models.F("followed")), name="follow_no_self_loop"),
        ]
        indexes = [
            models.Index(fields=["follower"], name="follow_follower_idx"),
            models.Index(fields=["followed"], name="follow_followed_idx"),
            models.Index(fields=["created_at"], name="follow_created_at_idx"),
        ]

    def __str__(self):
        return f"{self.follower.profile_name} follows {self.followed.profile_name}"
