from django.db.models.signals import post_save
from django.dispatch import receiver
from .models import Notification
from .realtime import INSERT, UPDATE, publish_on_commit
from .utils import invalidate_unread_count


@receiver(post_save, sender=Notification)
def propagate_notification_change(sender, instance, created, update_fields=None, **kwargs):
    """Push every saved notification to its recipient's live subscriptions."""
    invalidate_unread_count(instance.user_id)
    # A re-dated row is new to the feed.
    redated = update_fields is not None and "created_at" in update_fields
    publish_on_commit(INSERT if created or redated else UPDATE, [instance.pk])
