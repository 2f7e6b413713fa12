from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from django.core.cache import cache
from .models import Follow


def follower_cache_key(user_id, direction):
    return f"user_{user_id}_{direction}_list"


def invalidate_follower_cache(user_id):
    cache.delete_many([follower_cache_key(user_id, "followers"), follower_cache_key(user_id, "following")])


@receiver(post_save, sender=Follow)
def invalidate_on_follow(sender, instance, created, **kwargs):
    if created:
        invalidate_follower_cache(instance.followed_id)
        invalidate_follower_cache(instance.follower_id)


@receiver(post_delete, sender=Follow)
def invalidate_on_unfollow(sender, instance, **kwargs):
    invalidate_follower_cache(instance.followed_id)
    invalidate_follower_cache(instance.follower_id)
