import uuid
from django.core.cache import cache
from django.db import transaction


def _generation_key(user_id):
    return f"user_{user_id}_unread_generation"


def unread_count_cache_key(user_id):
    """
    Key of the cached unread count for the user's current generation.

    Invalidation starts a new generation, so a count computed before a change
    and stored after it lands under a key that is no longer read.
    """
    generation_key = _generation_key(user_id)
    generation = cache.get(generation_key)
    if generation is None:
        cache.add(generation_key, uuid.uuid4().hex, None)
        generation = cache.get(generation_key)
    return f"user_{user_id}_unread_notifications_{generation}"


def invalidate_unread_count(*user_ids):
    generations = {_generation_key(user_id): uuid.uuid4().hex for user_id in set(user_ids)}
    transaction.on_commit(lambda: cache.set_many(generations, None))
