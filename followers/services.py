import logging
from django.db import IntegrityError, transaction
from backend.exceptions import InvalidRequest
from backend.message_constants import message_text
from backend.utils import get_user_or_404, require_actor, service_action
from .messages import STANDARD_MESSAGES
from .models import Follow

logger = logging.getLogger(__name__)


@service_action(message_text(STANDARD_MESSAGES, "FOLLOW_FAILED"))
def follow_user(actor, target_id):
    """Create the actor -> target follow edge. Following twice is a no-op success."""
    require_actor(actor)
    target = get_user_or_404(target_id)
    if target.pk == actor.pk:
        raise InvalidRequest(message_text(STANDARD_MESSAGES, "CANNOT_FOLLOW_SELF"))

    try:
        with transaction.atomic():
            _, created = Follow.objects.get_or_create(follower=actor, followed=target)
    except IntegrityError:
        # Lost a race against an identical follow; the edge exists either way.
        created = False

    if created:
        logger.info(f"User {actor.id} followed user {target.id}")
        return {"following": True, "message": message_text(STANDARD_MESSAGES, "FOLLOW_SUCCESS")}
    return {"following": True, "message": message_text(STANDARD_MESSAGES, "ALREADY_FOLLOWING")}


@service_action(message_text(STANDARD_MESSAGES, "FOLLOW_FAILED"))
def unfollow_user(actor, target_id):
    require_actor(actor)
    target = get_user_or_404(target_id)
    deleted, _ = Follow.objects.filter(follower=actor, followed=target).delete()
    if not deleted:
        raise InvalidRequest(message_text(STANDARD_MESSAGES, "NOT_FOLLOWING"))
    logger.info(f"User {actor.id} unfollowed user {target.id}")
    return {"following": False, "message": message_text(STANDARD_MESSAGES, "UNFOLLOW_SUCCESS")}
