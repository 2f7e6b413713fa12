"""
Notification feed: paginated reads, unread counts, read markers, and the
like/comment notification creators used by the interaction subsystem.
"""
import logging
from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.utils import timezone
from backend.exceptions import AuthorizationError, InvalidRequest, NotFound
from backend.message_constants import message_text
from backend.utils import get_user_or_404, require_actor, service_action
from .messages import STANDARD_MESSAGES
from .models import Notification, NotificationType
from .realtime import UPDATE, publish_on_commit
from .serializers import NotificationSerializer
from .utils import invalidate_unread_count, unread_count_cache_key

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 100


@service_action(message_text(STANDARD_MESSAGES, "FETCH_FAILED"))
def get_notifications(actor, page=1, limit=10):
    """Newest-first page of the actor's notifications with pagination metadata."""
    require_actor(actor)
    if page < 1 or limit < 1 or limit > MAX_PAGE_LIMIT:
        raise InvalidRequest(message_text(STANDARD_MESSAGES, "INVALID_PAGINATION"))

    queryset = Notification.objects.filter(user=actor).order_by("-created_at", "-id")
    total = queryset.count()
    offset = (page - 1) * limit
    rows = queryset[offset:offset + limit]

    return {
        "notifications": [dict(row) for row in NotificationSerializer(rows, many=True).data],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "has_next": offset + limit < total,
            "has_prev": page > 1,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@service_action(message_text(STANDARD_MESSAGES, "UNREAD_COUNT_FAILED"))
def get_unread_notification_count(actor):
    require_actor(actor)
    cache_key = unread_count_cache_key(actor.pk)
    count = cache.get(cache_key)
    if count is None:
        count = Notification.objects.filter(user=actor, is_read=False).count()
        cache.set(cache_key, count, settings.UNREAD_COUNT_CACHE_TIMEOUT)
    return count


@service_action(message_text(STANDARD_MESSAGES, "MARK_READ_FAILED"))
def mark_notification_as_read(actor, notification_id):
    require_actor(actor)
    try:
        notification = Notification.objects.get(pk=notification_id)
    except (Notification.DoesNotExist, ValueError, TypeError):
        raise NotFound(message_text(STANDARD_MESSAGES, "NOTIFICATION_NOT_FOUND"))

    if notification.user_id != actor.pk:
        logger.warning(f"User {actor.pk} tried to mark notification {notification.pk} owned by {notification.user_id}")
        raise AuthorizationError(message_text(STANDARD_MESSAGES, "NOT_NOTIFICATION_OWNER"))

    if not notification.is_read:
        notification.mark_as_read()
        logger.info(f"Notification {notification.id} marked as read.")
    return {"id": notification.pk, "is_read": True, "read_at": notification.read_at.isoformat() if notification.read_at else None}


@service_action(message_text(STANDARD_MESSAGES, "MARK_ALL_READ_FAILED"))
def mark_all_notifications_as_read(actor):
    require_actor(actor)
    with transaction.atomic():
        ids = list(Notification.objects.filter(user=actor, is_read=False).values_list("id", flat=True))
        marked = Notification.objects.filter(pk__in=ids).update(is_read=True, read_at=timezone.now())
        invalidate_unread_count(actor.pk)
        publish_on_commit(UPDATE, ids)
    logger.info(f"All notifications for user {actor.pk} marked as read ({marked}).")
    return {"marked_count": marked}


def _create_interaction_notification(notification_type, subject_id, actor_id, recipient_id, title, verb):
    if str(actor_id) == str(recipient_id):
        return {"created": False}

    actor = get_user_or_404(actor_id)
    recipient = get_user_or_404(recipient_id)
    lookup = {
        "notification_type": notification_type,
        "subject_id": str(subject_id),
        "sender": actor,
        "user": recipient,
    }
    try:
        with transaction.atomic():
            notification, created = Notification.objects.get_or_create(
                **lookup,
                defaults={
                    "title": title,
                    "message": f"{actor.display_name} {verb}",
                    "data": {"fromUserId": actor.pk, "subjectId": str(subject_id)},
                },
            )
    except IntegrityError:
        # Lost a race against an identical notification; keep the one that won.
        notification, created = Notification.objects.filter(**lookup).first(), False
    if created:
        logger.info(f"{notification_type} notification {notification.pk} created for user {recipient.pk}")
    return {"created": created, "id": notification.pk}


@service_action(message_text(STANDARD_MESSAGES, "CREATE_FAILED"))
def create_like_notification(subject_id, liker_id, subject_author_id):
    return _create_interaction_notification(
        NotificationType.LIKE, subject_id, liker_id, subject_author_id, "New Like", "liked your post"
    )


@service_action(message_text(STANDARD_MESSAGES, "CREATE_FAILED"))
def create_comment_notification(subject_id, commenter_id, subject_author_id):
    return _create_interaction_notification(
        NotificationType.COMMENT, subject_id, commenter_id, subject_author_id, "New Comment", "commented on your post"
    )
