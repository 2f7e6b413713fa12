"""
Friend request state machine.

    NONE -> PENDING -> ACCEPTED | DECLINED | CANCELLED

Every transition runs in one transaction covering the FriendRequest row, the
FOLLOW notification(s) mirroring its status and, on acceptance, both Friend
rows. The conditional ``UPDATE ... WHERE status = 'PENDING'`` is the only
concurrency guard: of two callers racing on the same request exactly one
updates a row, the other gets an "already handled" success.
"""
import logging
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from accounts.serializers import UserSummarySerializer
from backend.exceptions import AuthorizationError, InvalidRequest, NotFound, StateConflict
from backend.message_constants import message_text
from backend.utils import get_user_or_404, require_actor, service_action
from followers.models import Follow
from notifications.models import INACTIVE_STATUSES, Notification, NotificationType
from .messages import STANDARD_MESSAGES
from .models import Friend, FriendRequest, RequestStatus, pair_key

logger = logging.getLogger(__name__)

NO_RELATIONSHIP = {
    "is_following": False,
    "is_friend": False,
    "request_sent": False,
    "request_received": False,
}


def _find_request(from_id, to_id):
    """Latest request sent from `from_id` to `to_id`, whatever its status."""
    return (
        FriendRequest.objects.filter(from_user_id=from_id, to_user_id=to_id)
        .order_by("-created_at", "-id")
        .first()
    )


def _request_notification(actor, target, friend_request):
    """
    FOLLOW notification for `target` about `friend_request`.

    An active notification for the same (recipient, sender) is reused and
    re-linked instead of creating a second one. A re-linked row is re-dated
    so it sorts as a new entry at the top of the feed.
    """
    active = (
        Notification.objects.filter(user=target, sender=actor, notification_type=NotificationType.FOLLOW)
        .exclude(status__in=INACTIVE_STATUSES)
        .order_by("-created_at")
        .first()
    )
    if active is not None:
        active.friend_request = friend_request
        active.status = RequestStatus.PENDING
        active.is_read = False
        active.read_at = None
        active.created_at = timezone.now()
        active.save(update_fields=["friend_request", "status", "is_read", "read_at", "created_at"])
        return active

    return Notification.objects.create(
        user=target,
        notification_type=NotificationType.FOLLOW,
        title="New Friend Request",
        message=f"{actor.display_name} sent you a friend request",
        data={
            "fromUserId": actor.pk,
            "fromUserName": actor.name,
            "fromUserUsername": actor.profile_name,
        },
        sender=actor,
        friend_request=friend_request,
        status=RequestStatus.PENDING,
    )


def _mirror_status(friend_request, new_status):
    """Copy `new_status` onto the FOLLOW notifications of the request on both sides."""
    first, second = friend_request.from_user_id, friend_request.to_user_id
    between_pair = Q(user_id=first, sender_id=second) | Q(user_id=second, sender_id=first)
    notifications = list(
        Notification.objects.select_for_update()
        .filter(notification_type=NotificationType.FOLLOW)
        .filter(Q(friend_request=friend_request) | (Q(status=RequestStatus.PENDING) & between_pair))
    )
    for notification in notifications:
        notification.status = new_status
        notification.save(update_fields=["status"])
    return len(notifications)


def _create_friendship(friend_request, accepter):
    Friend.objects.bulk_create(
        [
            Friend(user_id=friend_request.to_user_id, friend_id=friend_request.from_user_id),
            Friend(user_id=friend_request.from_user_id, friend_id=friend_request.to_user_id),
        ],
        ignore_conflicts=True,
    )
    Notification.objects.create(
        user_id=friend_request.from_user_id,
        notification_type=NotificationType.FRIEND_ACCEPTED,
        title="Friend Request Accepted",
        message=f"{accepter.display_name} accepted your friend request",
        data={"fromUserId": accepter.pk, "fromUserUsername": accepter.profile_name},
        sender=accepter,
        friend_request=friend_request,
        status=RequestStatus.ACCEPTED,
    )


def _resolve(friend_request, new_status, on_transition=None):
    """Move a PENDING request to `new_status`, tolerating requests already resolved."""
    if friend_request.status != RequestStatus.PENDING:
        logger.info(f"Friend request {friend_request.pk} already {friend_request.status}; nothing to do")
        return {"status": friend_request.status, "already_handled": True}

    with transaction.atomic():
        updated = FriendRequest.objects.filter(pk=friend_request.pk, status=RequestStatus.PENDING).update(
            status=new_status, updated_at=timezone.now()
        )
        if not updated:
            current = FriendRequest.objects.filter(pk=friend_request.pk).values_list("status", flat=True).first()
            logger.warning(f"Friend request {friend_request.pk} was resolved concurrently ({current})")
            return {"status": current, "already_handled": True}

        friend_request.status = new_status
        mirrored = _mirror_status(friend_request, new_status)
        if on_transition is not None:
            on_transition(friend_request)

    logger.info(f"Friend request {friend_request.pk} -> {new_status} ({mirrored} notifications updated)")
    return {"status": new_status, "already_handled": False}


def _received_request(actor, from_id):
    """The request `from_id` sent to the actor; rejects when the actor is its sender instead."""
    friend_request = _find_request(from_id, actor.pk)
    if friend_request is None:
        if _find_request(actor.pk, from_id) is not None:
            raise AuthorizationError(message_text(STANDARD_MESSAGES, "ONLY_RECIPIENT_CAN_RESPOND"))
        raise NotFound(message_text(STANDARD_MESSAGES, "REQUEST_NOT_FOUND"))
    return friend_request


@service_action(message_text(STANDARD_MESSAGES, "SEND_FAILED"))
def send_friend_request(actor, target_id):
    require_actor(actor)
    target = get_user_or_404(target_id)
    if target.pk == actor.pk:
        raise InvalidRequest(message_text(STANDARD_MESSAGES, "CANNOT_FRIEND_SELF"))

    # Any row between the pair blocks a new request, terminal ones included.
    if FriendRequest.objects.filter(pair_key=pair_key(actor.pk, target.pk)).exists():
        raise StateConflict(message_text(STANDARD_MESSAGES, "REQUEST_EXISTS"))

    try:
        with transaction.atomic():
            friend_request = FriendRequest.objects.create(from_user=actor, to_user=target)
            notification = _request_notification(actor, target, friend_request)
    except IntegrityError:
        raise StateConflict(message_text(STANDARD_MESSAGES, "REQUEST_EXISTS"))

    logger.info(f"Friend request {friend_request.pk} sent from {actor.pk} to {target.pk}")
    return {"request_id": friend_request.pk, "status": friend_request.status, "notification_id": notification.pk}


@service_action(message_text(STANDARD_MESSAGES, "CANCEL_FAILED"))
def cancel_friend_request(actor, target_id):
    require_actor(actor)
    target = get_user_or_404(target_id)
    friend_request = _find_request(actor.pk, target.pk)
    if friend_request is None:
        if _find_request(target.pk, actor.pk) is not None:
            raise AuthorizationError(message_text(STANDARD_MESSAGES, "ONLY_SENDER_CAN_CANCEL"))
        raise NotFound(message_text(STANDARD_MESSAGES, "REQUEST_NOT_FOUND"))
    return _resolve(friend_request, RequestStatus.CANCELLED)


@service_action(message_text(STANDARD_MESSAGES, "ACCEPT_FAILED"))
def accept_friend_request(actor, from_id):
    require_actor(actor)
    sender = get_user_or_404(from_id)
    friend_request = _received_request(actor, sender.pk)
    return _resolve(
        friend_request,
        RequestStatus.ACCEPTED,
        on_transition=lambda accepted: _create_friendship(accepted, actor),
    )


@service_action(message_text(STANDARD_MESSAGES, "DECLINE_FAILED"))
def decline_friend_request(actor, from_id):
    require_actor(actor)
    sender = get_user_or_404(from_id)
    friend_request = _received_request(actor, sender.pk)
    return _resolve(friend_request, RequestStatus.DECLINED)


@service_action(message_text(STANDARD_MESSAGES, "REMOVE_FAILED"))
def remove_friend(actor, target_id):
    """Delete both Friend rows and the ACCEPTED requests of the pair; notifications stay."""
    require_actor(actor)
    target = get_user_or_404(target_id)
    with transaction.atomic():
        removed, _ = Friend.objects.filter(
            Q(user=actor, friend=target) | Q(user=target, friend=actor)
        ).delete()
        FriendRequest.objects.filter(
            pair_key=pair_key(actor.pk, target.pk), status=RequestStatus.ACCEPTED
        ).delete()
    if removed:
        logger.info(f"Friendship between {actor.pk} and {target.pk} removed")
    return {"removed": bool(removed)}


@service_action(message_text(STANDARD_MESSAGES, "STATUS_FAILED"))
def get_relationship_status(actor, target_id):
    """
    Four independent existence checks between the actor and `target_id`.

    Database failures are logged and answered with the all-false value so the
    profile view keeps rendering.
    """
    require_actor(actor)
    if str(target_id) == str(actor.pk):
        return dict(NO_RELATIONSHIP)
    try:
        return {
            "is_following": Follow.objects.filter(follower=actor, followed_id=target_id).exists(),
            "is_friend": Friend.objects.filter(user=actor, friend_id=target_id).exists(),
            "request_sent": FriendRequest.objects.filter(
                from_user=actor, to_user_id=target_id, status=RequestStatus.PENDING
            ).exists(),
            "request_received": FriendRequest.objects.filter(
                from_user_id=target_id, to_user=actor, status=RequestStatus.PENDING
            ).exists(),
        }
    except (DatabaseError, ValueError, TypeError):
        logger.exception(f"Relationship status lookup failed for {actor.pk} -> {target_id}")
        return dict(NO_RELATIONSHIP)


@service_action(message_text(STANDARD_MESSAGES, "LIST_FAILED"))
def list_friends(actor):
    require_actor(actor)
    edges = Friend.objects.filter(user=actor).select_related("friend").order_by("-created_at")
    return [
        {**UserSummarySerializer(edge.friend).data, "friends_since": edge.created_at.isoformat()}
        for edge in edges
    ]


def list_friend_requests(actor):
    """Requests received by the actor, newest first. The view applies `?status=` filtering."""
    require_actor(actor)
    return (
        FriendRequest.objects.filter(to_user=actor)
        .select_related("from_user", "to_user")
        .order_by("-created_at", "-id")
    )
