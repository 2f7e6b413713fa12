from django.utils.translation import gettext_lazy as _

MESSAGE_TYPES = {
    "SUCCESS": "success",
    "ERROR": "error",
    "INFO": "info",
}

STANDARD_MESSAGES = {
    "CANNOT_FRIEND_SELF": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Cannot friend yourself"),
    },
    "REQUEST_EXISTS": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Friend request already exists or pending"),
    },
    "REQUEST_NOT_FOUND": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("No friend request exists between you and this user."),
    },
    "ONLY_SENDER_CAN_CANCEL": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Only the sender of a friend request can cancel it."),
    },
    "ONLY_RECIPIENT_CAN_RESPOND": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Only the recipient of a friend request can accept or decline it."),
    },
    "SEND_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to send friend request"),
    },
    "CANCEL_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to cancel friend request"),
    },
    "ACCEPT_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to accept friend request"),
    },
    "DECLINE_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to decline friend request"),
    },
    "REMOVE_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to remove friend"),
    },
    "STATUS_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to load relationship status"),
    },
    "LIST_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to load friends"),
    },
}
