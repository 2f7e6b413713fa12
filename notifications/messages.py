from django.utils.translation import gettext_lazy as _

MESSAGE_TYPES = {
    "SUCCESS": "success",
    "ERROR": "error",
    "INFO": "info",
}

STANDARD_MESSAGES = {
    "NOTIFICATION_NOT_FOUND": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Notification not found."),
    },
    "NOT_NOTIFICATION_OWNER": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("You do not have permission to modify this notification."),
    },
    "INVALID_PAGINATION": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Page must be at least 1 and limit between 1 and 100."),
    },
    "FETCH_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to fetch notifications"),
    },
    "UNREAD_COUNT_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to get unread count"),
    },
    "MARK_READ_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to mark notification as read"),
    },
    "MARK_ALL_READ_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to mark notifications as read"),
    },
    "CREATE_FAILED": {
        "type": MESSAGE_TYPES["ERROR"],
        "message": _("Failed to create notification"),
    },
}
