from django.utils.translation import gettext_lazy as _

MESSAGE_TYPES = {
    'SUCCESS': 'success',
    'ERROR': 'error',
    'WARNING': 'warning',
    'INFO': 'info',
}

STANDARD_MESSAGES = {
    'NOT_AUTHENTICATED': {
        'type': MESSAGE_TYPES['ERROR'],
        'message': _("Authentication credentials were not provided."),
    },
    'USER_NOT_FOUND': {
        'type': MESSAGE_TYPES['ERROR'],
        'message': _("The requested user does not exist."),
    },
    'GENERIC_ERROR': {
        'type': MESSAGE_TYPES['ERROR'],
        'message': _("An error occurred. Please try again."),
    },
}


def message_text(messages, key):
    """Return the plain string for a STANDARD_MESSAGES entry."""
    return str(messages[key]['message'])
