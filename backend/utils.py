import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Optional

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response

from .exceptions import NotFound, ServiceError, Unauthenticated
from .message_constants import STANDARD_MESSAGES, message_text

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Envelope returned by every service operation exposed to the UI layer."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = status.HTTP_200_OK

    def to_dict(self):
        payload = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload

    def to_response(self, success_status=status.HTTP_200_OK):
        code = success_status if self.success else self.status_code
        return Response(self.to_dict(), status=code)


def succeed(data=None):
    return ActionResult(success=True, data=data)


def fail(error, status_code=status.HTTP_400_BAD_REQUEST):
    return ActionResult(success=False, error=str(error), status_code=status_code)


def service_action(default_error):
    """
    Wrap a service function so it always returns an ActionResult.

    ServiceError subclasses become failures with their own status code, database
    errors become a generic failure string. Nothing is retried.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                result = func(*args, **kwargs)
            except ServiceError as exc:
                logger.info(f"{func.__name__} rejected: {exc.message}")
                return fail(exc.message, exc.status_code)
            except DatabaseError:
                logger.exception(f"{func.__name__} failed in the database")
                return fail(default_error, status.HTTP_500_INTERNAL_SERVER_ERROR)
            if isinstance(result, ActionResult):
                return result
            return succeed(result)
        return wrapper
    return decorator


def require_actor(actor):
    """Reject calls without an authenticated principal before any side effect."""
    if actor is None or not getattr(actor, "is_authenticated", False):
        raise Unauthenticated(message_text(STANDARD_MESSAGES, "NOT_AUTHENTICATED"))
    return actor


def get_user_or_404(user_id):
    User = get_user_model()
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFound(message_text(STANDARD_MESSAGES, "USER_NOT_FOUND"))


def request_actor(request):
    """The explicit principal handed to services from an incoming request."""
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user
    return None
