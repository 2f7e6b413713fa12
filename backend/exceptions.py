from rest_framework import status


class ServiceError(Exception):
    """Base class for errors raised by the relationship and notification services."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidRequest(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class StateConflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
