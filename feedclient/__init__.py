"""Client-side notification cache kept in sync by polling and the push stream."""
from .cache import NotificationCache
from .transport import HttpTransport, TransportError

__all__ = ["HttpTransport", "NotificationCache", "TransportError"]
