"""Defaults for the notification feed client, overridable through the environment."""
from decouple import config

POLL_INTERVAL_SECONDS = config("FEED_POLL_INTERVAL", default=10.0, cast=float)
PAGE_LIMIT = config("FEED_PAGE_LIMIT", default=50, cast=int)
STREAM_RECONNECT_DELAY_SECONDS = config("FEED_STREAM_RECONNECT_DELAY", default=3.0, cast=float)
REQUEST_TIMEOUT_SECONDS = config("FEED_REQUEST_TIMEOUT", default=20.0, cast=float)
