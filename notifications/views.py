import json
import logging
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.http import StreamingHttpResponse
from rest_framework.permissions import IsAuthenticated
from rest_framework.renderers import BaseRenderer, JSONRenderer
from rest_framework.views import APIView
from backend.message_constants import message_text
from backend.utils import fail, request_actor
from .messages import STANDARD_MESSAGES
from .realtime import subscribe
from .serializers import FeedQuerySerializer
from .services import (
    get_notifications,
    get_unread_notification_count,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)

logger = logging.getLogger(__name__)


class EventStreamRenderer(BaseRenderer):
    media_type = 'text/event-stream'
    format = 'event-stream'
    charset = 'utf-8'

    def render(self, data, accepted_media_type=None, renderer_context=None):
        # Only error bodies reach the renderer; events are written by the stream itself.
        return json.dumps(data, cls=DjangoJSONEncoder).encode(self.charset)


def format_event(event):
    payload = json.dumps(event['record'], cls=DjangoJSONEncoder)
    return f"event: {event['event_type']}\ndata: {payload}\n\n"


def event_stream(subscription, keepalive):
    """Yield SSE frames for a subscription until the client goes away."""
    try:
        yield ": connected\n\n"
        while not subscription.closed:
            event = subscription.get(timeout=keepalive)
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield format_event(event)
    finally:
        subscription.unsubscribe()
        logger.debug(f"Notification stream for recipient {subscription.recipient_id} closed")


class NotificationListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = FeedQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return fail(message_text(STANDARD_MESSAGES, 'INVALID_PAGINATION')).to_response()
        return get_notifications(request_actor(request), **query.validated_data).to_response()


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return get_unread_notification_count(request_actor(request)).to_response()


class MarkNotificationAsReadView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk):
        return mark_notification_as_read(request_actor(request), pk).to_response()


class BulkMarkNotificationsAsReadView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request):
        return mark_all_notifications_as_read(request_actor(request)).to_response()


class NotificationStreamView(APIView):
    """Server-Sent Events carrying the caller's notification inserts and updates."""
    permission_classes = [IsAuthenticated]
    renderer_classes = [EventStreamRenderer, JSONRenderer]

    def get(self, request):
        subscription = subscribe(request.user.pk)
        logger.debug(f"Notification stream opened for recipient {request.user.pk}")
        response = StreamingHttpResponse(
            event_stream(subscription, settings.NOTIFICATION_STREAM_KEEPALIVE),
            content_type='text/event-stream',
        )
        response['Cache-Control'] = 'no-cache'
        response['X-Accel-Buffering'] = 'no'
        return response
