"""
In-process push channel for notification changes.

Each connected client holds a Subscription filtered by recipient. Events are
`{"event_type": "insert" | "update", "record": {...}}` and are only published
after the writing transaction commits. Delivery is best effort: a subscriber
whose buffer is full loses events and catches up through polling.
"""
import logging
import queue
import threading
from collections import defaultdict

from django.conf import settings
from django.db import transaction

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"


class Subscription:
    def __init__(self, broker, recipient_id, maxsize):
        self.recipient_id = recipient_id
        self.dropped = 0
        self._broker = broker
        self._queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self):
        return self._closed.is_set()

    def offer(self, event):
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning(f"Push buffer full for recipient {self.recipient_id}; dropped {event['event_type']} event")
            return False
        return True

    def get(self, timeout=None):
        """Next event, or None when nothing arrived within `timeout` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def __iter__(self):
        while not self.closed:
            event = self.get(timeout=0.5)
            if event is not None:
                yield event

    def drain(self):
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def unsubscribe(self):
        if not self.closed:
            self._closed.set()
            self._broker.unsubscribe(self)


class NotificationBroker:
    def __init__(self):
        self._subscriptions = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, recipient_id, maxsize=None):
        subscription = Subscription(self, recipient_id, maxsize or settings.NOTIFICATION_STREAM_BUFFER)
        with self._lock:
            self._subscriptions[recipient_id].add(subscription)
        logger.debug(f"Recipient {recipient_id} subscribed to notification events")
        return subscription

    def unsubscribe(self, subscription):
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.recipient_id)
            if subscriptions is None:
                return
            subscriptions.discard(subscription)
            if not subscriptions:
                del self._subscriptions[subscription.recipient_id]
        subscription.unsubscribe()

    def subscriber_count(self, recipient_id):
        with self._lock:
            return len(self._subscriptions.get(recipient_id, ()))

    def publish(self, recipient_id, event_type, record):
        """Fan an event out to the recipient's subscribers; returns how many accepted it."""
        with self._lock:
            subscriptions = list(self._subscriptions.get(recipient_id, ()))
        event = {"event_type": event_type, "record": record}
        return sum(1 for subscription in subscriptions if subscription.offer(event))


broker = NotificationBroker()


def subscribe(recipient_id):
    return broker.subscribe(recipient_id)


def publish_notifications(event_type, notification_ids):
    from .models import Notification
    from .serializers import NotificationSerializer

    for notification in Notification.objects.filter(pk__in=notification_ids):
        record = dict(NotificationSerializer(notification).data)
        broker.publish(notification.user_id, event_type, record)


def publish_on_commit(event_type, notification_ids):
    """Push the given rows to their recipients once the current transaction commits."""
    ids = list(notification_ids)
    if not ids:
        return
    transaction.on_commit(lambda: publish_notifications(event_type, ids), robust=True)
