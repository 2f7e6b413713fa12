"""
Local copy of the signed-in user's notification feed.

Two producers feed one writer thread through a command queue:

* the poll loop re-fetches the first page every `poll_interval` seconds and
  replaces the list wholesale (the server is authoritative),
* the push listener turns stream events into inserts and field merges.

Push delivery is lossy; whatever it misses is corrected by the next poll.
Only the writer thread mutates the list, readers get snapshots.
"""
import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable

from feedclient.config import PAGE_LIMIT, POLL_INTERVAL_SECONDS, STREAM_RECONNECT_DELAY_SECONDS
from feedclient.transport import TransportError

logger = logging.getLogger(__name__)

ACCEPTED = "ACCEPTED"
DECLINED = "DECLINED"
FRIEND_REQUEST_TYPE = "FOLLOW"
CLOSED_ERROR = "Notification cache is closed"

_REPLACE = "replace"
_INSERT = "insert"
_UPDATE = "update"
_READ = "read"
_STOP = object()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _merge(record: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    merged = dict(record)
    merged.update(fields)
    return merged


class NotificationCache:
    def __init__(
        self,
        transport: Any,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        page_limit: int = PAGE_LIMIT,
        on_error: Callable[[Exception], None] | None = None,
        reconnect_delay: float = STREAM_RECONNECT_DELAY_SECONDS,
    ) -> None:
        self._transport = transport
        self._poll_interval = poll_interval
        self._page_limit = page_limit
        self._on_error = on_error
        self._reconnect_delay = reconnect_delay

        self._items: list[dict[str, Any]] = []
        self._items_lock = threading.Lock()
        self._in_flight: set[int] = set()
        self._in_flight_lock = threading.Lock()
        self._commands: queue.Queue = queue.Queue()
        self._stopped = threading.Event()
        self._stream = None
        self._stream_lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="feedclient-mark")

    # Lifecycle

    def start(self) -> "NotificationCache":
        """Load the first page, then start polling and listening for pushes."""
        self._spawn(self._writer_loop, "feedclient-writer")
        self.refresh()
        self.wait_idle()
        self._spawn(self._poll_loop, "feedclient-poll")
        self._spawn(self._push_loop, "feedclient-push")
        return self

    def close(self) -> None:
        """Stop polling and the push stream; results arriving afterwards are dropped."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        with self._stream_lock:
            if self._stream is not None:
                self._stream.close()
        self._commands.put(_STOP)
        self._executor.shutdown(wait=False)
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join(timeout=1.0)

    @property
    def closed(self) -> bool:
        return self._stopped.is_set()

    def _spawn(self, target: Callable[[], None], name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    # Reads

    def notifications(self) -> list[dict[str, Any]]:
        with self._items_lock:
            return [dict(item) for item in self._items]

    def get(self, notification_id: int) -> dict[str, Any] | None:
        with self._items_lock:
            for item in self._items:
                if item.get("id") == notification_id:
                    return dict(item)
        return None

    @property
    def unread_count(self) -> int:
        with self._items_lock:
            return sum(1 for item in self._items if not item.get("is_read"))

    def wait_idle(self) -> None:
        """Block until every queued command has been applied."""
        self._commands.join()

    # Producers

    def refresh(self) -> bool:
        """Fetch the first page and queue it as the new list."""
        if self._stopped.is_set():
            return False
        try:
            notifications = self._transport.fetch_notifications(page=1, limit=self._page_limit)
        except TransportError as e:
            logger.warning(f"Notification refresh failed: {e}")
            self._report(e)
            return False
        return self._enqueue(_REPLACE, notifications)

    def _poll_loop(self) -> None:
        while not self._stopped.wait(self._poll_interval):
            self.refresh()

    def _push_loop(self) -> None:
        while not self._stopped.is_set():
            stream = self._transport.stream()
            with self._stream_lock:
                if self._stopped.is_set():
                    stream.close()
                    return
                self._stream = stream
            try:
                for event in stream:
                    if self._stopped.is_set():
                        return
                    self._on_push(event)
            except TransportError as e:
                logger.warning(f"Push stream lost: {e}")
            finally:
                with self._stream_lock:
                    self._stream = None
            self._stopped.wait(self._reconnect_delay)

    def _on_push(self, event: dict[str, Any]) -> None:
        kind = event.get("event_type")
        record = event.get("record") or {}
        if kind == _INSERT:
            self._enqueue(_INSERT, record)
        elif kind == _UPDATE:
            self._enqueue(_UPDATE, record)
        else:
            logger.debug(f"Ignoring push event {kind!r}")

    def _enqueue(self, kind: str, payload: Any) -> bool:
        if self._stopped.is_set():
            return False
        self._commands.put((kind, payload))
        return True

    # Writer

    def _writer_loop(self) -> None:
        while True:
            command = self._commands.get()
            try:
                if command is _STOP:
                    return
                if not self._stopped.is_set():
                    self._apply(*command)
            except Exception:
                logger.exception(f"Failed to apply {command[0]} to the notification cache")
            finally:
                self._commands.task_done()

    def _apply(self, kind: str, payload: Any) -> None:
        with self._items_lock:
            items = self._items
        if kind == _REPLACE:
            items = [dict(record) for record in payload]
        elif kind == _INSERT:
            existing = next((item for item in items if item.get("id") == payload.get("id")), {})
            rest = [item for item in items if item.get("id") != payload.get("id")]
            items = [_merge(existing, payload)] + rest
        elif kind == _UPDATE:
            items = [_merge(item, payload) if item.get("id") == payload.get("id") else item for item in items]
        elif kind == _READ:
            # payload: ids to mark, or None for every row
            read_at = _now_iso()
            items = [
                _merge(item, {"is_read": True, "read_at": read_at})
                if not item.get("is_read") and (payload is None or item.get("id") in payload)
                else item
                for item in items
            ]
        with self._items_lock:
            self._items = items

    # Actions

    def accept(self, notification_id: int) -> dict[str, Any]:
        return self._respond(notification_id, ACCEPTED, self._transport.accept_friend_request)

    def decline(self, notification_id: int) -> dict[str, Any]:
        return self._respond(notification_id, DECLINED, self._transport.decline_friend_request)

    def _respond(self, notification_id: int, predicted: str, call: Callable[[int], Any]) -> dict[str, Any]:
        if self._stopped.is_set():
            return {"success": False, "error": CLOSED_ERROR}
        item = self.get(notification_id)
        if item is None or item.get("notification_type") != FRIEND_REQUEST_TYPE:
            return {"success": False, "error": "Friend request notification not found"}
        sender_id = item.get("sender") or (item.get("data") or {}).get("fromUserId")
        if sender_id is None:
            return {"success": False, "error": "Friend request notification has no sender"}

        with self._in_flight_lock:
            if notification_id in self._in_flight:
                return {"success": False, "error": "Request already in progress"}
            self._in_flight.add(notification_id)

        try:
            self._enqueue(_UPDATE, {"id": notification_id, "status": predicted})
            try:
                result = {"success": True, "data": call(sender_id)}
            except TransportError as e:
                logger.warning(f"Friend request {predicted.lower()} for notification {notification_id} failed: {e}")
                result = {"success": False, "error": str(e)}
                if not self._stopped.is_set():
                    self._report(e)
            if self._stopped.is_set():
                logger.debug(f"Discarding friend request {predicted.lower()} result for notification {notification_id}")
                return {"success": False, "error": CLOSED_ERROR}
            # The server decides, whatever the call returned.
            self.refresh()
            return result
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(notification_id)

    def mark_read(self, notification_id: int) -> Future | None:
        if not self._enqueue(_READ, {notification_id}):
            return None
        return self._background(self._transport.mark_read, notification_id)

    def mark_all_read(self) -> Future | None:
        if not self._enqueue(_READ, None):
            return None
        return self._background(self._transport.mark_all_read)

    def _background(self, call: Callable[..., Any], *args: Any) -> Future:
        def run() -> Any:
            try:
                return call(*args)
            except TransportError as e:
                logger.warning(f"{getattr(call, '__name__', 'call')} failed: {e}")
                if not self._stopped.is_set():
                    self._report(e)
                return None

        return self._executor.submit(run)

    def _report(self, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("on_error callback raised")
