import json
import queue
import threading
import time
import unittest

import httpx

from feedclient.cache import NotificationCache
from feedclient.transport import HttpTransport, TransportError, parse_events


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def friend_request(notification_id, sender, status="PENDING", is_read=False):
    return {
        "id": notification_id,
        "notification_type": "FOLLOW",
        "title": "New Friend Request",
        "sender": sender,
        "data": {"fromUserId": sender},
        "status": status,
        "is_read": is_read,
    }


class FakeStream:
    def __init__(self):
        self.events = queue.Queue()
        self.closed = False

    def __iter__(self):
        while True:
            event = self.events.get()
            if event is None:
                return
            yield event

    def close(self):
        self.closed = True
        self.events.put(None)


class FakeTransport:
    """In-memory server: keeps its own notification list and records calls."""

    def __init__(self, notifications=()):
        self.server = [dict(n) for n in notifications]
        self.calls = []
        self.fetches = 0
        self.streams = []
        self.stream_opened = threading.Event()
        self.gate = None
        self.respond_error = None
        self.fetch_error = None
        self._lock = threading.Lock()

    def fetch_notifications(self, page=1, limit=50):
        with self._lock:
            self.fetches += 1
            if self.fetch_error:
                raise TransportError(self.fetch_error, 500)
            return [dict(n) for n in self.server[:limit]]

    def _respond(self, name, from_user_id, status):
        self.calls.append((name, from_user_id))
        if self.gate is not None:
            self.gate.wait(2)
        if self.respond_error:
            raise TransportError(self.respond_error, 500)
        with self._lock:
            for n in self.server:
                if n.get("sender") == from_user_id and n["notification_type"] == "FOLLOW":
                    n["status"] = status
        return {"status": status, "already_handled": False}

    def accept_friend_request(self, from_user_id):
        return self._respond("accept", from_user_id, "ACCEPTED")

    def decline_friend_request(self, from_user_id):
        return self._respond("decline", from_user_id, "DECLINED")

    def mark_read(self, notification_id):
        self.calls.append(("mark_read", notification_id))
        with self._lock:
            for n in self.server:
                if n["id"] == notification_id:
                    n["is_read"] = True
        return {"id": notification_id, "is_read": True}

    def mark_all_read(self):
        self.calls.append(("mark_all_read",))
        with self._lock:
            for n in self.server:
                n["is_read"] = True
        return {"marked_count": len(self.server)}

    def stream(self):
        s = FakeStream()
        self.streams.append(s)
        self.stream_opened.set()
        return s

    def push(self, event_type, record):
        for s in self.streams:
            if not s.closed:
                s.events.put({"event_type": event_type, "record": record})


class NotificationCacheTests(unittest.TestCase):
    def setUp(self):
        self.errors = []
        self.transport = FakeTransport([
            friend_request(2, sender=20),
            {"id": 1, "notification_type": "LIKE", "is_read": True, "status": None},
        ])

    def _start(self, poll_interval=60):
        cache = NotificationCache(self.transport, poll_interval=poll_interval, on_error=self.errors.append)
        self.addCleanup(cache.close)
        cache.start()
        self.assertTrue(self.transport.stream_opened.wait(2))
        return cache

    def test_start_loads_first_page(self):
        cache = self._start()
        self.assertEqual([n["id"] for n in cache.notifications()], [2, 1])
        self.assertEqual(cache.unread_count, 1)

    def test_push_insert_prepends_once(self):
        cache = self._start()
        record = {"id": 3, "notification_type": "LIKE", "is_read": False}
        self.transport.push("insert", record)
        self.transport.push("insert", dict(record, title="again"))

        self.assertTrue(_wait_for(lambda: cache.get(3) is not None and cache.get(3).get("title") == "again"))
        self.assertEqual([n["id"] for n in cache.notifications()], [3, 2, 1])
        self.assertEqual(cache.unread_count, 2)

    def test_push_update_merges_fields(self):
        cache = self._start()
        self.transport.push("update", {"id": 2, "status": "CANCELLED"})

        self.assertTrue(_wait_for(lambda: cache.get(2)["status"] == "CANCELLED"))
        self.assertEqual(cache.get(2)["sender"], 20)

    def test_dropped_push_is_corrected_by_poll(self):
        cache = self._start(poll_interval=0.05)
        # The server gains a row but its push event never arrives.
        self.transport.server.insert(0, {"id": 5, "notification_type": "COMMENT", "is_read": False})

        self.assertTrue(_wait_for(lambda: cache.get(5) is not None))
        self.assertEqual(cache.notifications()[0]["id"], 5)

    def test_accept_is_optimistic_then_refetches(self):
        cache = self._start()
        self.transport.gate = threading.Event()
        fetches_before = self.transport.fetches
        outcome = {}

        worker = threading.Thread(target=lambda: outcome.update(cache.accept(2)))
        worker.start()
        self.assertTrue(_wait_for(lambda: cache.get(2)["status"] == "ACCEPTED"))
        self.assertEqual(self.transport.server[0]["status"], "PENDING")

        self.transport.gate.set()
        worker.join(2)
        cache.wait_idle()

        self.assertTrue(outcome["success"])
        self.assertEqual(self.transport.calls, [("accept", 20)])
        self.assertGreater(self.transport.fetches, fetches_before)
        self.assertEqual(cache.get(2)["status"], "ACCEPTED")

    def test_failed_decline_is_reported_and_corrected(self):
        cache = self._start()
        self.transport.respond_error = "Failed to decline friend request"

        result = cache.decline(2)
        cache.wait_idle()

        self.assertEqual(result, {"success": False, "error": "Failed to decline friend request"})
        self.assertEqual(len(self.errors), 1)
        self.assertEqual(cache.get(2)["status"], "PENDING")

    def test_second_accept_while_in_flight_is_refused(self):
        cache = self._start()
        self.transport.gate = threading.Event()

        worker = threading.Thread(target=cache.accept, args=(2,))
        worker.start()
        self.assertTrue(_wait_for(lambda: len(self.transport.calls) == 1))

        second = cache.accept(2)
        self.transport.gate.set()
        worker.join(2)

        self.assertFalse(second["success"])
        self.assertEqual(self.transport.calls, [("accept", 20)])

    def test_accept_requires_friend_request(self):
        cache = self._start()
        self.assertFalse(cache.accept(1)["success"])
        self.assertFalse(cache.accept(404)["success"])
        self.assertEqual(self.transport.calls, [])

    def test_mark_read_is_optimistic(self):
        cache = self._start()
        future = cache.mark_read(2)
        cache.wait_idle()

        self.assertTrue(cache.get(2)["is_read"])
        self.assertEqual(cache.unread_count, 0)
        future.result(timeout=2)
        self.assertIn(("mark_read", 2), self.transport.calls)

    def test_mark_all_read(self):
        cache = self._start()
        self.transport.push("insert", {"id": 9, "notification_type": "LIKE", "is_read": False})
        self.assertTrue(_wait_for(lambda: cache.unread_count == 2))

        cache.mark_all_read().result(timeout=2)
        cache.wait_idle()
        self.assertEqual(cache.unread_count, 0)

    def test_close_discards_late_results(self):
        cache = self._start()
        cache.close()

        self.assertTrue(cache.closed)
        self.assertTrue(self.transport.streams[0].closed)
        self.assertFalse(cache.refresh())
        self.assertIsNone(cache.mark_read(2))
        self.assertEqual(cache.get(2)["is_read"], False)

    def test_close_during_accept_discards_the_response(self):
        cache = self._start()
        self.transport.gate = threading.Event()
        outcome = {}

        worker = threading.Thread(target=lambda: outcome.update(cache.accept(2)))
        worker.start()
        self.assertTrue(_wait_for(lambda: len(self.transport.calls) == 1))
        cache.wait_idle()
        snapshot = cache.notifications()
        fetches = self.transport.fetches

        cache.close()
        self.transport.gate.set()
        worker.join(2)

        self.assertFalse(worker.is_alive())
        self.assertFalse(outcome["success"])
        self.assertEqual(self.transport.fetches, fetches)
        self.assertEqual(cache.notifications(), snapshot)
        self.assertEqual(self.errors, [])

    def test_accept_after_close_sends_nothing(self):
        cache = self._start()
        cache.close()

        result = cache.accept(2)

        self.assertFalse(result["success"])
        self.assertEqual(self.transport.calls, [])
        self.assertEqual(cache.get(2)["status"], "PENDING")

    def test_mark_read_stamps_read_at(self):
        cache = self._start()
        cache.mark_read(2).result(timeout=2)
        cache.wait_idle()
        self.assertIsNotNone(cache.get(2).get("read_at"))

        cache.mark_all_read().result(timeout=2)
        cache.wait_idle()
        # Rows that were already read keep their timestamp.
        self.assertNotIn("read_at", cache.get(1))

    def test_push_insert_of_known_row_moves_it_to_the_top(self):
        cache = self._start()
        self.transport.push("insert", {"id": 1, "notification_type": "LIKE", "is_read": False})

        self.assertTrue(_wait_for(lambda: cache.notifications()[0]["id"] == 1))
        self.assertEqual([n["id"] for n in cache.notifications()], [1, 2])
        self.assertFalse(cache.get(1)["is_read"])

    def test_refresh_failure_keeps_last_list(self):
        cache = self._start()
        self.transport.fetch_error = "boom"

        self.assertFalse(cache.refresh())
        self.assertEqual(len(cache.notifications()), 2)
        self.assertEqual(len(self.errors), 1)


class ParseEventsTests(unittest.TestCase):
    def test_parses_events_and_skips_comments(self):
        lines = [
            ": connected",
            "",
            "event: insert",
            'data: {"id": 1}',
            "",
            ": keepalive",
            "",
            "event: update",
            'data: {"id": 1, "is_read": true}',
            "",
        ]
        self.assertEqual(
            list(parse_events(lines)),
            [
                {"event_type": "insert", "record": {"id": 1}},
                {"event_type": "update", "record": {"id": 1, "is_read": True}},
            ],
        )

    def test_bad_data_is_skipped(self):
        self.assertEqual(list(parse_events(["event: insert", "data: {oops", ""])), [])


class HttpTransportTests(unittest.TestCase):
    def _transport(self, handler):
        transport = HttpTransport("http://api.test/", "token-123", transport=httpx.MockTransport(handler))
        self.addCleanup(transport.close)
        return transport

    def test_fetch_notifications_sends_token_and_paging(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": {"notifications": [{"id": 1}], "pagination": {}}})

        notifications = self._transport(handler).fetch_notifications(page=1, limit=50)

        self.assertEqual(notifications, [{"id": 1}])
        self.assertEqual(seen["auth"], "Bearer token-123")
        self.assertEqual(seen["params"], {"page": "1", "limit": "50"})

    def test_failure_envelope_raises(self):
        def handler(request):
            return httpx.Response(403, json={"success": False, "error": "Only the recipient can respond"})

        with self.assertRaises(TransportError) as raised:
            self._transport(handler).accept_friend_request(7)
        self.assertEqual(raised.exception.status_code, 403)
        self.assertEqual(str(raised.exception), "Only the recipient can respond")

    def test_accept_posts_to_sender_path(self):
        seen = {}

        def handler(request):
            seen["method"], seen["path"] = request.method, request.url.path
            return httpx.Response(200, json={"success": True, "data": {"already_handled": True}})

        self.assertEqual(self._transport(handler).accept_friend_request(7), {"already_handled": True})
        self.assertEqual(seen, {"method": "POST", "path": "/api/friends/requests/7/accept/"})

    def test_stream_yields_events(self):
        body = ': connected\n\nevent: insert\ndata: {"id": 3}\n\n'

        def handler(request):
            return httpx.Response(200, headers={"Content-Type": "text/event-stream"}, content=body.encode())

        events = list(self._transport(handler).stream())
        self.assertEqual(events, [{"event_type": "insert", "record": {"id": 3}}])

    def test_stream_refused(self):
        def handler(request):
            return httpx.Response(401, json={"success": False, "error": "nope"})

        with self.assertRaises(TransportError):
            list(self._transport(handler).stream())


if __name__ == "__main__":
    unittest.main()
