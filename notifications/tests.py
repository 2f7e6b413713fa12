from datetime import timedelta
from itertools import islice
from unittest.mock import patch
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient
from friends.services import accept_friend_request, remove_friend, send_friend_request
from .models import Notification, NotificationType
from .realtime import INSERT, UPDATE, NotificationBroker, broker
from .services import (
    create_comment_notification,
    create_like_notification,
    get_notifications,
    get_unread_notification_count,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)
from .tasks import notify_subject_commented, notify_subject_liked
from .utils import unread_count_cache_key

User = get_user_model()

LOCMEM_CACHE = {'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache'}}


def make_notification(user, **kwargs):
    kwargs.setdefault("notification_type", NotificationType.LIKE)
    kwargs.setdefault("title", "New Like")
    kwargs.setdefault("message", "Someone liked your post")
    return Notification.objects.create(user=user, **kwargs)


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.user1 = User.objects.create_user(email="user1@example.com", profile_name="user1", password="testpass123")
        self.user2 = User.objects.create_user(email="user2@example.com", profile_name="user2", password="testpass123")

    def test_notification_for_non_existent_user(self):
        with self.assertRaises(User.DoesNotExist):
            Notification.objects.create(user_id=9999, notification_type=NotificationType.LIKE, message="This should fail")

    def test_feed_is_newest_first_with_pagination(self):
        now = timezone.now()
        for i in range(25):
            make_notification(self.user1, message=f"Notification {i}", created_at=now - timedelta(minutes=25 - i))
        make_notification(self.user2)

        result = get_notifications(self.user1, page=2, limit=10)

        self.assertTrue(result.success)
        self.assertEqual(len(result.data["notifications"]), 10)
        self.assertEqual(result.data["notifications"][0]["message"], "Notification 14")
        self.assertEqual(
            result.data["pagination"],
            {"page": 2, "limit": 10, "total": 25, "has_next": True, "has_prev": True, "total_pages": 3},
        )

    def test_feed_last_page(self):
        for i in range(3):
            make_notification(self.user1)
        result = get_notifications(self.user1, page=1, limit=10)
        self.assertFalse(result.data["pagination"]["has_next"])
        self.assertFalse(result.data["pagination"]["has_prev"])
        self.assertEqual(result.data["pagination"]["total_pages"], 1)

    def test_feed_rejects_bad_pagination(self):
        for page, limit in ((0, 10), (1, 0), (1, 101)):
            result = get_notifications(self.user1, page=page, limit=limit)
            self.assertFalse(result.success)
            self.assertEqual(result.status_code, status.HTTP_400_BAD_REQUEST)

    def test_feed_requires_actor(self):
        result = get_notifications(None)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_mark_as_read(self):
        notification = make_notification(self.user1)
        result = mark_notification_as_read(self.user1, notification.pk)

        self.assertTrue(result.success)
        notification.refresh_from_db()
        self.assertTrue(notification.is_read)
        self.assertIsNotNone(notification.read_at)

        again = mark_notification_as_read(self.user1, notification.pk)
        self.assertTrue(again.success)
        self.assertEqual(again.data["read_at"], result.data["read_at"])

    def test_mark_as_read_by_other_user_is_forbidden(self):
        notification = make_notification(self.user2)
        result = mark_notification_as_read(self.user1, notification.pk)

        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_403_FORBIDDEN)
        notification.refresh_from_db()
        self.assertFalse(notification.is_read)

    def test_mark_missing_notification(self):
        result = mark_notification_as_read(self.user1, 424242)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_all_zeroes_unread_count(self):
        for i in range(5):
            make_notification(self.user1)
        make_notification(self.user2)

        result = mark_all_notifications_as_read(self.user1)

        self.assertEqual(result.data, {"marked_count": 5})
        self.assertEqual(get_unread_notification_count(self.user1).data, 0)
        self.assertFalse(Notification.objects.filter(user=self.user1, read_at__isnull=True).exists())
        self.assertEqual(get_unread_notification_count(self.user2).data, 1)
        self.assertEqual(mark_all_notifications_as_read(self.user1).data, {"marked_count": 0})

    @override_settings(CACHES=LOCMEM_CACHE)
    def test_unread_count_is_cached_until_a_change_commits(self):
        cache.clear()
        make_notification(self.user1)
        self.assertEqual(get_unread_notification_count(self.user1).data, 1)

        # Not committed yet: the cached value is still served.
        make_notification(self.user1)
        self.assertEqual(get_unread_notification_count(self.user1).data, 1)

        with self.captureOnCommitCallbacks(execute=True):
            make_notification(self.user1)
        self.assertEqual(get_unread_notification_count(self.user1).data, 3)

    @override_settings(CACHES=LOCMEM_CACHE)
    def test_late_refill_does_not_outlive_invalidation(self):
        cache.clear()
        stale_key = unread_count_cache_key(self.user1.pk)

        with self.captureOnCommitCallbacks(execute=True):
            make_notification(self.user1)
        # A reader that counted before the commit stores its result afterwards.
        cache.set(stale_key, 0)

        self.assertNotEqual(unread_count_cache_key(self.user1.pk), stale_key)
        self.assertEqual(get_unread_notification_count(self.user1).data, 1)

    def test_like_notification(self):
        result = create_like_notification("post-1", self.user2.pk, self.user1.pk)

        self.assertTrue(result.success)
        self.assertTrue(result.data["created"])
        notification = Notification.objects.get(pk=result.data["id"])
        self.assertEqual(notification.notification_type, NotificationType.LIKE)
        self.assertEqual(notification.sender, self.user2)
        self.assertEqual(notification.subject_id, "post-1")
        self.assertIn("user2", notification.message)

    def test_like_notification_is_not_duplicated(self):
        create_like_notification("post-1", self.user2.pk, self.user1.pk)
        result = create_like_notification("post-1", self.user2.pk, self.user1.pk)

        self.assertTrue(result.success)
        self.assertFalse(result.data["created"])
        self.assertEqual(Notification.objects.filter(user=self.user1).count(), 1)

        create_like_notification("post-2", self.user2.pk, self.user1.pk)
        self.assertEqual(Notification.objects.filter(user=self.user1).count(), 2)

    def test_lost_like_race_returns_existing_row(self):
        existing = create_like_notification("post-1", self.user2.pk, self.user1.pk).data["id"]

        with patch.object(Notification.objects, "get_or_create", side_effect=IntegrityError("duplicate")):
            result = create_like_notification("post-1", self.user2.pk, self.user1.pk)

        self.assertTrue(result.success)
        self.assertEqual(result.data, {"created": False, "id": existing})
        self.assertEqual(Notification.objects.filter(user=self.user1).count(), 1)

    def test_database_rejects_duplicate_interaction(self):
        make_notification(self.user1, sender=self.user2, subject_id="post-1")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_notification(self.user1, sender=self.user2, subject_id="post-1")

        make_notification(self.user1, sender=self.user2, notification_type=NotificationType.MENTION, subject_id="post-1")
        make_notification(self.user1, sender=self.user2, notification_type=NotificationType.MENTION, subject_id="post-1")
        self.assertEqual(Notification.objects.filter(user=self.user1).count(), 3)

    def test_no_self_notification(self):
        like = create_like_notification("post-1", self.user1.pk, self.user1.pk)
        comment = create_comment_notification("post-1", self.user1.pk, self.user1.pk)

        self.assertTrue(like.success)
        self.assertFalse(like.data["created"])
        self.assertFalse(comment.data["created"])
        self.assertFalse(Notification.objects.exists())

    def test_comment_notification_is_separate_from_like(self):
        create_like_notification("post-1", self.user2.pk, self.user1.pk)
        create_comment_notification("post-1", self.user2.pk, self.user1.pk)
        types = set(Notification.objects.filter(user=self.user1).values_list("notification_type", flat=True))
        self.assertEqual(types, {NotificationType.LIKE, NotificationType.COMMENT})

    def test_interaction_for_missing_user(self):
        result = create_like_notification("post-1", 9999, self.user1.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_404_NOT_FOUND)

    def test_celery_tasks_create_notifications(self):
        liked = notify_subject_liked.apply(args=("post-9", self.user2.pk, self.user1.pk)).get()
        commented = notify_subject_commented.apply(args=("post-9", self.user2.pk, self.user1.pk)).get()

        self.assertTrue(liked["success"])
        self.assertTrue(liked["data"]["created"])
        self.assertTrue(commented["data"]["created"])
        self.assertEqual(Notification.objects.filter(user=self.user1, subject_id="post-9").count(), 2)


class NotificationBrokerTests(TestCase):
    def setUp(self):
        self.broker = NotificationBroker()

    def test_publish_reaches_only_the_recipient(self):
        mine = self.broker.subscribe(1, maxsize=5)
        theirs = self.broker.subscribe(2, maxsize=5)

        delivered = self.broker.publish(1, INSERT, {"id": 10})

        self.assertEqual(delivered, 1)
        self.assertEqual(mine.drain(), [{"event_type": INSERT, "record": {"id": 10}}])
        self.assertEqual(theirs.drain(), [])

    def test_full_buffer_drops_events(self):
        subscription = self.broker.subscribe(1, maxsize=2)
        results = [self.broker.publish(1, UPDATE, {"id": i}) for i in range(3)]

        self.assertEqual(results, [1, 1, 0])
        self.assertEqual(subscription.dropped, 1)
        self.assertEqual([event["record"]["id"] for event in subscription.drain()], [0, 1])

    def test_unsubscribe_stops_delivery(self):
        subscription = self.broker.subscribe(1, maxsize=2)
        subscription.unsubscribe()

        self.assertTrue(subscription.closed)
        self.assertEqual(self.broker.subscriber_count(1), 0)
        self.assertEqual(self.broker.publish(1, INSERT, {"id": 1}), 0)

    def test_subscription_is_iterable(self):
        subscription = self.broker.subscribe(1, maxsize=5)
        self.broker.publish(1, INSERT, {"id": 1})
        self.broker.publish(1, UPDATE, {"id": 1, "is_read": True})

        events = list(islice(subscription, 2))
        self.assertEqual([event["event_type"] for event in events], [INSERT, UPDATE])

    def test_get_times_out(self):
        subscription = self.broker.subscribe(1, maxsize=2)
        self.assertIsNone(subscription.get(timeout=0.01))


class NotificationPushTests(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(email="alice@example.com", profile_name="alice", password="testpass123")
        self.bob = User.objects.create_user(email="bob@example.com", profile_name="bob", password="testpass123")

    def _subscribe(self, user):
        subscription = broker.subscribe(user.pk)
        self.addCleanup(subscription.unsubscribe)
        return subscription

    def test_insert_is_published_after_commit(self):
        subscription = self._subscribe(self.alice)

        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            notification = make_notification(self.alice)
        self.assertEqual(subscription.drain(), [])

        for callback in callbacks:
            callback()
        events = subscription.drain()
        self.assertEqual([event["event_type"] for event in events], [INSERT])
        self.assertEqual(events[0]["record"]["id"], notification.pk)
        self.assertFalse(events[0]["record"]["is_read"])

    def test_mark_read_publishes_update(self):
        notification = make_notification(self.alice)
        subscription = self._subscribe(self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            mark_notification_as_read(self.alice, notification.pk)

        events = subscription.drain()
        self.assertEqual([event["event_type"] for event in events], [UPDATE])
        self.assertTrue(events[0]["record"]["is_read"])

    def test_mark_all_publishes_update_per_row(self):
        ids = {make_notification(self.alice).pk for _ in range(3)}
        subscription = self._subscribe(self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            mark_all_notifications_as_read(self.alice)

        events = subscription.drain()
        self.assertEqual({event["record"]["id"] for event in events}, ids)
        self.assertTrue(all(event["event_type"] == UPDATE for event in events))

    def test_accept_pushes_status_to_both_sides(self):
        bob_events = self._subscribe(self.bob)
        alice_events = self._subscribe(self.alice)

        with self.captureOnCommitCallbacks(execute=True):
            send_friend_request(self.alice, self.bob.pk)
        inserted = bob_events.drain()
        self.assertEqual(inserted[0]["event_type"], INSERT)
        self.assertEqual(inserted[0]["record"]["status"], "PENDING")

        with self.captureOnCommitCallbacks(execute=True):
            accept_friend_request(self.bob, self.alice.pk)

        updated = bob_events.drain()
        self.assertEqual([event["event_type"] for event in updated], [UPDATE])
        self.assertEqual(updated[0]["record"]["status"], "ACCEPTED")

        accepted = alice_events.drain()
        self.assertEqual(accepted[0]["event_type"], INSERT)
        self.assertEqual(accepted[0]["record"]["notification_type"], NotificationType.FRIEND_ACCEPTED)

    def test_resent_request_is_pushed_as_insert(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)
        remove_friend(self.bob, self.alice.pk)
        bob_events = self._subscribe(self.bob)

        with self.captureOnCommitCallbacks(execute=True):
            result = send_friend_request(self.alice, self.bob.pk)

        events = bob_events.drain()
        self.assertEqual([event["event_type"] for event in events], [INSERT])
        self.assertEqual(events[0]["record"]["id"], result.data["notification_id"])
        self.assertEqual(events[0]["record"]["status"], "PENDING")


class NotificationApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user1 = User.objects.create_user(email="user1@example.com", profile_name="user1", password="testpass123")
        self.user2 = User.objects.create_user(email="user2@example.com", profile_name="user2", password="testpass123")
        self.client.force_authenticate(user=self.user1)

    def tearDown(self):
        self.client.force_authenticate(user=None)

    def test_list_notifications(self):
        for i in range(15):
            make_notification(self.user1, message=f"Test Notification {i}")
        response = self.client.get(reverse("notification-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["pagination"]["total"], 15)
        self.assertEqual(len(response.data["data"]["notifications"]), 10)

    def test_list_with_limit(self):
        for i in range(15):
            make_notification(self.user1)
        response = self.client.get(reverse("notification-list"), {"page": 2, "limit": 50})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["notifications"], [])
        self.assertTrue(response.data["data"]["pagination"]["has_prev"])

    def test_list_rejects_invalid_query(self):
        response = self.client.get(reverse("notification-list"), {"limit": "lots"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])

        response = self.client.get(reverse("notification-list"), {"limit": 500})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unread_count(self):
        make_notification(self.user1)
        make_notification(self.user1, is_read=True)
        response = self.client.get(reverse("notification-unread-count"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"], 1)

    def test_mark_notification_as_read(self):
        notification = make_notification(self.user1)
        response = self.client.patch(reverse("mark-notification-read", kwargs={"pk": notification.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        notification.refresh_from_db()
        self.assertTrue(notification.is_read)

    def test_mark_other_users_notification(self):
        notification = make_notification(self.user2)
        response = self.client.patch(reverse("mark-notification-read", kwargs={"pk": notification.pk}))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data["success"])

    def test_mark_all_notifications_as_read(self):
        for i in range(5):
            make_notification(self.user1)
        response = self.client.patch(reverse("mark-all-notifications-read"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["marked_count"], 5)
        self.assertEqual(Notification.objects.filter(user=self.user1, is_read=False).count(), 0)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("notification-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["success"], False)

    @override_settings(NOTIFICATION_STREAM_KEEPALIVE=0.01)
    def test_stream_sends_events_and_keepalives(self):
        subscription = broker.subscribe(self.user1.pk)
        self.addCleanup(subscription.unsubscribe)

        with patch("notifications.views.subscribe", return_value=subscription):
            response = self.client.get(reverse("notification-stream"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], "text/event-stream")
        stream = iter(response.streaming_content)
        self.assertEqual(next(stream), b": connected\n\n")

        broker.publish(self.user1.pk, INSERT, {"id": 7})
        self.assertEqual(next(stream), b'event: insert\ndata: {"id": 7}\n\n')
        self.assertEqual(next(stream), b": keepalive\n\n")

        subscription.unsubscribe()
        list(stream)
        self.assertEqual(broker.subscriber_count(self.user1.pk), 0)

    def test_stream_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("notification-stream"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
