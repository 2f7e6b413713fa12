from datetime import timedelta
from unittest.mock import patch
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase
from followers.models import Follow
from notifications.models import Notification, NotificationType
from notifications.services import create_like_notification, get_notifications
from .models import Friend, FriendRequest, RequestStatus, pair_key
from .services import (
    accept_friend_request,
    cancel_friend_request,
    decline_friend_request,
    get_relationship_status,
    list_friend_requests,
    list_friends,
    remove_friend,
    send_friend_request,
)

User = get_user_model()


class FriendRequestServiceTests(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(email="alice@example.com", profile_name="alice", password="testpass123", name="Alice")
        self.bob = User.objects.create_user(email="bob@example.com", profile_name="bob", password="testpass123")
        self.carol = User.objects.create_user(email="carol@example.com", profile_name="carol", password="testpass123")

    def _follow_notifications(self, recipient, sender):
        return Notification.objects.filter(user=recipient, sender=sender, notification_type=NotificationType.FOLLOW)

    def test_pair_key_is_order_independent(self):
        self.assertEqual(pair_key(3, 11), pair_key(11, 3))
        self.assertEqual(pair_key(3, 11), "3:11")

    def test_send_creates_pending_request_and_notification(self):
        result = send_friend_request(self.alice, self.bob.pk)
        self.assertTrue(result.success)

        friend_request = FriendRequest.objects.get(from_user=self.alice, to_user=self.bob)
        self.assertEqual(friend_request.status, RequestStatus.PENDING)
        self.assertEqual(result.data["request_id"], friend_request.pk)

        notification = self._follow_notifications(self.bob, self.alice).get()
        self.assertEqual(notification.status, RequestStatus.PENDING)
        self.assertEqual(notification.friend_request, friend_request)
        self.assertEqual(notification.title, "New Friend Request")
        self.assertEqual(notification.message, "Alice (@alice) sent you a friend request")
        self.assertEqual(notification.data["fromUserId"], self.alice.pk)
        self.assertFalse(notification.is_read)

    def test_send_then_status_flags(self):
        send_friend_request(self.alice, self.bob.pk)

        sender_view = get_relationship_status(self.alice, self.bob.pk)
        self.assertTrue(sender_view.success)
        self.assertTrue(sender_view.data["request_sent"])
        self.assertFalse(sender_view.data["request_received"])
        self.assertFalse(sender_view.data["is_friend"])

        recipient_view = get_relationship_status(self.bob, self.alice.pk)
        self.assertTrue(recipient_view.data["request_received"])
        self.assertFalse(recipient_view.data["request_sent"])

    def test_send_to_self_is_rejected(self):
        result = send_friend_request(self.alice, self.alice.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(FriendRequest.objects.exists())
        self.assertFalse(Notification.objects.exists())

    def test_send_to_missing_user_is_rejected(self):
        result = send_friend_request(self.alice, 999999)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_404_NOT_FOUND)

    def test_send_without_actor_has_no_effect(self):
        result = send_friend_request(None, self.bob.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(FriendRequest.objects.exists())

    def test_duplicate_send_keeps_single_pending_request(self):
        send_friend_request(self.alice, self.bob.pk)
        result = send_friend_request(self.alice, self.bob.pk)

        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(FriendRequest.objects.filter(pair_key=pair_key(self.alice.pk, self.bob.pk)).count(), 1)
        self.assertEqual(self._follow_notifications(self.bob, self.alice).count(), 1)

    def test_reverse_send_while_pending_is_rejected(self):
        send_friend_request(self.alice, self.bob.pk)
        result = send_friend_request(self.bob, self.alice.pk)
        self.assertFalse(result.success)
        self.assertEqual(FriendRequest.objects.count(), 1)

    def test_resubmission_after_decline_is_blocked(self):
        send_friend_request(self.alice, self.bob.pk)
        decline_friend_request(self.bob, self.alice.pk)

        result = send_friend_request(self.alice, self.bob.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_409_CONFLICT)

    def test_accept_creates_friendship_in_both_directions(self):
        send_friend_request(self.alice, self.bob.pk)
        result = accept_friend_request(self.bob, self.alice.pk)

        self.assertTrue(result.success)
        self.assertEqual(result.data, {"status": RequestStatus.ACCEPTED, "already_handled": False})
        self.assertTrue(Friend.objects.filter(user=self.alice, friend=self.bob).exists())
        self.assertTrue(Friend.objects.filter(user=self.bob, friend=self.alice).exists())
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.ACCEPTED)
        self.assertEqual(self._follow_notifications(self.bob, self.alice).get().status, RequestStatus.ACCEPTED)

        self.assertTrue(get_relationship_status(self.alice, self.bob.pk).data["is_friend"])
        self.assertTrue(get_relationship_status(self.bob, self.alice.pk).data["is_friend"])
        self.assertFalse(get_relationship_status(self.bob, self.alice.pk).data["request_received"])

    def test_accept_notifies_original_sender(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)

        accepted = Notification.objects.get(user=self.alice, notification_type=NotificationType.FRIEND_ACCEPTED)
        self.assertEqual(accepted.sender, self.bob)
        self.assertEqual(accepted.message, "bob accepted your friend request")

    def test_double_accept_is_idempotent(self):
        send_friend_request(self.alice, self.bob.pk)
        first = accept_friend_request(self.bob, self.alice.pk)
        second = accept_friend_request(self.bob, self.alice.pk)

        self.assertTrue(first.success)
        self.assertTrue(second.success)
        self.assertTrue(second.data["already_handled"])
        self.assertEqual(Friend.objects.count(), 2)
        self.assertEqual(
            Notification.objects.filter(notification_type=NotificationType.FRIEND_ACCEPTED).count(), 1
        )

    def test_concurrent_accept_has_single_winner(self):
        send_friend_request(self.alice, self.bob.pk)
        # Both callers read the row while it was still PENDING.
        stale = FriendRequest.objects.get(from_user=self.alice, to_user=self.bob)
        winner = accept_friend_request(self.bob, self.alice.pk)

        with patch("friends.services._find_request", return_value=stale):
            loser = accept_friend_request(self.bob, self.alice.pk)

        self.assertTrue(winner.success)
        self.assertFalse(winner.data["already_handled"])
        self.assertTrue(loser.success)
        self.assertTrue(loser.data["already_handled"])
        self.assertEqual(loser.data["status"], RequestStatus.ACCEPTED)
        self.assertEqual(Friend.objects.count(), 2)
        self.assertEqual(
            Notification.objects.filter(notification_type=NotificationType.FRIEND_ACCEPTED).count(), 1
        )

    def test_decline_racing_accept_does_not_overwrite(self):
        send_friend_request(self.alice, self.bob.pk)
        stale = FriendRequest.objects.get(from_user=self.alice, to_user=self.bob)
        accept_friend_request(self.bob, self.alice.pk)

        with patch("friends.services._find_request", return_value=stale):
            result = decline_friend_request(self.bob, self.alice.pk)

        self.assertTrue(result.data["already_handled"])
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.ACCEPTED)
        self.assertEqual(self._follow_notifications(self.bob, self.alice).get().status, RequestStatus.ACCEPTED)

    def test_failed_accept_rolls_back_every_step(self):
        send_friend_request(self.alice, self.bob.pk)

        with patch("friends.services._create_friendship", side_effect=DatabaseError("disk full")):
            result = accept_friend_request(self.bob, self.alice.pk)

        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(result.error, "Failed to accept friend request")
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.PENDING)
        self.assertEqual(self._follow_notifications(self.bob, self.alice).get().status, RequestStatus.PENDING)
        self.assertFalse(Friend.objects.exists())

    def test_decline_sets_status_without_friendship(self):
        send_friend_request(self.alice, self.bob.pk)
        result = decline_friend_request(self.bob, self.alice.pk)

        self.assertTrue(result.success)
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.DECLINED)
        self.assertEqual(self._follow_notifications(self.bob, self.alice).get().status, RequestStatus.DECLINED)
        self.assertFalse(Friend.objects.exists())
        self.assertFalse(Notification.objects.filter(notification_type=NotificationType.FRIEND_ACCEPTED).exists())

    def test_only_recipient_can_accept(self):
        send_friend_request(self.alice, self.bob.pk)
        result = accept_friend_request(self.alice, self.bob.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.PENDING)

    def test_accept_without_request_is_not_found(self):
        result = accept_friend_request(self.bob, self.carol.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_by_sender(self):
        send_friend_request(self.alice, self.bob.pk)
        result = cancel_friend_request(self.alice, self.bob.pk)

        self.assertTrue(result.success)
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.CANCELLED)
        self.assertEqual(self._follow_notifications(self.bob, self.alice).get().status, RequestStatus.CANCELLED)
        self.assertFalse(get_relationship_status(self.bob, self.alice.pk).data["request_received"])

    def test_cancel_by_recipient_is_forbidden(self):
        send_friend_request(self.alice, self.bob.pk)
        result = cancel_friend_request(self.bob, self.alice.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancel_after_accept_is_already_handled(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)
        result = cancel_friend_request(self.alice, self.bob.pk)
        self.assertTrue(result.success)
        self.assertTrue(result.data["already_handled"])
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.ACCEPTED)

    def test_remove_friend_keeps_notifications(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)

        result = remove_friend(self.alice, self.bob.pk)

        self.assertTrue(result.success)
        self.assertTrue(result.data["removed"])
        self.assertFalse(Friend.objects.exists())
        self.assertFalse(FriendRequest.objects.exists())
        notification = self._follow_notifications(self.bob, self.alice).get()
        self.assertIsNone(notification.friend_request)
        self.assertEqual(notification.status, RequestStatus.ACCEPTED)

    def test_refriending_reuses_active_notification(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)
        remove_friend(self.bob, self.alice.pk)

        result = send_friend_request(self.alice, self.bob.pk)

        self.assertTrue(result.success)
        notification = self._follow_notifications(self.bob, self.alice).get()
        self.assertEqual(notification.status, RequestStatus.PENDING)
        self.assertEqual(notification.friend_request_id, result.data["request_id"])
        self.assertFalse(notification.is_read)

    def test_resent_request_tops_the_feed(self):
        send_friend_request(self.alice, self.bob.pk)
        self._follow_notifications(self.bob, self.alice).update(created_at=timezone.now() - timedelta(days=30))
        accept_friend_request(self.bob, self.alice.pk)
        remove_friend(self.bob, self.alice.pk)
        for i in range(5):
            create_like_notification(f"post-{i}", self.carol.pk, self.bob.pk)

        result = send_friend_request(self.alice, self.bob.pk)

        page = get_notifications(self.bob, page=1, limit=3).data["notifications"]
        self.assertEqual(page[0]["id"], result.data["notification_id"])
        self.assertEqual(page[0]["status"], RequestStatus.PENDING)

    def test_remove_non_friend_reports_nothing_removed(self):
        result = remove_friend(self.alice, self.carol.pk)
        self.assertTrue(result.success)
        self.assertFalse(result.data["removed"])

    def test_relationship_status_for_self_is_all_false(self):
        result = get_relationship_status(self.alice, self.alice.pk)
        self.assertTrue(result.success)
        self.assertFalse(any(result.data.values()))

    def test_relationship_status_reports_follow(self):
        Follow.objects.create(follower=self.alice, followed=self.carol)
        result = get_relationship_status(self.alice, self.carol.pk)
        self.assertTrue(result.data["is_following"])
        self.assertFalse(get_relationship_status(self.carol, self.alice.pk).data["is_following"])

    def test_relationship_status_falls_back_on_database_error(self):
        with patch.object(Follow.objects, "filter", side_effect=DatabaseError("gone")):
            result = get_relationship_status(self.alice, self.bob.pk)
        self.assertTrue(result.success)
        self.assertEqual(
            result.data,
            {"is_following": False, "is_friend": False, "request_sent": False, "request_received": False},
        )

    def test_relationship_status_requires_actor(self):
        result = get_relationship_status(None, self.bob.pk)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_friend_requests_only_shows_received(self):
        send_friend_request(self.alice, self.bob.pk)
        send_friend_request(self.bob, self.carol.pk)

        received = list_friend_requests(self.bob)
        self.assertEqual([request.from_user_id for request in received], [self.alice.pk])

    def test_list_friends(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)

        result = list_friends(self.alice)
        self.assertTrue(result.success)
        self.assertEqual([friend["id"] for friend in result.data], [self.bob.pk])
        self.assertIn("friends_since", result.data[0])
        self.assertEqual(list_friends(self.carol).data, [])


class FriendApiTests(APITestCase):
    def setUp(self):
        self.alice = User.objects.create_user(email="alice@example.com", profile_name="alice", password="testpass123")
        self.bob = User.objects.create_user(email="bob@example.com", profile_name="bob", password="testpass123")

    def test_send_and_accept_over_http(self):
        self.client.force_authenticate(user=self.alice)
        response = self.client.post(reverse("friend-request", args=[self.bob.id]))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])

        self.client.force_authenticate(user=self.bob)
        response = self.client.post(reverse("friend-request-accept", args=[self.alice.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["data"]["already_handled"])

        response = self.client.post(reverse("friend-request-accept", args=[self.alice.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["already_handled"])

        response = self.client.get(reverse("friend-list"))
        self.assertEqual([friend["id"] for friend in response.data["data"]], [self.alice.id])

    def test_duplicate_send_returns_conflict(self):
        self.client.force_authenticate(user=self.alice)
        self.client.post(reverse("friend-request", args=[self.bob.id]))
        response = self.client.post(reverse("friend-request", args=[self.bob.id]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"], "Friend request already exists or pending")

    def test_decline_and_cancel_over_http(self):
        self.client.force_authenticate(user=self.alice)
        self.client.post(reverse("friend-request", args=[self.bob.id]))
        response = self.client.delete(reverse("friend-request", args=[self.bob.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(FriendRequest.objects.get().status, RequestStatus.CANCELLED)

        self.client.force_authenticate(user=self.bob)
        response = self.client.post(reverse("friend-request-decline", args=[self.alice.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["already_handled"])

    def test_received_requests_filter_by_status(self):
        carol = User.objects.create_user(email="carol@example.com", profile_name="carol", password="testpass123")
        send_friend_request(self.alice, self.bob.pk)
        send_friend_request(carol, self.bob.pk)
        decline_friend_request(self.bob, carol.pk)

        self.client.force_authenticate(user=self.bob)
        response = self.client.get(reverse("friend-request-list"), {"status": RequestStatus.PENDING})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["from_user"]["id"], self.alice.id)

        response = self.client.get(reverse("friend-request-list"))
        self.assertEqual(response.data["count"], 2)

    def test_relationship_status_endpoint(self):
        send_friend_request(self.alice, self.bob.pk)
        self.client.force_authenticate(user=self.bob)
        response = self.client.get(reverse("relationship-status", args=[self.alice.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["request_received"])

    def test_remove_friend_endpoint(self):
        send_friend_request(self.alice, self.bob.pk)
        accept_friend_request(self.bob, self.alice.pk)
        self.client.force_authenticate(user=self.alice)
        response = self.client.delete(reverse("friend-detail", args=[self.bob.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Friend.objects.exists())

    def test_unauthenticated_requests_are_rejected(self):
        response = self.client.post(reverse("friend-request", args=[self.bob.id]))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])
        self.assertFalse(FriendRequest.objects.exists())
