from unittest.mock import patch
from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from .models import Follow
from .services import follow_user, unfollow_user

User = get_user_model()


def make_user(profile_name):
    return User.objects.create_user(
        email=f"{profile_name}@example.com", profile_name=profile_name, password="testpass123"
    )


class FollowApiTests(APITestCase):
    def setUp(self):
        self.reader = make_user("reader")
        self.writer = make_user("writer")
        self.url = reverse("follow-unfollow")
        self.client.force_authenticate(user=self.reader)

    def test_follow(self):
        response = self.client.post(self.url, {"followed": self.writer.id})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(
            response.data,
            {"success": True, "data": {"following": True, "message": "You have successfully followed the user."}},
        )
        self.assertTrue(Follow.objects.filter(follower=self.reader, followed=self.writer).exists())

    def test_follow_twice_keeps_one_edge(self):
        Follow.objects.create(follower=self.reader, followed=self.writer)
        response = self.client.post(self.url, {"followed": self.writer.id})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["data"]["message"], "You are already following this user.")
        self.assertEqual(Follow.objects.count(), 1)

    def test_cannot_follow_self(self):
        response = self.client.post(self.url, {"followed": self.reader.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "You cannot follow yourself.")
        self.assertFalse(Follow.objects.exists())

    def test_follow_unknown_user(self):
        response = self.client.post(self.url, {"followed": 9999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"], "The requested user does not exist.")

    def test_followed_id_is_required(self):
        for method in (self.client.post, self.client.delete):
            response = method(self.url, {})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data["error"], "The 'followed' user id is required.")

    def test_unfollow(self):
        Follow.objects.create(follower=self.reader, followed=self.writer)
        response = self.client.delete(self.url, {"followed": self.writer.id})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["data"]["following"])
        self.assertFalse(Follow.objects.exists())

    def test_unfollow_without_edge(self):
        response = self.client.delete(self.url, {"followed": self.writer.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "You are not following this user.")

    def test_anonymous_requests_are_rejected(self):
        self.client.force_authenticate(user=None)
        for method in (self.client.post, self.client.delete):
            response = method(self.url, {"followed": self.writer.id})
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
            self.assertFalse(response.data["success"])

    @patch("followers.signals.invalidate_follower_cache")
    def test_follow_and_unfollow_invalidate_both_lists(self, invalidate):
        self.client.post(self.url, {"followed": self.writer.id})
        self.client.delete(self.url, {"followed": self.writer.id})

        self.assertEqual(invalidate.call_count, 4)
        invalidate.assert_any_call(self.reader.id)
        invalidate.assert_any_call(self.writer.id)

    def test_relation_lists(self):
        third = make_user("third")
        Follow.objects.create(follower=self.reader, followed=self.writer)
        Follow.objects.create(follower=third, followed=self.writer)

        response = self.client.get(reverse("follower-list", args=[self.writer.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual({row["profile_name"] for row in response.data["results"]}, {"reader", "third"})

        response = self.client.get(reverse("following-list", args=[self.reader.id]))
        self.assertEqual([row["id"] for row in response.data["results"]], [self.writer.id])

    def test_relation_list_for_unknown_user(self):
        response = self.client.get(reverse("follower-list", args=[9999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class FollowServiceTests(TestCase):
    def setUp(self):
        self.reader = make_user("reader")
        self.writer = make_user("writer")

    def test_actor_is_required(self):
        result = follow_user(None, self.writer.id)
        self.assertFalse(result.success)
        self.assertEqual(result.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(Follow.objects.exists())

    def test_follow_then_unfollow(self):
        self.assertTrue(follow_user(self.reader, self.writer.id).success)
        result = unfollow_user(self.reader, self.writer.id)
        self.assertTrue(result.success)
        self.assertFalse(Follow.objects.exists())

    def test_lost_race_counts_as_following(self):
        with patch.object(Follow.objects, "get_or_create", side_effect=IntegrityError("duplicate")):
            result = follow_user(self.reader, self.writer.id)
        self.assertTrue(result.success)
        self.assertEqual(result.data["message"], "You are already following this user.")


class FollowModelTests(TestCase):
    def setUp(self):
        self.reader = make_user("reader")
        self.writer = make_user("writer")

    def test_str(self):
        follow = Follow.objects.create(follower=self.reader, followed=self.writer)
        self.assertEqual(str(follow), "reader follows writer")

    def test_edge_is_unique(self):
        Follow.objects.create(follower=self.reader, followed=self.writer)
        with self.assertRaises(IntegrityError):
            Follow.objects.create(follower=self.reader, followed=self.writer)

    def test_no_self_loop(self):
        with self.assertRaises(IntegrityError):
            Follow.objects.create(follower=self.reader, followed=self.reader)
