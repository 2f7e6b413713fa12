from django.contrib.auth import get_user_model
from django.test import TestCase
from accounts.serializers import UserSummarySerializer

User = get_user_model()


class CustomUserTests(TestCase):
    def test_create_user(self):
        user = User.objects.create_user(email="TestUser@EXAMPLE.com", profile_name="testuser", password="StrongPassword123!")
        self.assertEqual(user.email, "TestUser@example.com")
        self.assertTrue(user.check_password("StrongPassword123!"))
        self.assertTrue(user.is_active)
        self.assertFalse(user.is_staff)

    def test_create_user_requires_email_and_profile_name(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", profile_name="nobody", password="pass")
        with self.assertRaises(ValueError):
            User.objects.create_user(email="nobody@example.com", profile_name="", password="pass")

    def test_create_superuser(self):
        admin = User.objects.create_superuser(email="admin@example.com", profile_name="admin", password="pass")
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)

    def test_display_name(self):
        plain = User.objects.create_user(email="plain@example.com", profile_name="plain", password="pass")
        named = User.objects.create_user(email="ada@example.com", profile_name="ada", password="pass", name="Ada")
        self.assertEqual(plain.display_name, "plain")
        self.assertEqual(named.display_name, "Ada (@ada)")

    def test_summary_serializer(self):
        user = User.objects.create_user(email="ada@example.com", profile_name="ada", password="pass", name="Ada")
        self.assertEqual(UserSummarySerializer(user).data, {"id": user.id, "profile_name": "ada", "name": "Ada"})
