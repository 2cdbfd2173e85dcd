from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase

from django_project.test_constants import TEST_PASSWORD, TEST_TOKEN_A, TEST_TOKEN_B

from .models import PushDevice


class CustomUserTests(TestCase):
    def test_create_user(self):
        User = get_user_model()
        user = User.objects.create_user(
            username="will", email="will@email.com", password=TEST_PASSWORD
        )
        self.assertEqual(user.username, "will")
        self.assertEqual(user.email, "will@email.com")
        self.assertEqual(user.timezone, "UTC")
        self.assertTrue(user.is_active)
        self.assertFalse(user.is_staff)

    def test_valid_timezones_returns_sorted_list(self):
        """valid_timezones() should return sorted list of IANA timezone strings."""
        timezones = get_user_model().valid_timezones()
        self.assertEqual(timezones, sorted(timezones))
        self.assertIn("Asia/Jerusalem", timezones)

    def test_display_name_prefers_first_name(self):
        User = get_user_model()
        user = User(username="dana1", email="dana@example.com", first_name="Dana")
        self.assertEqual(user.display_name, "Dana")

    def test_display_name_falls_back_to_email_then_username(self):
        User = get_user_model()
        self.assertEqual(User(username="u1", email="yossi@example.com").display_name, "yossi")
        self.assertEqual(User(username="u1").display_name, "u1")


class PushDeviceModelTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = get_user_model().objects.create_user(
            username="device-owner", password=TEST_PASSWORD
        )

    def test_push_tokens_in_registration_order(self):
        PushDevice.objects.create(user=self.user, token=TEST_TOKEN_B)
        PushDevice.objects.create(user=self.user, token=TEST_TOKEN_A)
        self.assertEqual(self.user.push_tokens(), [TEST_TOKEN_B, TEST_TOKEN_A])

    def test_token_is_unique_per_user(self):
        PushDevice.objects.create(user=self.user, token=TEST_TOKEN_A)
        with self.assertRaises(IntegrityError):
            PushDevice.objects.create(user=self.user, token=TEST_TOKEN_A)

    def test_str_truncates_token(self):
        device = PushDevice.objects.create(user=self.user, token="abcdefghijklmnopqrstuvwxyz")
        self.assertEqual(str(device), "device-owner: abcdefghijkl...")
