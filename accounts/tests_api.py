"""API tests for account management endpoints."""

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from django_project.test_constants import TEST_PASSWORD, TEST_TOKEN_A, TEST_TOKEN_B

from .models import PushDevice

User = get_user_model()

PUSH_DEVICES_URL = "/api/v1/account/push-devices/"


class UserProfileAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username="testuser",
            email="test@example.com",
            password=TEST_PASSWORD,
            first_name="Test",
            last_name="User",
        )
        cls.other_user = User.objects.create_user(
            username="otheruser",
            email="other@example.com",
            password=TEST_PASSWORD,
        )

    def setUp(self):
        self.client = APIClient()
        self.token = Token.objects.create(user=self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {self.token.key}")

    def test_get_profile(self):
        response = self.client.get("/api/v1/account/profile/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], self.user.pk)
        self.assertEqual(response.data["email"], "test@example.com")
        self.assertEqual(response.data["first_name"], "Test")
        self.assertEqual(response.data["timezone"], "UTC")

    def test_get_profile_unauthenticated(self):
        self.client.credentials()
        response = self.client.get("/api/v1/account/profile/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_update_first_name(self):
        response = self.client.patch(
            "/api/v1/account/profile/",
            {"first_name": "Updated"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, "Updated")

    def test_update_email_taken(self):
        response = self.client.patch(
            "/api/v1/account/profile/",
            {"email": "other@example.com"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", response.data)

    def test_update_timezone(self):
        response = self.client.patch(
            "/api/v1/account/profile/",
            {"timezone": "Asia/Jerusalem"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["timezone"], "Asia/Jerusalem")

    def test_update_invalid_timezone(self):
        response = self.client.patch(
            "/api/v1/account/profile/",
            {"timezone": "Mars/Olympus"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ObtainTokenAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(username="tokenuser", password=TEST_PASSWORD)

    def test_obtain_token_with_credentials(self):
        response = APIClient().post(
            "/api/v1/account/token/",
            {"username": "tokenuser", "password": TEST_PASSWORD},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["token"], Token.objects.get(user=self.user).key)

    def test_obtain_token_wrong_password(self):
        response = APIClient().post(
            "/api/v1/account/token/",
            {"username": "tokenuser", "password": "nope"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PushDeviceAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(username="phone", password=TEST_PASSWORD)
        cls.other_user = User.objects.create_user(username="tablet", password=TEST_PASSWORD)

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def test_register_token(self):
        response = self.client.post(
            PUSH_DEVICES_URL,
            {"token": TEST_TOKEN_A, "platform": "android"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.user.push_tokens(), [TEST_TOKEN_A])

    def test_register_same_token_twice_is_idempotent(self):
        self.client.post(PUSH_DEVICES_URL, {"token": TEST_TOKEN_A}, format="json")
        response = self.client.post(PUSH_DEVICES_URL, {"token": TEST_TOKEN_A}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(PushDevice.objects.filter(user=self.user).count(), 1)

    def test_same_token_for_different_users(self):
        PushDevice.objects.create(user=self.other_user, token=TEST_TOKEN_A)
        response = self.client.post(PUSH_DEVICES_URL, {"token": TEST_TOKEN_A}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_only_own_devices(self):
        PushDevice.objects.create(user=self.user, token=TEST_TOKEN_A)
        PushDevice.objects.create(user=self.other_user, token=TEST_TOKEN_B)
        response = self.client.get(PUSH_DEVICES_URL)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d["token"] for d in response.data], [TEST_TOKEN_A])

    def test_unregister_token(self):
        PushDevice.objects.create(user=self.user, token=TEST_TOKEN_A)
        PushDevice.objects.create(user=self.other_user, token=TEST_TOKEN_A)
        response = self.client.delete(
            PUSH_DEVICES_URL, {"token": TEST_TOKEN_A}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.user.push_tokens(), [])
        self.assertEqual(self.other_user.push_tokens(), [TEST_TOKEN_A])

    def test_invalid_platform(self):
        response = self.client.post(
            PUSH_DEVICES_URL,
            {"token": TEST_TOKEN_A, "platform": "fax"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(PUSH_DEVICES_URL)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
