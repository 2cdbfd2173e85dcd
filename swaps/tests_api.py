"""API tests for swap requests."""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import PushDevice
from django_project.test_constants import TEST_PASSWORD, TEST_TOKEN_A, TEST_TOKEN_B
from families.models import Family
from notifications import backends

from .models import SwapRequest

User = get_user_model()


class SwapRequestAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(
            username="alice", password=TEST_PASSWORD, first_name="Alice"
        )
        cls.bob = User.objects.create_user(
            username="bob", password=TEST_PASSWORD, first_name="Bob"
        )
        PushDevice.objects.create(user=cls.alice, token=TEST_TOKEN_A)
        PushDevice.objects.create(user=cls.bob, token=TEST_TOKEN_B)
        cls.family = Family.objects.create(name="Dahan")
        cls.family.members.add(cls.alice, cls.bob)
        cls.url = f"/api/v1/families/{cls.family.pk}/swap-requests/"

    def setUp(self):
        backends.outbox.clear()
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)
        self.day = timezone.now() + timedelta(days=5)

    def create_swap(self):
        return SwapRequest.objects.create(
            family=self.family,
            requested_by=self.alice,
            requested_to=self.bob,
            original_date=self.day,
        )

    def test_create_defaults_requested_to_other_parent(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                self.url,
                {"original_date": self.day.isoformat(), "reason": "Work trip"},
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["requested_by"], self.alice.pk)
        self.assertEqual(response.data["requested_to"], self.bob.pk)
        self.assertEqual(response.data["status"], "pending")
        self.assertEqual(len(backends.outbox), 1)
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_B,))
        self.assertEqual(backends.outbox[0].data["type"], "swap-request-created")

    def test_requested_to_must_be_member(self):
        stranger = User.objects.create_user(username="eve", password=TEST_PASSWORD)
        response = self.client.post(
            self.url,
            {"original_date": self.day.isoformat(), "requested_to": stranger.pk},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_cannot_be_set_on_create(self):
        response = self.client.post(
            self.url,
            {"original_date": self.day.isoformat(), "status": "approved"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "pending")

    def test_addressed_parent_approves(self):
        swap = self.create_swap()
        self.client.force_authenticate(user=self.bob)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                f"{self.url}{swap.pk}/respond/",
                {"status": "approved", "response_note": "Sure"},
                format="json",
            )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        swap.refresh_from_db()
        self.assertEqual(swap.status, SwapRequest.Status.APPROVED)
        self.assertIsNotNone(swap.responded_at)
        self.assertEqual([m.data["type"] for m in backends.outbox], ["swap-request-approved"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_A,))

    def test_requester_cannot_respond(self):
        swap = self.create_swap()
        response = self.client.post(
            f"{self.url}{swap.pk}/respond/", {"status": "approved"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_respond_twice_conflicts(self):
        swap = self.create_swap()
        self.client.force_authenticate(user=self.bob)
        self.client.post(f"{self.url}{swap.pk}/respond/", {"status": "rejected"}, format="json")
        response = self.client.post(
            f"{self.url}{swap.pk}/respond/", {"status": "approved"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_respond_rejects_other_statuses(self):
        swap = self.create_swap()
        self.client.force_authenticate(user=self.bob)
        response = self.client.post(
            f"{self.url}{swap.pk}/respond/", {"status": "cancelled"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_is_silent(self):
        swap = self.create_swap()
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(f"{self.url}{swap.pk}/cancel/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "cancelled")
        self.assertEqual(backends.outbox, [])

    def test_only_requester_can_cancel(self):
        swap = self.create_swap()
        self.client.force_authenticate(user=self.bob)
        response = self.client.post(f"{self.url}{swap.pk}/cancel/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requester_edits_pending_request(self):
        swap = self.create_swap()
        response = self.client.patch(
            f"{self.url}{swap.pk}/", {"reason": "Conference"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["reason"], "Conference")
