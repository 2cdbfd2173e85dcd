"""API tests for calendar events and the custody schedule approval flow."""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from django_project.test_constants import TEST_PASSWORD
from families.models import Family
from notifications import backends
from notifications.models import Reminder

from .models import CalendarEvent, CustodySchedule

User = get_user_model()


class CalendarEventAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.stranger = User.objects.create_user(username="eve", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Amar")
        cls.family.members.add(cls.alice, cls.bob)
        cls.url = f"/api/v1/families/{cls.family.pk}/events/"

    def setUp(self):
        backends.outbox.clear()
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)
        self.start = timezone.now() + timedelta(days=2)

    def payload(self, **kwargs):
        data = {
            "title": "Swimming",
            "start_at": self.start.isoformat(),
            "end_at": (self.start + timedelta(hours=1)).isoformat(),
            "parent_role": "both",
            "reminder_minutes": 45,
        }
        data.update(kwargs)
        return data

    def test_create_event(self):
        response = self.client.post(self.url, self.payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        event = CalendarEvent.objects.get(pk=response.data["id"])
        self.assertEqual(event.family, self.family)
        self.assertEqual(event.created_by, self.alice)

    def test_create_event_notifies_and_schedules_reminder_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        reminder = Reminder.objects.get(event_id=response.data["id"])
        self.assertEqual(reminder.send_at, self.start - timedelta(minutes=45))

    def test_target_users_must_be_members(self):
        response = self.client.post(
            self.url, self.payload(target_user_ids=[self.stranger.pk]), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("target_user_ids", response.data)

    def test_end_before_start_is_rejected(self):
        response = self.client.post(
            self.url,
            self.payload(end_at=(self.start - timedelta(hours=1)).isoformat()),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_only_family_events(self):
        other = Family.objects.create(name="Other")
        CalendarEvent.objects.create(
            family=other, title="Hidden", start_at=self.start, end_at=self.start
        )
        CalendarEvent.objects.create(
            family=self.family, title="Visible", start_at=self.start, end_at=self.start
        )
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([e["title"] for e in response.data["results"]], ["Visible"])

    def test_update_and_delete(self):
        event = CalendarEvent.objects.create(
            family=self.family, title="Old", start_at=self.start, end_at=self.start
        )
        response = self.client.patch(
            f"{self.url}{event.pk}/", {"title": "New"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["title"], "New")

        response = self.client.delete(f"{self.url}{event.pk}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(CalendarEvent.objects.filter(pk=event.pk).exists())

    def test_non_member_cannot_create(self):
        self.client.force_authenticate(user=self.stranger)
        response = self.client.post(self.url, self.payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CustodyScheduleAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Amar")
        cls.family.members.add(cls.alice, cls.bob)
        cls.url = f"/api/v1/families/{cls.family.pk}/custody-schedule/"

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)

    def request_change(self):
        return self.client.post(
            f"{self.url}request-approval/",
            {
                "pattern": "week_on_week_off",
                "start_date": "2025-09-01",
                "parent1_days": [0, 1, 2],
                "parent2_days": [3, 4, 5, 6],
            },
            format="json",
        )

    def test_get_creates_empty_schedule(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["pending_approval"])
        self.assertTrue(CustodySchedule.objects.filter(family=self.family).exists())

    def test_request_approval(self):
        response = self.request_change()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        pending = response.data["pending_approval"]
        self.assertEqual(pending["requestedBy"], self.alice.pk)
        self.assertEqual(pending["startDate"], "2025-09-01")

    def test_second_request_conflicts(self):
        self.request_change()
        self.assertEqual(self.request_change().status_code, status.HTTP_409_CONFLICT)

    def test_requester_cannot_approve_own_request(self):
        self.request_change()
        response = self.client.post(
            f"{self.url}resolve-approval/", {"approve": True}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_parent_approves(self):
        self.request_change()
        self.client.force_authenticate(user=self.bob)
        response = self.client.post(
            f"{self.url}resolve-approval/", {"approve": True}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        schedule = CustodySchedule.objects.get(family=self.family)
        self.assertTrue(schedule.is_active)
        self.assertEqual(schedule.pattern, "week_on_week_off")
        self.assertEqual(str(schedule.start_date), "2025-09-01")
        self.assertIsNone(schedule.pending_approval)

    def test_requester_can_withdraw(self):
        self.request_change()
        response = self.client.post(
            f"{self.url}resolve-approval/", {"approve": False}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        schedule = CustodySchedule.objects.get(family=self.family)
        self.assertFalse(schedule.is_active)
        self.assertIsNone(schedule.pending_approval)

    def test_resolve_without_pending_conflicts(self):
        response = self.client.post(
            f"{self.url}resolve-approval/", {"approve": False}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_put_renames_without_approval(self):
        response = self.client.put(
            self.url, {"name": "School year", "end_date": "2026-06-30"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["name"], "School year")
        self.assertEqual(response.data["end_date"], "2026-06-30")
        self.assertIsNone(response.data["pending_approval"])

    def test_put_cannot_change_custody_terms(self):
        self.client.put(self.url, {"pattern": "custom", "parent1_days": [0]}, format="json")
        schedule = CustodySchedule.objects.get(family=self.family)
        self.assertEqual(schedule.pattern, CustodySchedule.Pattern.WEEKLY)
        self.assertEqual(schedule.parent1_days, [])
