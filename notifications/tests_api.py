"""API tests for the reminders endpoint."""

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from calendars.models import CalendarEvent
from django_project.test_constants import TEST_PASSWORD
from families.models import Family

from .models import Reminder
from .reminders import upsert_reminder

User = get_user_model()


class ReminderAPITests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.stranger = User.objects.create_user(username="eve", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Katz")
        cls.family.members.add(cls.alice, cls.bob)
        cls.url = f"/api/v1/families/{cls.family.pk}/reminders/"

        start = timezone.now() + timedelta(days=1)
        cls.events = []
        for title in ("Swimming", "Doctor"):
            event = CalendarEvent.objects.create(
                family=cls.family, title=title, start_at=start, end_at=start
            )
            upsert_reminder(
                cls.family.pk, event.pk, start, 30, [cls.bob.pk, cls.alice.pk], title
            )
            cls.events.append(event)
        Reminder.objects.filter(event=cls.events[1]).update(
            sent=True, sent_at=timezone.now()
        )

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.alice)

    def test_list_reminders(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 2)
        first = response.data["results"][0]
        self.assertEqual(
            first["target_ids"], sorted([self.alice.pk, self.bob.pk])
        )
        self.assertIn("send_at", first)

    def test_pending_filter(self):
        response = self.client.get(self.url, {"pending": "1"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [r["title"] for r in response.data["results"]], ["Swimming"]
        )

    def test_retrieve_reminder(self):
        reminder = Reminder.objects.get(event=self.events[0])
        response = self.client.get(f"{self.url}{reminder.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["event_id"], self.events[0].pk)
        self.assertFalse(response.data["sent"])

    def test_non_member_is_forbidden(self):
        self.client.force_authenticate(user=self.stranger)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reminders_are_read_only(self):
        response = self.client.post(self.url, {"title": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
