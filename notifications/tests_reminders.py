"""Tests for reminder scheduling, due-reminder dispatch and cleanup."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone

from accounts.models import PushDevice
from calendars.models import CalendarEvent
from django_project.test_constants import TEST_PASSWORD, TEST_TOKEN_A, TEST_TOKEN_B
from families.models import Family

from . import backends
from .models import Reminder
from .push import PushGateway
from .reminders import (
    cleanup_sent_reminders,
    delete_reminder,
    dispatch_due_reminders,
    upsert_reminder,
)

User = get_user_model()


class ReminderTestMixin:
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        PushDevice.objects.create(user=cls.alice, token=TEST_TOKEN_A)
        PushDevice.objects.create(user=cls.bob, token=TEST_TOKEN_B)
        cls.family = Family.objects.create(name="Mizrahi")
        cls.family.members.add(cls.alice, cls.bob)
        cls.start = timezone.now().replace(microsecond=0) + timedelta(hours=2)
        cls.event = CalendarEvent.objects.create(
            family=cls.family,
            title="Dentist",
            start_at=cls.start,
            end_at=cls.start + timedelta(hours=1),
        )

    def setUp(self):
        backends.outbox.clear()

    def make_event(self, title, start_at):
        return CalendarEvent.objects.create(
            family=self.family,
            title=title,
            start_at=start_at,
            end_at=start_at + timedelta(hours=1),
        )

    def schedule(self, event=None, minutes=30, targets=None, now=None):
        event = event or self.event
        return upsert_reminder(
            self.family.pk,
            event.pk,
            event.start_at,
            minutes,
            targets if targets is not None else [self.alice.pk],
            event.title,
            now=now,
        )


class UpsertReminderTests(ReminderTestMixin, TestCase):
    def test_creates_reminder_offset_from_start(self):
        reminder = self.schedule(minutes=30)

        self.assertEqual(reminder.send_at, self.start - timedelta(minutes=30))
        self.assertFalse(reminder.sent)
        self.assertIsNone(reminder.sent_at)
        self.assertEqual(reminder.title, "Dentist")
        self.assertEqual(reminder.target_ids(), [self.alice.pk])

    def test_accepts_iso_start_time(self):
        reminder = upsert_reminder(
            self.family.pk,
            self.event.pk,
            self.start.isoformat(),
            15,
            [self.alice.pk],
            "Dentist",
        )
        self.assertEqual(reminder.send_at, self.start - timedelta(minutes=15))

    def test_upsert_is_idempotent(self):
        first = self.schedule(minutes=30)
        second = self.schedule(minutes=30)

        self.assertEqual(Reminder.objects.count(), 1)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.created_at, first.created_at)

    def test_upsert_overwrites_and_resets_sent(self):
        reminder = self.schedule(minutes=30)
        Reminder.objects.filter(pk=reminder.pk).update(sent=True, sent_at=timezone.now())

        reminder = self.schedule(minutes=10, targets=[self.alice.pk, self.bob.pk, self.bob.pk])

        self.assertFalse(reminder.sent)
        self.assertIsNone(reminder.sent_at)
        self.assertEqual(reminder.send_at, self.start - timedelta(minutes=10))
        self.assertCountEqual(reminder.target_ids(), [self.alice.pk, self.bob.pk])

    def test_cleared_offset_deletes_reminder(self):
        self.schedule(minutes=30)
        self.assertIsNone(self.schedule(minutes=None))
        self.assertFalse(Reminder.objects.exists())

    def test_send_time_in_the_past_is_never_persisted(self):
        now = timezone.now()
        for minutes in (120, 121, 60 * 24):
            with self.subTest(minutes=minutes):
                self.schedule(minutes=30, now=now)
                self.assertIsNone(self.schedule(minutes=minutes, now=now))
                self.assertFalse(Reminder.objects.exists())

    def test_send_time_equal_to_now_is_not_persisted(self):
        now = self.start - timedelta(minutes=30)
        self.assertIsNone(self.schedule(minutes=30, now=now))
        self.assertFalse(Reminder.objects.exists())

    def test_unusable_start_time_is_not_persisted(self):
        result = upsert_reminder(
            self.family.pk, self.event.pk, "not a date", 30, [self.alice.pk], "x"
        )
        self.assertIsNone(result)
        self.assertFalse(Reminder.objects.exists())

    def test_deleted_event_is_not_scheduled(self):
        event = self.make_event("Gone", self.start)
        event_id = event.pk
        event.delete()
        result = upsert_reminder(
            self.family.pk, event_id, self.start, 30, [self.alice.pk], "Gone"
        )
        self.assertIsNone(result)
        self.assertFalse(Reminder.objects.exists())

    def test_delete_is_idempotent(self):
        self.schedule()
        self.assertEqual(delete_reminder(self.family.pk, self.event.pk), 1)
        self.assertEqual(delete_reminder(self.family.pk, self.event.pk), 0)


class DispatchDueRemindersTests(ReminderTestMixin, TestCase):
    def test_reminder_is_sent_only_once_due(self):
        self.schedule(minutes=30, targets=[self.alice.pk])
        reminder = Reminder.objects.get()

        early = dispatch_due_reminders(now=self.start - timedelta(minutes=31))
        self.assertEqual(early["selected"], 0)
        self.assertEqual(backends.outbox, [])

        due = dispatch_due_reminders(now=self.start - timedelta(minutes=29))
        self.assertEqual(due["selected"], 1)
        self.assertEqual(due["sent"], 1)

        reminder.refresh_from_db()
        self.assertTrue(reminder.sent)
        self.assertIsNotNone(reminder.sent_at)
        self.assertEqual(len(backends.outbox), 1)
        message = backends.outbox[0]
        self.assertEqual(message.tokens, (TEST_TOKEN_A,))
        self.assertEqual(message.title, "Reminder: Dentist")
        self.assertEqual(
            message.data,
            {
                "type": "calendar-event-reminder",
                "familyId": str(self.family.pk),
                "eventId": str(self.event.pk),
            },
        )

    def test_sent_reminder_is_never_selected_again(self):
        self.schedule(minutes=30)
        later = self.start
        dispatch_due_reminders(now=later)
        for limit in (1, 5, 50):
            with self.subTest(limit=limit):
                summary = dispatch_due_reminders(limit=limit, now=later)
                self.assertEqual(summary["selected"], 0)
        self.assertEqual(len(backends.outbox), 1)

    def test_targets_share_one_multicast(self):
        self.schedule(targets=[self.alice.pk, self.bob.pk])
        dispatch_due_reminders(now=self.start)
        self.assertEqual(len(backends.outbox), 1)
        self.assertCountEqual(backends.outbox[0].tokens, [TEST_TOKEN_A, TEST_TOKEN_B])

    def test_processes_oldest_first_up_to_limit(self):
        later_event = self.make_event("Later", self.start + timedelta(hours=1))
        earliest_event = self.make_event("Earliest", self.start - timedelta(minutes=30))
        self.schedule(event=later_event)
        self.schedule(event=self.event)
        self.schedule(event=earliest_event)

        summary = dispatch_due_reminders(limit=2, now=self.start + timedelta(hours=2))

        self.assertEqual(summary["selected"], 2)
        self.assertEqual(
            [m.title for m in backends.outbox],
            ["Reminder: Earliest", "Reminder: Dentist"],
        )
        self.assertFalse(Reminder.objects.get(event=later_event).sent)

    @override_settings(REMINDER_DISPATCH_LIMIT=1)
    def test_default_limit_comes_from_settings(self):
        other = self.make_event("Other", self.start)
        self.schedule(event=self.event)
        self.schedule(event=other)
        self.assertEqual(dispatch_due_reminders(now=self.start)["selected"], 1)

    def test_failed_delivery_is_retried_on_next_run(self):
        self.schedule()
        backend = MagicMock()
        backend.send_multicast.side_effect = RuntimeError("provider down")

        failed = dispatch_due_reminders(now=self.start, gateway=PushGateway(backend=backend))

        self.assertEqual(failed["failed"], 1)
        self.assertFalse(Reminder.objects.get().sent)

        retried = dispatch_due_reminders(now=self.start)
        self.assertEqual(retried["sent"], 1)
        self.assertTrue(Reminder.objects.get().sent)

    def test_one_failure_does_not_block_the_others(self):
        other = self.make_event("Pickup", self.start)
        self.schedule(event=self.event, targets=[self.alice.pk])
        self.schedule(event=other, targets=[self.bob.pk])

        gateway = PushGateway()
        original = gateway.deliver_to_users

        def flaky(user_ids, notification, data=None):
            if data["eventId"] == self.event.pk:
                raise RuntimeError("boom")
            return original(user_ids, notification, data)

        with patch.object(gateway, "deliver_to_users", side_effect=flaky):
            summary = dispatch_due_reminders(now=self.start, gateway=gateway)

        self.assertEqual(summary["failed"], 1)
        self.assertEqual(summary["sent"], 1)
        self.assertFalse(Reminder.objects.get(event=self.event).sent)
        self.assertTrue(Reminder.objects.get(event=other).sent)

    def test_reminder_without_tokens_is_skipped_and_closed(self):
        carol = User.objects.create_user(username="carol", password=TEST_PASSWORD)
        self.schedule(targets=[carol.pk])

        summary = dispatch_due_reminders(now=self.start)

        self.assertEqual(summary["skipped"], 1)
        self.assertEqual(backends.outbox, [])
        self.assertTrue(Reminder.objects.get().sent)

    def test_query_failure_aborts_run(self):
        self.schedule()
        with patch("notifications.reminders.Reminder.objects.filter") as mock_filter:
            mock_filter.side_effect = DatabaseError("index missing")
            summary = dispatch_due_reminders(now=self.start)

        self.assertEqual(summary["selected"], 0)
        self.assertIn("index missing", summary["error"])
        self.assertFalse(Reminder.objects.get().sent)
        self.assertEqual(backends.outbox, [])

    def test_reschedule_during_delivery_keeps_new_reminder_pending(self):
        self.schedule(minutes=30)
        gateway = PushGateway()
        original = gateway.deliver_to_users
        new_start = self.start + timedelta(days=1)

        def reschedule_then_send(user_ids, notification, data=None):
            upsert_reminder(
                self.family.pk, self.event.pk, new_start, 30, [self.alice.pk], "Dentist"
            )
            return original(user_ids, notification, data)

        with patch.object(gateway, "deliver_to_users", side_effect=reschedule_then_send):
            summary = dispatch_due_reminders(now=self.start, gateway=gateway)

        self.assertEqual(summary["sent"], 1)
        reminder = Reminder.objects.get()
        self.assertEqual(reminder.send_at, new_start - timedelta(minutes=30))
        self.assertFalse(reminder.sent)
        self.assertIsNone(reminder.sent_at)

        dispatch_due_reminders(now=new_start)
        self.assertEqual(len(backends.outbox), 2)
        self.assertTrue(Reminder.objects.get().sent)

    def test_reminder_marked_sent_by_concurrent_run_is_not_recounted(self):
        from .reminders import _mark_sent

        reminder = self.schedule()
        self.assertTrue(_mark_sent(reminder))
        self.assertFalse(_mark_sent(reminder))


class CleanupSentRemindersTests(ReminderTestMixin, TestCase):
    def test_deletes_only_old_sent_reminders(self):
        old = self.schedule(event=self.event)
        recent_event = self.make_event("Recent", self.start)
        recent = self.schedule(event=recent_event)
        pending_event = self.make_event("Pending", self.start)
        self.schedule(event=pending_event)

        now = timezone.now()
        Reminder.objects.filter(pk=old.pk).update(sent=True, sent_at=now - timedelta(days=10))
        Reminder.objects.filter(pk=recent.pk).update(sent=True, sent_at=now - timedelta(days=1))

        self.assertEqual(cleanup_sent_reminders(days=7), 1)
        self.assertFalse(Reminder.objects.filter(pk=old.pk).exists())
        self.assertEqual(Reminder.objects.count(), 2)

    def test_cleanup_task(self):
        from .tasks import cleanup_sent_reminders as cleanup_task

        reminder = self.schedule()
        Reminder.objects.filter(pk=reminder.pk).update(
            sent=True, sent_at=timezone.now() - timedelta(days=30)
        )
        result = cleanup_task.delay()
        self.assertEqual(result.get(), "Deleted 1 sent reminders")


class DispatchTaskTests(ReminderTestMixin, TestCase):
    def test_task_reports_summary(self):
        from .tasks import dispatch_event_reminders

        reminder = self.schedule(minutes=30)
        Reminder.objects.filter(pk=reminder.pk).update(
            send_at=timezone.now() - timedelta(minutes=1)
        )
        result = dispatch_event_reminders.delay()

        self.assertEqual(
            result.get(), "Sent 1 of 1 due reminders (0 skipped, 0 failed)"
        )
