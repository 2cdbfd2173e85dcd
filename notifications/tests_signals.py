"""End-to-end tests: model changes -> signals -> Celery task -> push / reminder."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone

from accounts.models import PushDevice
from calendars.models import CalendarEvent, CustodySchedule
from django_project.test_constants import TEST_PASSWORD, TEST_TOKEN_A, TEST_TOKEN_B
from expenses.models import Expense
from families.models import Family
from swaps.models import SwapRequest

from . import backends
from .models import Reminder

User = get_user_model()


class SignalTestMixin:
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
        cls.family = Family.objects.create(name="Peretz")
        cls.family.members.add(cls.alice, cls.bob)

    def setUp(self):
        backends.outbox.clear()

    def sent_types(self):
        return [m.data.get("type") for m in backends.outbox]


class SwapRequestSignalTests(SignalTestMixin, TestCase):
    def test_created_swap_notifies_requested_to(self):
        with self.captureOnCommitCallbacks(execute=True):
            SwapRequest.objects.create(
                family=self.family,
                requested_by=self.alice,
                requested_to=self.bob,
                original_date=timezone.now() + timedelta(days=2),
            )

        self.assertEqual(len(backends.outbox), 1)
        message = backends.outbox[0]
        self.assertEqual(message.tokens, (TEST_TOKEN_B,))
        self.assertEqual(message.data["type"], "swap-request-created")
        self.assertIn("Alice", message.body)

    def test_approval_notifies_requester_once(self):
        swap = SwapRequest.objects.create(
            family=self.family,
            requested_by=self.alice,
            requested_to=self.bob,
            original_date=timezone.now() + timedelta(days=2),
        )

        with self.captureOnCommitCallbacks(execute=True):
            swap.status = SwapRequest.Status.APPROVED
            swap.save()
        with self.captureOnCommitCallbacks(execute=True):
            swap.reason = "edited after approval"
            swap.save()

        self.assertEqual(self.sent_types(), ["swap-request-approved"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_A,))
        self.assertEqual(backends.outbox[0].title, "Request approved")

    def test_nothing_is_sent_before_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            SwapRequest.objects.create(
                family=self.family,
                requested_by=self.alice,
                requested_to=self.bob,
                original_date=timezone.now(),
            )
        self.assertEqual(len(callbacks), 1)
        self.assertEqual(backends.outbox, [])


class CalendarEventSignalTests(SignalTestMixin, TestCase):
    def create_event(self, **kwargs):
        start = timezone.now() + timedelta(days=1)
        defaults = {
            "family": self.family,
            "title": "Parents meeting",
            "start_at": start,
            "end_at": start + timedelta(hours=1),
            "reminder_minutes": 30,
        }
        defaults.update(kwargs)
        return CalendarEvent.objects.create(**defaults)

    def test_created_event_notifies_audience_and_schedules_reminder(self):
        with self.captureOnCommitCallbacks(execute=True):
            event = self.create_event()

        self.assertEqual(self.sent_types(), ["calendar-event-created"] * 2)
        reminder = Reminder.objects.get(event=event)
        self.assertEqual(reminder.send_at, event.start_at - timedelta(minutes=30))
        self.assertCountEqual(reminder.target_ids(), [self.alice.pk, self.bob.pk])

    def test_role_tag_selects_one_parent(self):
        parent2 = max([self.alice, self.bob], key=lambda u: str(u.pk))
        with self.captureOnCommitCallbacks(execute=True):
            event = self.create_event(parent_role=CalendarEvent.ParentRole.PARENT2)

        self.assertEqual(len(backends.outbox), 1)
        self.assertEqual(Reminder.objects.get(event=event).target_ids(), [parent2.pk])

    def test_update_refreshes_reminder_without_push(self):
        with self.captureOnCommitCallbacks(execute=True):
            event = self.create_event()
        backends.outbox.clear()

        with self.captureOnCommitCallbacks(execute=True):
            event.title = "Parents evening"
            event.reminder_minutes = 60
            event.save()

        self.assertEqual(backends.outbox, [])
        reminder = Reminder.objects.get(event=event)
        self.assertEqual(reminder.title, "Parents evening")
        self.assertEqual(reminder.send_at, event.start_at - timedelta(minutes=60))

    def test_clearing_offset_removes_reminder(self):
        with self.captureOnCommitCallbacks(execute=True):
            event = self.create_event()
        with self.captureOnCommitCallbacks(execute=True):
            event.reminder_minutes = None
            event.save()

        self.assertFalse(Reminder.objects.filter(event=event).exists())

    def test_delete_removes_reminder(self):
        with self.captureOnCommitCallbacks(execute=True):
            event = self.create_event()
        with self.captureOnCommitCallbacks(execute=True):
            event.delete()

        self.assertFalse(Reminder.objects.exists())

    def test_past_event_gets_no_reminder(self):
        start = timezone.now() + timedelta(minutes=10)
        with self.captureOnCommitCallbacks(execute=True):
            event = self.create_event(start_at=start, end_at=start, reminder_minutes=30)

        self.assertEqual(len(backends.outbox), 2)
        self.assertFalse(Reminder.objects.filter(event=event).exists())


class ExpenseSignalTests(SignalTestMixin, TestCase):
    def test_created_expense_notifies_other_parent(self):
        with self.captureOnCommitCallbacks(execute=True):
            Expense.objects.create(
                family=self.family,
                title="School trip",
                amount=Decimal("150.00"),
                created_by=self.alice,
            )

        self.assertEqual(self.sent_types(), ["expense-created"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_B,))
        self.assertEqual(backends.outbox[0].body, "Alice added: School trip (₪150.00)")

    def test_rejection_notifies_creator(self):
        expense = Expense.objects.create(
            family=self.family, title="Shoes", amount=Decimal("80"), created_by=self.alice
        )
        with self.captureOnCommitCallbacks(execute=True):
            expense.status = Expense.Status.REJECTED
            expense.updated_by = self.bob
            expense.save()

        self.assertEqual(self.sent_types(), ["expense-rejected"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_A,))
        self.assertEqual(backends.outbox[0].body, "Bob rejected Shoes (₪80.00)")

    def test_edit_without_status_change_is_silent(self):
        expense = Expense.objects.create(
            family=self.family, title="Shoes", created_by=self.alice
        )
        with self.captureOnCommitCallbacks(execute=True):
            expense.title = "Winter shoes"
            expense.save()

        self.assertEqual(backends.outbox, [])


class CustodyScheduleSignalTests(SignalTestMixin, TestCase):
    def test_approval_request_notifies_everyone_but_requester(self):
        with self.captureOnCommitCallbacks(execute=True):
            schedule = CustodySchedule.objects.create(family=self.family)
        self.assertEqual(backends.outbox, [])

        with self.captureOnCommitCallbacks(execute=True):
            schedule.request_approval(
                self.alice,
                pattern=CustodySchedule.Pattern.WEEKLY,
                start_date=timezone.localdate(),
                parent1_days=[0, 1, 2],
                parent2_days=[3, 4, 5, 6],
            )

        self.assertEqual(self.sent_types(), ["custody-approval-request"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_B,))

    def test_resolution_notifies_requester(self):
        schedule = CustodySchedule.objects.create(family=self.family)
        schedule.request_approval(self.alice, start_date=timezone.localdate())

        with self.captureOnCommitCallbacks(execute=True):
            schedule.resolve_approval(approve=True)

        self.assertEqual(self.sent_types(), ["custody-approval-updated"])
        self.assertEqual(backends.outbox[0].tokens, (TEST_TOKEN_A,))
        schedule.refresh_from_db()
        self.assertTrue(schedule.is_active)
        self.assertIsNone(schedule.pending_approval)


class SignalSafetyTests(SignalTestMixin, TestCase):
    @override_settings(NOTIFICATIONS_DISABLE_SIGNALS=True)
    def test_disabled_signals_queue_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            Expense.objects.create(family=self.family, title="x", created_by=self.alice)
        self.assertEqual(callbacks, [])
        self.assertEqual(backends.outbox, [])

    @patch("notifications.tasks.process_record_change")
    def test_queue_failure_does_not_break_save(self, mock_task):
        mock_task.delay.side_effect = ConnectionError("broker down")
        with self.captureOnCommitCallbacks(execute=True):
            expense = Expense.objects.create(
                family=self.family, title="x", created_by=self.alice
            )

        self.assertTrue(Expense.objects.filter(pk=expense.pk).exists())
        mock_task.delay.assert_called_once()

    @patch("notifications.push.PushGateway.deliver", side_effect=RuntimeError("boom"))
    def test_delivery_failure_does_not_break_save(self, mock_deliver):
        with self.captureOnCommitCallbacks(execute=True):
            swap = SwapRequest.objects.create(
                family=self.family,
                requested_by=self.alice,
                requested_to=self.bob,
                original_date=timezone.now(),
            )
        self.assertTrue(SwapRequest.objects.filter(pk=swap.pk).exists())
        mock_deliver.assert_called_once()

    def test_fixture_loading_is_ignored(self):
        from .signals import queue_on_save

        expense = Expense(family=self.family, title="raw", created_by=self.alice)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            queue_on_save(Expense, expense, created=True, raw=True)
        self.assertEqual(callbacks, [])
