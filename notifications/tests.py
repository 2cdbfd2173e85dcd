"""Tests for audience resolution, message rendering, reactors and effects."""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings

from django_project.test_constants import TEST_PASSWORD
from families.models import Family

from . import messages
from .audience import get_family_members, resolve_audience, resolve_other_parent
from .effects import DeleteReminder, SendPush, UpsertReminder, apply_effects
from .push import DeliveryResult, PushNotification
from .reactors import ReactorContext, RecordType, Transition, has_handler, react

User = get_user_model()


class ResolveAudienceTests(SimpleTestCase):
    def test_explicit_targets_win_and_are_deduplicated(self):
        result = resolve_audience(["a", "b"], explicit_targets=["c", "c", "a"], role_tag="parent1")
        self.assertEqual(result, ["c", "a"])

    def test_empty_explicit_targets_fall_back_to_role(self):
        self.assertEqual(resolve_audience(["b", "a"], explicit_targets=[], role_tag="parent1"), ["a"])

    def test_both_returns_all_members_sorted(self):
        self.assertEqual(resolve_audience(["b", "a", "b"], role_tag="both"), ["a", "b"])

    def test_parent1_is_smallest_member(self):
        self.assertEqual(resolve_audience(["b", "a"], role_tag="parent1"), ["a"])

    def test_parent2_is_second_member(self):
        self.assertEqual(resolve_audience(["b", "a"], role_tag="parent2"), ["b"])

    def test_parent2_with_single_member_falls_back_to_all(self):
        self.assertEqual(resolve_audience(["a"], role_tag="parent2"), ["a"])

    def test_primary_and_secondary_aliases(self):
        self.assertEqual(resolve_audience(["b", "a"], role_tag="parent-primary"), ["a"])
        self.assertEqual(resolve_audience(["b", "a"], role_tag="parent-secondary"), ["b"])

    def test_unknown_or_missing_role_returns_all_members(self):
        self.assertEqual(resolve_audience(["b", "a"], role_tag="grandparent"), ["a", "b"])
        self.assertEqual(resolve_audience(["b", "a"]), ["a", "b"])

    def test_ids_are_ordered_as_strings(self):
        """10 sorts before 9 because ids are compared lexicographically."""
        self.assertEqual(resolve_audience([9, 10], role_tag="parent1"), [10])

    def test_no_members(self):
        self.assertEqual(resolve_audience([], role_tag="both"), [])


class ResolveOtherParentTests(SimpleTestCase):
    def test_returns_member_that_is_not_the_actor(self):
        self.assertEqual(resolve_other_parent(["a", "b"], "a"), "b")
        self.assertEqual(resolve_other_parent(["a", "b"], "b"), "a")

    def test_missing_actor_returns_first_member(self):
        self.assertEqual(resolve_other_parent(["a", "b"], None), "a")

    def test_no_members_returns_none(self):
        self.assertIsNone(resolve_other_parent([], "a"))

    def test_only_the_actor(self):
        self.assertIsNone(resolve_other_parent(["a", "a"], "a"))

    def test_never_returns_the_actor(self):
        member_sets = [["a", "b"], ["b", "a", "c"], [3, 1, 2], ["x", "x", "y"]]
        for members in member_sets:
            for actor in set(members):
                with self.subTest(members=members, actor=actor):
                    other = resolve_other_parent(members, actor)
                    self.assertNotEqual(other, actor)
                    self.assertIn(other, members)


class GetFamilyMembersTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Cohen")
        cls.family.members.add(cls.alice, cls.bob)

    def setUp(self):
        cache.clear()

    def test_returns_member_ids(self):
        self.assertCountEqual(
            get_family_members(self.family.pk), [self.alice.pk, self.bob.pk]
        )

    def test_missing_family_is_empty(self):
        self.assertEqual(get_family_members(999999), [])

    @patch("families.models.Family.objects")
    def test_unreadable_family_is_empty(self, mock_objects):
        mock_objects.get.side_effect = DatabaseError("connection lost")
        self.assertEqual(get_family_members(self.family.pk), [])


@override_settings(NOTIFICATION_LANGUAGE="en", NOTIFICATION_TIME_ZONE="UTC")
class MessageTests(SimpleTestCase):
    def test_format_date(self):
        self.assertEqual(messages.format_date("2025-01-06"), "Monday, 06 January")

    def test_format_date_unparseable_is_empty(self):
        self.assertEqual(messages.format_date("not a date"), "")
        self.assertEqual(messages.format_date(None), "")

    def test_format_event_date_includes_time(self):
        start = datetime(2025, 1, 6, 8, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(messages.format_event_date(start), "Monday, 06 January • 08:30")

    def test_format_event_date_all_day_has_no_time(self):
        start = datetime(2025, 1, 6, 8, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(
            messages.format_event_date(start, is_all_day=True), "Monday, 06 January"
        )

    @override_settings(NOTIFICATION_TIME_ZONE="Asia/Jerusalem")
    def test_dates_are_rendered_in_notification_time_zone(self):
        start = datetime(2025, 1, 6, 23, 30, tzinfo=dt_timezone.utc)
        self.assertEqual(messages.format_event_date(start), "Tuesday, 07 January • 01:30")

    def test_format_currency(self):
        self.assertEqual(messages.format_currency("120"), "₪120.00")
        self.assertEqual(messages.format_currency(1234.5, "USD"), "$1,234.50")

    def test_missing_or_invalid_amount_is_zero(self):
        self.assertEqual(messages.format_currency(None), "₪0.00")
        self.assertEqual(messages.format_currency("abc"), "₪0.00")

    @override_settings(NOTIFICATION_LANGUAGE="he")
    def test_hebrew_currency_puts_symbol_last(self):
        self.assertEqual(messages.format_currency("120"), "120.00 ₪")

    def test_swap_request_created(self):
        notification = messages.swap_request_created(
            {"requestedByName": "Dana", "originalDate": "2025-01-06T00:00:00+00:00"}
        )
        self.assertEqual(notification.title, "New swap request")
        self.assertEqual(notification.body, "Dana asked to swap Monday, 06 January")

    def test_swap_request_resolved_prefers_proposed_date(self):
        notification = messages.swap_request_resolved(
            {
                "status": "approved",
                "requestedToName": "Yossi",
                "originalDate": "2025-01-06",
                "proposedDate": "2025-01-08",
            }
        )
        self.assertEqual(notification.title, "Request approved")
        self.assertEqual(notification.body, "Yossi approved the swap for Wednesday, 08 January")

    def test_missing_names_use_fallbacks(self):
        created = messages.expense_created({"title": "Shoes", "amount": "80"})
        self.assertEqual(created.body, "The other parent added: Shoes (₪80.00)")
        request = messages.custody_approval_requested({"startDate": "2025-01-06"})
        self.assertTrue(request.body.startswith("Another parent asked"))

    def test_expense_resolved(self):
        notification = messages.expense_resolved(
            {
                "status": "rejected",
                "updatedByName": "Yossi",
                "title": "Camp",
                "amount": "500",
                "currency": "ILS",
            }
        )
        self.assertEqual(notification.title, "Expense rejected")
        self.assertEqual(notification.body, "Yossi rejected Camp (₪500.00)")

    def test_event_reminder(self):
        start = datetime(2025, 1, 6, 8, 30, tzinfo=dt_timezone.utc)
        notification = messages.event_reminder("Dentist", start)
        self.assertEqual(notification.title, "Reminder: Dentist")
        self.assertEqual(notification.body, "Monday, 06 January • 08:30")

    @override_settings(NOTIFICATION_LANGUAGE="he")
    def test_hebrew_texts(self):
        self.assertEqual(
            messages.event_reminder("רופא", None).title, "תזכורת לאירוע: רופא"
        )
        self.assertEqual(messages.custody_approval_resolved().title, "בקשת המשמרות אושרה/טופלה")

    @override_settings(NOTIFICATION_LANGUAGE="fr")
    def test_unsupported_language_falls_back_to_hebrew(self):
        self.assertEqual(messages.get_language(), "he")


@override_settings(NOTIFICATION_LANGUAGE="en", NOTIFICATION_TIME_ZONE="UTC")
class ReactorTests(SimpleTestCase):
    """Reactors decide effects without touching the database."""

    def setUp(self):
        self.context = ReactorContext(family_id=7, record_id=42, members=["a", "b"])

    def test_swap_request_created_notifies_requested_to(self):
        effects = react(
            RecordType.SWAP_REQUEST,
            Transition.CREATED,
            None,
            {"requestedBy": "a", "requestedTo": "b", "originalDate": "2025-01-06"},
            self.context,
        )
        self.assertEqual(len(effects), 1)
        self.assertEqual(effects[0].user_id, "b")
        self.assertEqual(
            effects[0].data,
            {"type": "swap-request-created", "familyId": 7, "requestId": 42},
        )

    def test_swap_request_without_requested_to_is_noop(self):
        effects = react(
            RecordType.SWAP_REQUEST, Transition.CREATED, None, {"requestedBy": "a"}, self.context
        )
        self.assertEqual(effects, [])

    def test_swap_request_resolution_notifies_requester(self):
        for status in ("approved", "rejected"):
            with self.subTest(status=status):
                effects = react(
                    RecordType.SWAP_REQUEST,
                    Transition.UPDATED,
                    {"status": "pending", "requestedBy": "a"},
                    {"status": status, "requestedBy": "a", "requestedTo": "b"},
                    self.context,
                )
                self.assertEqual(len(effects), 1)
                self.assertEqual(effects[0].user_id, "a")
                self.assertEqual(effects[0].data["type"], f"swap-request-{status}")

    def test_swap_request_other_transitions_are_noop(self):
        cases = [
            ("pending", "pending"),
            ("pending", "cancelled"),
            ("approved", "approved"),
        ]
        for before, after in cases:
            with self.subTest(before=before, after=after):
                effects = react(
                    RecordType.SWAP_REQUEST,
                    Transition.UPDATED,
                    {"status": before, "requestedBy": "a"},
                    {"status": after, "requestedBy": "a"},
                    self.context,
                )
                self.assertEqual(effects, [])

    def test_expense_unchanged_status_is_noop_for_every_status(self):
        for status in ("pending", "approved", "paid", "rejected", None):
            with self.subTest(status=status):
                effects = react(
                    RecordType.EXPENSE,
                    Transition.UPDATED,
                    {"status": status, "createdBy": "a"},
                    {"status": status, "createdBy": "a", "title": "Edited"},
                    self.context,
                )
                self.assertEqual(effects, [])

    def test_expense_created_notifies_other_parent(self):
        effects = react(
            RecordType.EXPENSE,
            Transition.CREATED,
            None,
            {"createdBy": "b", "title": "Books", "amount": "40"},
            self.context,
        )
        self.assertEqual([e.user_id for e in effects], ["a"])
        self.assertEqual(
            effects[0].data, {"type": "expense-created", "familyId": 7, "expenseId": 42}
        )

    def test_expense_approved_notifies_creator(self):
        effects = react(
            RecordType.EXPENSE,
            Transition.UPDATED,
            {"status": "pending", "createdBy": "a"},
            {"status": "approved", "createdBy": "a", "updatedBy": "b"},
            self.context,
        )
        self.assertEqual([e.user_id for e in effects], ["a"])
        self.assertEqual(effects[0].data["type"], "expense-approved")

    def test_expense_paid_is_noop(self):
        effects = react(
            RecordType.EXPENSE,
            Transition.UPDATED,
            {"status": "approved", "createdBy": "a"},
            {"status": "paid", "createdBy": "a"},
            self.context,
        )
        self.assertEqual(effects, [])

    def test_calendar_event_created_pushes_and_schedules_reminder(self):
        event = {
            "title": "Dentist",
            "startAt": "2025-01-06T08:30:00+00:00",
            "parentRole": "both",
            "targetUserIds": [],
            "reminderMinutes": 30,
        }
        effects = react(RecordType.CALENDAR_EVENT, Transition.CREATED, None, event, self.context)

        pushes = [e for e in effects if isinstance(e, SendPush)]
        reminders = [e for e in effects if isinstance(e, UpsertReminder)]
        self.assertEqual([p.user_id for p in pushes], ["a", "b"])
        self.assertEqual(
            pushes[0].data,
            {"type": "calendar-event-created", "familyId": 7, "eventId": 42, "parentId": "both"},
        )
        self.assertEqual(len(reminders), 1)
        self.assertEqual(reminders[0].target_user_ids, ("a", "b"))
        self.assertEqual(reminders[0].reminder_minutes, 30)
        self.assertEqual(reminders[0].title, "Dentist")

    def test_calendar_event_explicit_targets(self):
        event = {"title": "Pickup", "parentRole": "both", "targetUserIds": ["b"]}
        effects = react(RecordType.CALENDAR_EVENT, Transition.CREATED, None, event, self.context)
        self.assertEqual([e.user_id for e in effects if isinstance(e, SendPush)], ["b"])

    def test_calendar_event_with_no_audience_is_noop(self):
        context = ReactorContext(family_id=7, record_id=42, members=[])
        effects = react(
            RecordType.CALENDAR_EVENT, Transition.CREATED, None, {"title": "x"}, context
        )
        self.assertEqual(effects, [])

    def test_calendar_event_updated_only_refreshes_reminder(self):
        event = {"title": "Dentist", "parentRole": "parent2", "reminderMinutes": 10}
        effects = react(RecordType.CALENDAR_EVENT, Transition.UPDATED, event, event, self.context)
        self.assertEqual(len(effects), 1)
        self.assertIsInstance(effects[0], UpsertReminder)
        self.assertEqual(effects[0].target_user_ids, ("b",))

    def test_calendar_event_deleted_removes_reminder(self):
        effects = react(
            RecordType.CALENDAR_EVENT, Transition.DELETED, {"title": "x"}, None, self.context
        )
        self.assertEqual(effects, [DeleteReminder(7, 42)])

    def test_custody_request_notifies_everyone_but_requester(self):
        effects = react(
            RecordType.CUSTODY_SCHEDULE,
            Transition.UPDATED,
            {"pendingApproval": None},
            {"pendingApproval": {"requestedBy": "a", "startDate": "2025-01-06"}},
            self.context,
        )
        self.assertEqual([e.user_id for e in effects], ["b"])
        self.assertEqual(
            effects[0].data, {"type": "custody-approval-request", "familyId": 7}
        )

    def test_custody_resolution_notifies_requester(self):
        effects = react(
            RecordType.CUSTODY_SCHEDULE,
            Transition.UPDATED,
            {"pendingApproval": {"requestedBy": "a"}},
            {"pendingApproval": None},
            self.context,
        )
        self.assertEqual([e.user_id for e in effects], ["a"])
        self.assertEqual(effects[0].data["type"], "custody-approval-updated")

    def test_custody_other_writes_are_noop(self):
        pending = {"requestedBy": "a"}
        cases = [
            ({"pendingApproval": None}, {"pendingApproval": None}),
            ({"pendingApproval": pending}, {"pendingApproval": pending}),
            ({"isActive": False}, {"isActive": True}),
        ]
        for before, after in cases:
            with self.subTest(before=before, after=after):
                effects = react(
                    RecordType.CUSTODY_SCHEDULE, Transition.UPDATED, before, after, self.context
                )
                self.assertEqual(effects, [])

    def test_registered_transitions(self):
        self.assertTrue(has_handler("calendar_event", "deleted"))
        self.assertFalse(has_handler("swap_request", "deleted"))
        self.assertFalse(has_handler("expense", "deleted"))
        self.assertEqual(
            react(RecordType.EXPENSE, Transition.DELETED, {}, None, self.context), []
        )


class ApplyEffectsTests(SimpleTestCase):
    def test_push_failure_does_not_stop_other_effects(self):
        gateway = MagicMock()
        gateway.deliver.side_effect = [
            RuntimeError("provider down"),
            DeliveryResult(status=DeliveryResult.SENT, success_count=1),
        ]
        notification = PushNotification(title="t", body="b")
        applied = apply_effects(
            [SendPush("a", notification), SendPush("b", notification)],
            gateway=gateway,
        )
        self.assertEqual(applied, 1)
        self.assertEqual(gateway.deliver.call_count, 2)

    @patch("notifications.reminders.delete_reminder")
    @patch("notifications.reminders.upsert_reminder")
    def test_reminder_effects_call_scheduler(self, mock_upsert, mock_delete):
        start = datetime(2025, 1, 6, 8, 30, tzinfo=dt_timezone.utc)
        applied = apply_effects(
            [
                UpsertReminder(1, 2, start, 30, ("a",), "Dentist"),
                DeleteReminder(1, 3),
            ],
            gateway=MagicMock(),
        )
        self.assertEqual(applied, 2)
        mock_upsert.assert_called_once_with(
            family_id=1,
            event_id=2,
            start_at=start,
            reminder_minutes=30,
            target_user_ids=("a",),
            title="Dentist",
        )
        mock_delete.assert_called_once_with(1, 3)

    def test_unknown_effect_is_logged_not_raised(self):
        self.assertEqual(apply_effects([object()], gateway=MagicMock()), 0)


class HandleRecordChangeTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        cls.family = Family.objects.create(name="Levi")
        cls.family.members.add(cls.alice, cls.bob)

    def test_swap_request_created_delivers_to_requested_to(self):
        from .reactors import handle_record_change

        gateway = MagicMock()
        applied = handle_record_change(
            "swap_request",
            "created",
            self.family.pk,
            5,
            after={
                "requestedBy": self.alice.pk,
                "requestedTo": self.bob.pk,
                "originalDate": (datetime.now(dt_timezone.utc) + timedelta(days=3)).isoformat(),
            },
            gateway=gateway,
        )
        self.assertEqual(applied, 1)
        user_id, notification, data = gateway.deliver.call_args.args
        self.assertEqual(user_id, self.bob.pk)
        self.assertEqual(data["type"], "swap-request-created")

    @patch("notifications.reactors.react", side_effect=KeyError("status"))
    def test_reactor_error_is_swallowed(self, mock_react):
        from .reactors import handle_record_change

        applied = handle_record_change(
            "expense", "updated", self.family.pk, 1, before={}, after={}, gateway=MagicMock()
        )
        self.assertEqual(applied, 0)
