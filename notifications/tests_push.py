"""Tests for the push delivery gateway and provider backends."""

from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase, override_settings

from accounts.models import PushDevice
from django_project.test_constants import (
    TEST_PASSWORD,
    TEST_TOKEN_A,
    TEST_TOKEN_B,
    TEST_TOKEN_C,
)

from . import backends
from .backends import FirebaseBackend, LocmemBackend, PushMessage, get_backend
from .push import DeliveryResult, PushGateway, PushNotification, stringify_data

User = get_user_model()

LOCMEM = "notifications.backends.LocmemBackend"


def locmem_settings(**options):
    return {"BACKEND": LOCMEM, "OPTIONS": options}


class PushGatewayTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(username="alice", password=TEST_PASSWORD)
        cls.bob = User.objects.create_user(username="bob", password=TEST_PASSWORD)
        PushDevice.objects.create(user=cls.alice, token=TEST_TOKEN_A)
        PushDevice.objects.create(user=cls.alice, token=TEST_TOKEN_B)
        PushDevice.objects.create(user=cls.bob, token=TEST_TOKEN_C)

    def setUp(self):
        backends.outbox.clear()
        self.notification = PushNotification(title="Hello", body="World")

    def test_deliver_sends_one_multicast_to_all_user_tokens(self):
        result = PushGateway().deliver(
            self.alice.pk, self.notification, {"type": "test", "familyId": 3}
        )

        self.assertEqual(result.status, DeliveryResult.SENT)
        self.assertEqual(result.success_count, 2)
        self.assertEqual(len(backends.outbox), 1)
        message = backends.outbox[0]
        self.assertCountEqual(message.tokens, [TEST_TOKEN_A, TEST_TOKEN_B])
        self.assertEqual(message.title, "Hello")
        self.assertEqual(message.data, {"type": "test", "familyId": "3"})

    def test_missing_user_id_is_noop(self):
        for user_id in (None, ""):
            with self.subTest(user_id=user_id):
                result = PushGateway().deliver(user_id, self.notification)
                self.assertEqual(result.status, DeliveryResult.SKIPPED)
        self.assertEqual(backends.outbox, [])

    def test_unknown_user_is_noop(self):
        result = PushGateway().deliver(999999, self.notification)
        self.assertEqual(result.status, DeliveryResult.SKIPPED)
        self.assertEqual(result.reason, "user not found")
        self.assertEqual(backends.outbox, [])

    def test_user_without_tokens_is_noop(self):
        carol = User.objects.create_user(username="carol", password=TEST_PASSWORD)
        result = PushGateway().deliver(carol.pk, self.notification)
        self.assertEqual(result.reason, "no tokens")
        self.assertEqual(backends.outbox, [])

    @override_settings(PUSH_NOTIFICATIONS=locmem_settings(INVALID_TOKENS=[TEST_TOKEN_A]))
    def test_invalid_tokens_are_pruned(self):
        result = PushGateway().deliver(self.alice.pk, self.notification)

        self.assertEqual(result.invalid_tokens, [TEST_TOKEN_A])
        self.assertEqual(self.alice.push_tokens(), [TEST_TOKEN_B])

    @override_settings(PUSH_NOTIFICATIONS=locmem_settings(FAILING_TOKENS=[TEST_TOKEN_A]))
    def test_transient_failures_keep_tokens(self):
        result = PushGateway().deliver(self.alice.pk, self.notification)

        self.assertEqual(result.status, DeliveryResult.SENT)
        self.assertEqual(result.failure_count, 1)
        self.assertCountEqual(self.alice.push_tokens(), [TEST_TOKEN_A, TEST_TOKEN_B])

    def test_pruning_only_touches_owner_tokens(self):
        PushDevice.objects.create(user=self.bob, token=TEST_TOKEN_A)
        with override_settings(
            PUSH_NOTIFICATIONS=locmem_settings(INVALID_TOKENS=[TEST_TOKEN_A])
        ):
            PushGateway().deliver(self.alice.pk, self.notification)

        self.assertTrue(PushDevice.objects.filter(user=self.bob, token=TEST_TOKEN_A).exists())

    def test_backend_error_is_reported_not_raised(self):
        backend = MagicMock()
        backend.send_multicast.side_effect = RuntimeError("quota exceeded")

        result = PushGateway(backend=backend).deliver(self.alice.pk, self.notification)

        self.assertTrue(result.failed)
        self.assertIn("quota exceeded", result.reason)
        self.assertEqual(PushDevice.objects.filter(user=self.alice).count(), 2)

    def test_deliver_to_users_unions_tokens(self):
        PushDevice.objects.create(user=self.bob, token=TEST_TOKEN_A)

        result = PushGateway().deliver_to_users(
            [self.alice.pk, self.bob.pk, self.alice.pk], self.notification
        )

        self.assertEqual(result.status, DeliveryResult.SENT)
        self.assertEqual(len(backends.outbox), 1)
        self.assertCountEqual(
            backends.outbox[0].tokens, [TEST_TOKEN_A, TEST_TOKEN_B, TEST_TOKEN_C]
        )

    def test_deliver_to_users_without_tokens_is_skipped(self):
        carol = User.objects.create_user(username="carol", password=TEST_PASSWORD)
        result = PushGateway().deliver_to_users([carol.pk], self.notification)
        self.assertEqual(result.status, DeliveryResult.SKIPPED)
        self.assertEqual(PushGateway().deliver_to_users([], self.notification).reason, "no users")


class StringifyDataTests(SimpleTestCase):
    def test_values_become_strings_and_none_is_dropped(self):
        self.assertEqual(
            stringify_data({"familyId": 3, "type": "x", "parentId": None}),
            {"familyId": "3", "type": "x"},
        )
        self.assertEqual(stringify_data(None), {})


class BackendSelectionTests(SimpleTestCase):
    def test_backend_comes_from_settings(self):
        self.assertIsInstance(get_backend(), LocmemBackend)

    @override_settings(
        PUSH_NOTIFICATIONS={"BACKEND": "notifications.backends.ConsoleBackend"}
    )
    def test_console_backend_accepts_every_token(self):
        result = get_backend().send_multicast(
            PushMessage(tokens=("t1", "t2"), title="t", body="b")
        )
        self.assertEqual(result.success_count, 2)
        self.assertEqual(result.invalid_tokens, [])


class FirebaseBackendTests(SimpleTestCase):
    def _response(self, success, exception=None):
        return MagicMock(success=success, exception=exception)

    @patch("notifications.backends.messaging.send_each_for_multicast")
    @patch.object(FirebaseBackend, "_get_app")
    def test_unregistered_tokens_are_reported_invalid(self, mock_app, mock_send):
        from firebase_admin import messaging

        unregistered = messaging.UnregisteredError("gone")
        mock_send.return_value = MagicMock(
            responses=[
                self._response(False, unregistered),
                self._response(True),
                self._response(False, RuntimeError("unavailable")),
            ]
        )

        result = FirebaseBackend().send_multicast(
            PushMessage(tokens=("t1", "t2", "t3"), title="t", body="b", data={"k": "v"})
        )

        self.assertEqual(result.success_count, 1)
        self.assertEqual(result.failure_count, 2)
        self.assertEqual(result.invalid_tokens, ["t1"])
        sent = mock_send.call_args.args[0]
        self.assertEqual(sent.tokens, ["t1", "t2", "t3"])
        self.assertEqual(sent.android.priority, "high")

    @patch("notifications.backends.FCM_MULTICAST_LIMIT", 2)
    @patch("notifications.backends.messaging.send_each_for_multicast")
    @patch.object(FirebaseBackend, "_get_app")
    def test_large_batches_are_chunked(self, mock_app, mock_send):
        mock_send.side_effect = lambda message, app=None: MagicMock(
            responses=[self._response(True) for _ in message.tokens]
        )

        result = FirebaseBackend().send_multicast(
            PushMessage(tokens=("t1", "t2", "t3"), title="t", body="b")
        )

        self.assertEqual(mock_send.call_count, 2)
        self.assertEqual(result.success_count, 3)

    @patch("notifications.backends.FCM_MULTICAST_LIMIT", 2)
    @patch("notifications.backends.messaging.send_each_for_multicast")
    @patch.object(FirebaseBackend, "_get_app")
    def test_failed_chunk_does_not_discard_delivered_chunks(self, mock_app, mock_send):
        from firebase_admin import exceptions, messaging

        unregistered = messaging.UnregisteredError("gone")
        mock_send.side_effect = [
            MagicMock(
                responses=[self._response(True), self._response(False, unregistered)]
            ),
            exceptions.UnavailableError("fcm down"),
        ]

        result = FirebaseBackend().send_multicast(
            PushMessage(tokens=("t1", "t2", "t3"), title="t", body="b")
        )

        self.assertEqual(result.success_count, 1)
        self.assertEqual(result.failure_count, 2)
        self.assertEqual(result.invalid_tokens, ["t2"])

    @patch("notifications.backends.messaging.send_each_for_multicast")
    @patch.object(FirebaseBackend, "_get_app")
    def test_batch_that_never_reaches_provider_raises(self, mock_app, mock_send):
        from firebase_admin import exceptions

        mock_send.side_effect = exceptions.UnavailableError("fcm down")

        with self.assertRaises(exceptions.UnavailableError):
            FirebaseBackend().send_multicast(
                PushMessage(tokens=("t1",), title="t", body="b")
            )
