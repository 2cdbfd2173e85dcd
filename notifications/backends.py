"""Push-messaging provider backends.

The active backend is chosen by settings.PUSH_NOTIFICATIONS["BACKEND"]
(a dotted path), the same way Django picks an email backend:

    PUSH_NOTIFICATIONS = {
        "BACKEND": "notifications.backends.FirebaseBackend",
        "OPTIONS": {"CREDENTIALS": "/secrets/firebase.json"},
    }

A backend takes one PushMessage addressed to many tokens and returns a
MulticastResult with one TokenResponse per token, in token order. A
backend raises when the whole batch could not be handed to the provider.
"""

import logging
from dataclasses import dataclass, field

import firebase_admin
from django.conf import settings
from django.utils.module_loading import import_string
from firebase_admin import credentials, exceptions, messaging

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "[DEFAULT]"

# FCM accepts at most 500 tokens per multicast request
FCM_MULTICAST_LIMIT = 500

# Messages captured by LocmemBackend (tests)
outbox = []


@dataclass(frozen=True)
class PushMessage:
    tokens: tuple
    title: str
    body: str
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TokenResponse:
    token: str
    success: bool
    invalid: bool = False
    error: str = ""


@dataclass
class MulticastResult:
    responses: list = field(default_factory=list)

    @property
    def success_count(self):
        return sum(1 for r in self.responses if r.success)

    @property
    def failure_count(self):
        return sum(1 for r in self.responses if not r.success)

    @property
    def invalid_tokens(self):
        """Tokens the provider reported as permanently unusable."""
        return [r.token for r in self.responses if not r.success and r.invalid]


class BasePushBackend:
    def __init__(self, **options):
        self.options = options

    def send_multicast(self, message):
        raise NotImplementedError


class ConsoleBackend(BasePushBackend):
    """Log messages instead of sending them. Development default."""

    def send_multicast(self, message):
        logger.info(
            f"[push] {message.title}: {message.body}",
            extra={"tokens": len(message.tokens), "data": message.data},
        )
        return MulticastResult(
            responses=[TokenResponse(token=t, success=True) for t in message.tokens]
        )


class LocmemBackend(BasePushBackend):
    """Store messages in notifications.backends.outbox.

    OPTIONS:
        INVALID_TOKENS: tokens reported as unregistered
        FAILING_TOKENS: tokens reported as failed for a transient reason
    """

    def send_multicast(self, message):
        invalid = set(self.options.get("INVALID_TOKENS", ()))
        failing = set(self.options.get("FAILING_TOKENS", ()))
        outbox.append(message)
        responses = []
        for token in message.tokens:
            if token in invalid:
                responses.append(
                    TokenResponse(token=token, success=False, invalid=True, error="unregistered")
                )
            elif token in failing:
                responses.append(
                    TokenResponse(token=token, success=False, error="unavailable")
                )
            else:
                responses.append(TokenResponse(token=token, success=True))
        return MulticastResult(responses=responses)


class FirebaseBackend(BasePushBackend):
    """Send through Firebase Cloud Messaging with firebase-admin.

    OPTIONS:
        CREDENTIALS: path to a service-account JSON file; application
            default credentials are used when omitted
        PROJECT_ID: optional Firebase project id
        APP_NAME: firebase_admin app name (default "[DEFAULT]")
    """

    def _get_app(self):
        name = self.options.get("APP_NAME", DEFAULT_APP_NAME)
        try:
            return firebase_admin.get_app(name)
        except ValueError:
            pass

        app_options = {}
        if self.options.get("PROJECT_ID"):
            app_options["projectId"] = self.options["PROJECT_ID"]
        cred_path = self.options.get("CREDENTIALS")
        cred = credentials.Certificate(cred_path) if cred_path else None
        logger.info(
            "Initializing Firebase app",
            extra={"app_name": name, "explicit_credentials": bool(cred_path)},
        )
        return firebase_admin.initialize_app(cred, app_options or None, name=name)

    def _build_message(self, message, tokens):
        return messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=message.title, body=message.body),
            data=dict(message.data),
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(sound="default"),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        sound="default",
                        alert=messaging.ApsAlert(title=message.title, body=message.body),
                    )
                )
            ),
        )

    @staticmethod
    def _is_invalid(exc):
        return isinstance(
            exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)
        )

    def send_multicast(self, message):
        app = self._get_app()
        tokens = list(message.tokens)
        responses = []
        chunk_error = None
        delivered_chunks = 0
        for start in range(0, len(tokens), FCM_MULTICAST_LIMIT):
            chunk = tokens[start : start + FCM_MULTICAST_LIMIT]
            try:
                batch = messaging.send_each_for_multicast(
                    self._build_message(message, chunk), app=app
                )
            except exceptions.FirebaseError as e:
                # Other chunks may already be delivered; report this one as transient
                chunk_error = e
                logger.error(
                    f"FCM multicast chunk failed: {e}",
                    extra={"token_count": len(chunk), "error": str(e)},
                    exc_info=True,
                )
                responses.extend(
                    TokenResponse(token=token, success=False, error=str(e))
                    for token in chunk
                )
                continue
            delivered_chunks += 1
            for token, send_response in zip(chunk, batch.responses):
                if send_response.success:
                    responses.append(TokenResponse(token=token, success=True))
                    continue
                exc = send_response.exception
                responses.append(
                    TokenResponse(
                        token=token,
                        success=False,
                        invalid=self._is_invalid(exc),
                        error=str(exc) if exc else "unknown_fcm_error",
                    )
                )
        # Nothing reached the provider: fail the whole batch so callers retry
        if chunk_error is not None and not delivered_chunks:
            raise chunk_error
        return MulticastResult(responses=responses)


def get_backend():
    """Instantiate the backend configured in settings.PUSH_NOTIFICATIONS."""
    config = getattr(settings, "PUSH_NOTIFICATIONS", {})
    path = config.get("BACKEND", "notifications.backends.ConsoleBackend")
    return import_string(path)(**config.get("OPTIONS", {}))
