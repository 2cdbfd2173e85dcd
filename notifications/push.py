"""Push delivery gateway.

Looks up a user's registered device tokens, sends one multicast through
the configured backend and prunes the tokens the provider reports as
permanently invalid. Delivery is best-effort: nothing here raises because
a push could not be sent; the outcome is reported as a DeliveryResult.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.contrib.auth import get_user_model

from accounts.models import PushDevice

from .backends import PushMessage, get_backend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushNotification:
    title: str
    body: str


@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt.

    status is "sent" when the provider accepted the batch, "skipped" when
    there was nobody to send to and "failed" when the whole batch was
    rejected.
    """

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"

    status: str
    success_count: int = 0
    failure_count: int = 0
    invalid_tokens: list = field(default_factory=list)
    reason: str = ""

    @property
    def failed(self) -> bool:
        return self.status == self.FAILED

    @classmethod
    def skipped(cls, reason: str) -> DeliveryResult:
        return cls(status=cls.SKIPPED, reason=reason)


def stringify_data(data: dict | None) -> dict[str, str]:
    """Coerce a data payload to the string-to-string map providers require."""
    result = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        result[str(key)] = value if isinstance(value, str) else str(value)
    return result


class PushGateway:
    """Deliver push notifications to users' devices.

    The backend is injected for tests; by default it is built from
    settings.PUSH_NOTIFICATIONS on every send, so override_settings applies.
    """

    def __init__(self, backend=None):
        self._backend = backend

    @property
    def backend(self):
        return self._backend or get_backend()

    def deliver(
        self, user_id, notification: PushNotification, data: dict | None = None
    ) -> DeliveryResult:
        """Send one notification to every device of one user."""
        if not user_id:
            return DeliveryResult.skipped("no user")

        logger.info(
            "Preparing push for user",
            extra={"user_id": user_id, "data": data},
        )
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            logger.warning("Push skipped: user not found", extra={"user_id": user_id})
            return DeliveryResult.skipped("user not found")

        tokens = user.push_tokens()
        if not tokens:
            logger.warning("Push skipped: no tokens for user", extra={"user_id": user_id})
            return DeliveryResult.skipped("no tokens")

        return self._send(tokens, [user_id], notification, data)

    def deliver_to_users(
        self, user_ids, notification: PushNotification, data: dict | None = None
    ) -> DeliveryResult:
        """Send one multicast to the union of several users' devices."""
        user_ids = [uid for uid in dict.fromkeys(user_ids or []) if uid]
        if not user_ids:
            return DeliveryResult.skipped("no users")

        tokens = list(
            dict.fromkeys(
                PushDevice.objects.filter(user_id__in=user_ids)
                .order_by("created_at", "id")
                .values_list("token", flat=True)
            )
        )
        if not tokens:
            logger.warning(
                "Push skipped: no tokens for users", extra={"user_ids": user_ids}
            )
            return DeliveryResult.skipped("no tokens")

        return self._send(tokens, user_ids, notification, data)

    def _send(self, tokens, owner_ids, notification, data):
        message = PushMessage(
            tokens=tuple(tokens),
            title=notification.title,
            body=notification.body,
            data=stringify_data(data),
        )
        try:
            response = self.backend.send_multicast(message)
        except Exception as e:
            logger.error(
                f"Push multicast failed: {e}",
                extra={"user_ids": owner_ids, "token_count": len(tokens), "error": str(e)},
                exc_info=True,
            )
            return DeliveryResult(status=DeliveryResult.FAILED, reason=str(e))

        invalid_tokens = response.invalid_tokens
        logger.info(
            "Push responses",
            extra={
                "user_ids": owner_ids,
                "success_count": response.success_count,
                "failure_count": response.failure_count,
                "invalid_tokens": invalid_tokens,
            },
        )
        if invalid_tokens:
            self.prune_tokens(owner_ids, invalid_tokens)

        return DeliveryResult(
            status=DeliveryResult.SENT,
            success_count=response.success_count,
            failure_count=response.failure_count,
            invalid_tokens=invalid_tokens,
        )

    @staticmethod
    def prune_tokens(user_ids, tokens):
        """Remove invalid tokens from the given users' token sets."""
        deleted, _ = PushDevice.objects.filter(
            user_id__in=user_ids, token__in=tokens
        ).delete()
        logger.info(
            "Removed invalid push tokens",
            extra={"user_ids": user_ids, "invalid_tokens": tokens, "deleted": deleted},
        )
        return deleted
