"""Side effects decided by the reactors, and the executor that applies them.

Reactors return plain effect objects instead of performing I/O, so the
decision logic can be tested without a database or a push provider. The
executor applies effects one by one; a failing effect is logged and the
rest still run.
"""

import logging
from dataclasses import dataclass, field

from .push import PushGateway, PushNotification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendPush:
    user_id: object
    notification: PushNotification
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UpsertReminder:
    family_id: object
    event_id: object
    start_at: object
    reminder_minutes: object
    target_user_ids: tuple
    title: str


@dataclass(frozen=True)
class DeleteReminder:
    family_id: object
    event_id: object


def _apply(effect, gateway):
    from .reminders import delete_reminder, upsert_reminder

    if isinstance(effect, SendPush):
        return gateway.deliver(effect.user_id, effect.notification, effect.data)
    if isinstance(effect, UpsertReminder):
        return upsert_reminder(
            family_id=effect.family_id,
            event_id=effect.event_id,
            start_at=effect.start_at,
            reminder_minutes=effect.reminder_minutes,
            target_user_ids=effect.target_user_ids,
            title=effect.title,
        )
    if isinstance(effect, DeleteReminder):
        return delete_reminder(effect.family_id, effect.event_id)
    raise TypeError(f"Unknown effect: {effect!r}")


def apply_effects(effects, gateway=None):
    """Apply effects in order. Returns the number applied without error."""
    gateway = gateway or PushGateway()
    applied = 0
    for effect in effects:
        try:
            _apply(effect, gateway)
            applied += 1
        except Exception as e:
            logger.error(
                f"Failed to apply notification effect: {e}",
                extra={"effect": type(effect).__name__, "error": str(e)},
                exc_info=True,
            )
    return applied
