"""Calendar-event reminders: scheduling and due-reminder dispatch.

upsert_reminder()/delete_reminder() keep one Reminder row per calendar
event in sync with the event. dispatch_due_reminders() runs every minute
from Celery Beat, sends the reminders whose send time has passed and marks
them sent. A reminder whose delivery fails stays unsent and is retried on
the next run; that polling retry is the only retry mechanism.
"""

import logging
import math
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.utils import timezone

from . import messages
from .models import Reminder
from .push import DeliveryResult, PushGateway

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_LIMIT = 50


def _compute_send_at(start_at, reminder_minutes):
    """Return start_at minus the offset, or None if either is unusable."""
    start = messages.coerce_datetime(start_at)
    if not isinstance(start, datetime):
        return None, None
    if timezone.is_naive(start):
        start = timezone.make_aware(start, ZoneInfo("UTC"))
    try:
        minutes = float(reminder_minutes)
    except (TypeError, ValueError):
        return start, None
    if not math.isfinite(minutes):
        return start, None
    try:
        return start, start - timedelta(minutes=minutes)
    except OverflowError:
        return start, None


def delete_reminder(family_id, event_id):
    """Remove the reminder for an event. A missing reminder is not an error."""
    deleted, _ = Reminder.objects.filter(family_id=family_id, event_id=event_id).delete()
    if deleted:
        logger.info(
            "Deleted reminder",
            extra={"family_id": family_id, "event_id": event_id},
        )
    return deleted


def upsert_reminder(
    family_id,
    event_id,
    start_at,
    reminder_minutes,
    target_user_ids,
    title,
    now=None,
):
    """Create or overwrite the reminder for a calendar event.

    No reminder is kept when the offset is unset or when the computed send
    time is not strictly in the future; any existing one is deleted.

    Returns:
        The Reminder, or None when nothing was scheduled.
    """
    from calendars.models import CalendarEvent

    if reminder_minutes is None or reminder_minutes == "":
        delete_reminder(family_id, event_id)
        return None

    start, send_at = _compute_send_at(start_at, reminder_minutes)
    now = now or timezone.now()
    if send_at is None or send_at <= now:
        logger.info(
            "Reminder not scheduled: send time is not in the future",
            extra={
                "family_id": family_id,
                "event_id": event_id,
                "send_at": send_at.isoformat() if send_at else None,
            },
        )
        delete_reminder(family_id, event_id)
        return None

    if not CalendarEvent.objects.filter(pk=event_id, family_id=family_id).exists():
        logger.warning(
            "Reminder not scheduled: calendar event no longer exists",
            extra={"family_id": family_id, "event_id": event_id},
        )
        return None

    target_ids = list(dict.fromkeys(uid for uid in target_user_ids or [] if uid))
    with transaction.atomic():
        reminder, created = Reminder.objects.update_or_create(
            family_id=family_id,
            event_id=event_id,
            defaults={
                "title": title or "",
                "start_at": start,
                "send_at": send_at,
                "sent": False,
                "sent_at": None,
            },
        )
        reminder.targets.set(get_user_model().objects.filter(pk__in=target_ids))

    logger.info(
        f"{'Created' if created else 'Updated'} reminder",
        extra={
            "family_id": family_id,
            "event_id": event_id,
            "send_at": send_at.isoformat(),
            "targets": len(target_ids),
        },
    )
    return reminder


def _mark_sent(reminder):
    """Flip sent to True on the version of the reminder that was delivered.

    Returns False when another run already flipped it or when the event was
    rescheduled meanwhile; a rescheduled reminder keeps sent=False.
    """
    sent_at = timezone.now()
    updated = Reminder.objects.filter(
        pk=reminder.pk, sent=False, send_at=reminder.send_at
    ).update(sent=True, sent_at=sent_at, updated_at=sent_at)
    return bool(updated)


def _send_reminder(reminder, gateway):
    target_ids = [user.pk for user in reminder.targets.all()]
    return gateway.deliver_to_users(
        target_ids,
        messages.event_reminder(reminder.title, reminder.start_at),
        {
            "type": "calendar-event-reminder",
            "familyId": reminder.family_id,
            "eventId": reminder.event_id,
        },
    )


def dispatch_due_reminders(limit=None, now=None, gateway=None):
    """Send every unsent reminder whose send_at is at or before now.

    Reminders are processed oldest send_at first, at most `limit` per run.
    Each reminder is handled independently: a failed delivery leaves it
    unsent for the next run and does not affect the others.

    Returns:
        Dict with counts of selected, sent, skipped and failed reminders.
    """
    limit = limit or getattr(settings, "REMINDER_DISPATCH_LIMIT", DEFAULT_DISPATCH_LIMIT)
    now = now or timezone.now()
    gateway = gateway or PushGateway()
    summary = {"selected": 0, "sent": 0, "skipped": 0, "failed": 0}

    logger.info(
        "Dispatching due reminders",
        extra={"now": now.isoformat(), "limit": limit},
    )
    try:
        due = list(
            Reminder.objects.filter(sent=False, send_at__lte=now)
            .order_by("send_at", "pk")
            .prefetch_related("targets")[:limit]
        )
    except DatabaseError as e:
        logger.error(
            f"Due reminder query failed: {e}",
            extra={"error": str(e)},
            exc_info=True,
        )
        summary["error"] = str(e)
        return summary

    summary["selected"] = len(due)
    if not due:
        logger.info("No reminders ready to send")
        return summary

    for reminder in due:
        try:
            result = _send_reminder(reminder, gateway)
            if result.failed:
                summary["failed"] += 1
                logger.warning(
                    "Reminder delivery failed; will retry on next run",
                    extra={"reminder_id": reminder.pk, "reason": result.reason},
                )
                continue
            if not _mark_sent(reminder):
                logger.info(
                    "Reminder already marked sent or rescheduled during delivery",
                    extra={"reminder_id": reminder.pk},
                )
            if result.status == DeliveryResult.SKIPPED:
                summary["skipped"] += 1
                logger.warning(
                    "No tokens for reminder",
                    extra={"reminder_id": reminder.pk, "event_id": reminder.event_id},
                )
            else:
                summary["sent"] += 1
        except Exception as e:
            summary["failed"] += 1
            logger.error(
                f"Failed to send reminder: {e}",
                extra={"reminder_id": reminder.pk, "error": str(e)},
                exc_info=True,
            )

    logger.info("Reminder dispatch finished", extra=summary)
    return summary


def cleanup_sent_reminders(days=None):
    """Delete reminders sent more than `days` ago. Returns the count deleted."""
    days = days or getattr(settings, "REMINDER_RETENTION_DAYS", 7)
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = Reminder.objects.filter(sent=True, sent_at__lt=cutoff).delete()
    return deleted
