"""Signal handlers that turn record changes into notification tasks.

pre_save captures the stored snapshot of a record before it changes,
post_save/post_delete compare it with the new one and queue
process_record_change once the surrounding transaction commits. Nothing
here may break the save or delete that triggered it.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_delete, post_save, pre_save

from calendars.models import CalendarEvent, CustodySchedule
from expenses.models import Expense
from swaps.models import SwapRequest

from .reactors import RecordType, Transition, has_handler

logger = logging.getLogger(__name__)

WATCHED_MODELS = {
    SwapRequest: RecordType.SWAP_REQUEST,
    CalendarEvent: RecordType.CALENDAR_EVENT,
    Expense: RecordType.EXPENSE,
    CustodySchedule: RecordType.CUSTODY_SCHEDULE,
}


def _signals_disabled():
    return getattr(settings, "NOTIFICATIONS_DISABLE_SIGNALS", False)


def queue_record_change(record_type, transition, instance, before, after):
    """Queue the reactor task after the current transaction commits."""
    record_type = RecordType(record_type).value
    transition = Transition(transition).value
    family_id = instance.family_id
    record_id = instance.pk

    def enqueue():
        from .tasks import process_record_change

        try:
            process_record_change.delay(
                record_type, transition, family_id, record_id, before, after
            )
        except Exception as e:
            logger.error(
                f"Failed to queue notification task: {e}",
                extra={
                    "record_type": record_type,
                    "transition": transition,
                    "family_id": family_id,
                    "record_id": record_id,
                    "error": str(e),
                },
                exc_info=True,
            )

    transaction.on_commit(enqueue)


def capture_previous_snapshot(sender, instance, **kwargs):
    """Remember the stored version of a record about to be updated."""
    instance._notification_before = None
    if _signals_disabled() or instance._state.adding or instance.pk is None:
        return
    try:
        previous = sender.objects.filter(pk=instance.pk).first()
        if previous is not None:
            instance._notification_before = previous.as_snapshot()
    except Exception as e:
        logger.error(
            f"Failed to capture snapshot before save: {e}",
            extra={"model": sender.__name__, "record_id": instance.pk},
            exc_info=True,
        )


def queue_on_save(sender, instance, created, raw=False, **kwargs):
    if _signals_disabled() or raw:
        return
    transition = Transition.CREATED if created else Transition.UPDATED
    record_type = WATCHED_MODELS[sender]
    if not has_handler(record_type, transition):
        return
    try:
        before = None if created else getattr(instance, "_notification_before", None)
        queue_record_change(record_type, transition, instance, before, instance.as_snapshot())
    except Exception as e:
        logger.error(
            f"Failed to queue {record_type.value}.{transition.value}: {e}",
            extra={"record_id": instance.pk},
            exc_info=True,
        )


def queue_on_delete(sender, instance, **kwargs):
    if _signals_disabled():
        return
    record_type = WATCHED_MODELS[sender]
    if not has_handler(record_type, Transition.DELETED):
        return
    try:
        queue_record_change(
            record_type, Transition.DELETED, instance, instance.as_snapshot(), None
        )
    except Exception as e:
        logger.error(
            f"Failed to queue {record_type.value}.deleted: {e}",
            extra={"record_id": instance.pk},
            exc_info=True,
        )


for model in WATCHED_MODELS:
    label = model._meta.label_lower
    pre_save.connect(
        capture_previous_snapshot,
        sender=model,
        dispatch_uid=f"notifications_before_{label}",
    )
    post_save.connect(
        queue_on_save,
        sender=model,
        dispatch_uid=f"notifications_save_{label}",
    )
    post_delete.connect(
        queue_on_delete,
        sender=model,
        dispatch_uid=f"notifications_delete_{label}",
    )
