"""Domain event reactors.

Each handler takes the record snapshot before and after a change plus a
ReactorContext and returns the effects to apply (pushes to send, reminders
to upsert or delete). Handlers do no I/O. HANDLERS maps (record type,
transition) to a handler; handle_record_change() loads the family members,
runs the handler and applies its effects.

Snapshots are the dicts produced by each model's as_snapshot().
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from . import messages
from .audience import get_family_members, resolve_audience, resolve_other_parent
from .effects import DeleteReminder, SendPush, UpsertReminder, apply_effects

logger = logging.getLogger(__name__)

RESOLVED_STATUSES = ("approved", "rejected")


class RecordType(str, Enum):
    SWAP_REQUEST = "swap_request"
    CALENDAR_EVENT = "calendar_event"
    EXPENSE = "expense"
    CUSTODY_SCHEDULE = "custody_schedule"


class Transition(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ReactorContext:
    family_id: object
    record_id: object
    members: list = field(default_factory=list)


def _resolution_status(before, after):
    """Return the new status when a record has just been approved or rejected."""
    before_status = (before or {}).get("status")
    after_status = (after or {}).get("status")
    if before_status == after_status:
        return None
    if after_status not in RESOLVED_STATUSES:
        return None
    return after_status


# --- Swap requests ---


def swap_request_created(before, after, context):
    target = after.get("requestedTo")
    if not target:
        return []
    return [
        SendPush(
            target,
            messages.swap_request_created(after),
            {
                "type": "swap-request-created",
                "familyId": context.family_id,
                "requestId": context.record_id,
            },
        )
    ]


def swap_request_updated(before, after, context):
    status = _resolution_status(before, after)
    if status is None:
        return []
    target = after.get("requestedBy")
    if not target:
        return []
    return [
        SendPush(
            target,
            messages.swap_request_resolved(after),
            {
                "type": f"swap-request-{status}",
                "familyId": context.family_id,
                "requestId": context.record_id,
            },
        )
    ]


# --- Calendar events ---


def _event_audience(event, context):
    return resolve_audience(
        context.members,
        explicit_targets=event.get("targetUserIds"),
        role_tag=event.get("parentRole"),
    )


def _reminder_for(event, targets, context):
    return UpsertReminder(
        family_id=context.family_id,
        event_id=context.record_id,
        start_at=event.get("startAt"),
        reminder_minutes=event.get("reminderMinutes"),
        target_user_ids=tuple(targets),
        title=event.get("title") or "",
    )


def calendar_event_created(before, after, context):
    targets = _event_audience(after, context)
    if not targets:
        logger.warning(
            "No target users for calendar event",
            extra={"family_id": context.family_id, "event_id": context.record_id},
        )
        return []

    notification = messages.calendar_event_created(after)
    data = {
        "type": "calendar-event-created",
        "familyId": context.family_id,
        "eventId": context.record_id,
        "parentId": after.get("parentRole"),
    }
    effects = [SendPush(uid, notification, data) for uid in targets]
    effects.append(_reminder_for(after, targets, context))
    return effects


def calendar_event_updated(before, after, context):
    # No push on update; only the reminder is refreshed
    return [_reminder_for(after, _event_audience(after, context), context)]


def calendar_event_deleted(before, after, context):
    return [DeleteReminder(context.family_id, context.record_id)]


# --- Expenses ---


def expense_created(before, after, context):
    target = resolve_other_parent(context.members, after.get("createdBy"))
    if not target:
        return []
    return [
        SendPush(
            target,
            messages.expense_created(after),
            {
                "type": "expense-created",
                "familyId": context.family_id,
                "expenseId": context.record_id,
            },
        )
    ]


def expense_updated(before, after, context):
    status = _resolution_status(before, after)
    if status is None:
        return []
    target = after.get("createdBy")
    if not target:
        return []
    return [
        SendPush(
            target,
            messages.expense_resolved(after),
            {
                "type": f"expense-{status}",
                "familyId": context.family_id,
                "expenseId": context.record_id,
            },
        )
    ]


# --- Custody schedule approval ---


def custody_schedule_written(before, after, context):
    before_pending = (before or {}).get("pendingApproval") or None
    after_pending = (after or {}).get("pendingApproval") or None

    if not before_pending and after_pending:
        requester = after_pending.get("requestedBy")
        notification = messages.custody_approval_requested(after_pending)
        data = {"type": "custody-approval-request", "familyId": context.family_id}
        return [
            SendPush(uid, notification, data)
            for uid in context.members
            if uid and uid != requester
        ]

    if before_pending and not after_pending:
        requester = before_pending.get("requestedBy")
        if not requester:
            return []
        return [
            SendPush(
                requester,
                messages.custody_approval_resolved(),
                {"type": "custody-approval-updated", "familyId": context.family_id},
            )
        ]

    return []


HANDLERS = {
    (RecordType.SWAP_REQUEST, Transition.CREATED): swap_request_created,
    (RecordType.SWAP_REQUEST, Transition.UPDATED): swap_request_updated,
    (RecordType.CALENDAR_EVENT, Transition.CREATED): calendar_event_created,
    (RecordType.CALENDAR_EVENT, Transition.UPDATED): calendar_event_updated,
    (RecordType.CALENDAR_EVENT, Transition.DELETED): calendar_event_deleted,
    (RecordType.EXPENSE, Transition.CREATED): expense_created,
    (RecordType.EXPENSE, Transition.UPDATED): expense_updated,
    (RecordType.CUSTODY_SCHEDULE, Transition.CREATED): custody_schedule_written,
    (RecordType.CUSTODY_SCHEDULE, Transition.UPDATED): custody_schedule_written,
    (RecordType.CUSTODY_SCHEDULE, Transition.DELETED): custody_schedule_written,
}


def has_handler(record_type, transition):
    return (RecordType(record_type), Transition(transition)) in HANDLERS


def react(record_type, transition, before, after, context):
    """Run the registered handler and return its effects."""
    handler = HANDLERS.get((RecordType(record_type), Transition(transition)))
    if handler is None:
        return []
    return handler(before or {}, after or {}, context)


def handle_record_change(
    record_type, transition, family_id, record_id, before=None, after=None, gateway=None
):
    """Resolve the audience, decide the effects and apply them.

    Never raises: a notification problem must not affect the change that
    triggered it. Returns the number of effects applied.
    """
    logger.info(
        f"[{record_type}.{transition}] Triggered",
        extra={"family_id": family_id, "record_id": record_id},
    )
    context = ReactorContext(
        family_id=family_id,
        record_id=record_id,
        members=get_family_members(family_id),
    )
    try:
        effects = react(record_type, transition, before, after, context)
    except Exception as e:
        logger.error(
            f"Reactor failed for {record_type}.{transition}: {e}",
            extra={"family_id": family_id, "record_id": record_id, "error": str(e)},
            exc_info=True,
        )
        return 0
    return apply_effects(effects, gateway=gateway)
