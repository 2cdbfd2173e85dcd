"""Celery tasks for notification fan-out, reminder dispatch and cleanup."""

from celery import shared_task


@shared_task(bind=True, time_limit=60)
def process_record_change(
    self, record_type, transition, family_id, record_id, before=None, after=None
):
    """React to a committed change of a family record.

    Queued from the model signals after the transaction commits.
    """
    from .reactors import handle_record_change

    applied = handle_record_change(
        record_type,
        transition,
        family_id,
        record_id,
        before=before,
        after=after,
    )
    return f"Applied {applied} notification effects"


@shared_task(bind=True, time_limit=55)
def dispatch_event_reminders(self, limit=None):
    """Send due calendar-event reminders. Runs every minute via Celery Beat."""
    from .reminders import dispatch_due_reminders

    summary = dispatch_due_reminders(limit=limit)
    return (
        f"Sent {summary['sent']} of {summary['selected']} due reminders "
        f"({summary['skipped']} skipped, {summary['failed']} failed)"
    )


@shared_task(bind=True, time_limit=120)
def cleanup_sent_reminders(self):
    """Delete reminders sent more than REMINDER_RETENTION_DAYS ago. Runs daily."""
    from .reminders import cleanup_sent_reminders as cleanup

    deleted_count = cleanup()
    return f"Deleted {deleted_count} sent reminders"
