"""Reminder store for calendar-event push reminders.

One Reminder exists per calendar event, keyed by (family, event). It is
overwritten whenever the event changes and removed when the event is
deleted or its reminder offset is cleared. The minute-by-minute dispatcher
picks up unsent reminders whose send_at has passed.
"""

from django.conf import settings
from django.db import models


class Reminder(models.Model):
    """Scheduled one-shot push reminder for a calendar event.

    Attributes:
        family (ForeignKey): Family owning the event
        event (ForeignKey): The calendar event being reminded about
        targets (ManyToManyField): Users whose devices receive the reminder
        title (CharField): Event title at scheduling time
        start_at (DateTimeField): Event start at scheduling time
        send_at (DateTimeField): start_at minus the reminder offset
        sent (BooleanField): Flips False -> True once, never back
        sent_at (DateTimeField): When the reminder was delivered
        created_at (DateTimeField): First write; preserved across updates
        updated_at (DateTimeField): Last write
    """

    family = models.ForeignKey(
        "families.Family",
        on_delete=models.CASCADE,
        related_name="reminders",
    )
    event = models.ForeignKey(
        "calendars.CalendarEvent",
        on_delete=models.CASCADE,
        related_name="reminders",
    )
    targets = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="+",
        blank=True,
    )
    title = models.CharField(max_length=200)
    start_at = models.DateTimeField()
    send_at = models.DateTimeField(db_index=True)
    sent = models.BooleanField(default=False)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [["family", "event"]]
        ordering = ["send_at"]
        indexes = [
            models.Index(
                fields=["sent", "send_at"],
                name="reminder_due_idx",
            ),
            models.Index(
                fields=["sent_at"],
                name="reminder_cleanup_idx",
            ),
        ]

    def __str__(self):
        status = "sent" if self.sent else "pending"
        return f"Reminder for {self.title} at {self.send_at:%Y-%m-%d %H:%M} ({status})"

    def target_ids(self):
        return list(self.targets.values_list("id", flat=True))
