from datetime import date

from django.conf import settings
from django.db import models
from django.utils import timezone

from families.models import Family


class CalendarEvent(models.Model):
    """Shared family calendar entry.

    Addressed either to an explicit list of users (target_user_ids) or to
    a parent role. Setting reminder_minutes schedules a one-shot reminder
    that many minutes before start_at.

    Attributes:
        family (ForeignKey): Owning family
        title (CharField): Short title rendered in pushes and reminders
        start_at (DateTimeField): Event start (UTC, indexed)
        end_at (DateTimeField): Event end
        parent_role (CharField): One of 'parent1', 'parent2', 'both'
        target_user_ids (JSONField): Optional explicit audience
        reminder_minutes (PositiveIntegerField): Reminder offset; null = no reminder
    """

    class EventType(models.TextChoices):
        CUSTODY = "custody", "Custody"
        PICKUP = "pickup", "Pickup"
        DROPOFF = "dropoff", "Drop-off"
        SCHOOL = "school", "School"
        ACTIVITY = "activity", "Activity"
        MEDICAL = "medical", "Medical"
        HOLIDAY = "holiday", "Holiday"
        VACATION = "vacation", "Vacation"
        OTHER = "other", "Other"

    class ParentRole(models.TextChoices):
        PARENT1 = "parent1", "Parent 1"
        PARENT2 = "parent2", "Parent 2"
        BOTH = "both", "Both"

    family = models.ForeignKey(
        Family,
        on_delete=models.CASCADE,
        related_name="calendar_events",
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_at = models.DateTimeField(db_index=True)
    end_at = models.DateTimeField()
    event_type = models.CharField(
        max_length=20,
        choices=EventType.choices,
        default=EventType.OTHER,
    )
    parent_role = models.CharField(
        max_length=10,
        choices=ParentRole.choices,
        default=ParentRole.BOTH,
    )
    is_all_day = models.BooleanField(default=False)
    location = models.CharField(max_length=200, blank=True)
    target_user_ids = models.JSONField(default=list, blank=True)
    reminder_minutes = models.PositiveIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_at"]
        indexes = [
            models.Index(fields=["family", "start_at"], name="event_family_start_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.start_at:%Y-%m-%d %H:%M})"

    def as_snapshot(self):
        return {
            "title": self.title,
            "startAt": self.start_at.isoformat() if self.start_at else None,
            "endAt": self.end_at.isoformat() if self.end_at else None,
            "parentRole": self.parent_role,
            "isAllDay": self.is_all_day,
            "targetUserIds": list(self.target_user_ids or []),
            "reminderMinutes": self.reminder_minutes,
        }


class CustodySchedule(models.Model):
    """The family's custody template (at most one per family).

    A change proposed by one parent is parked in pending_approval until the
    other parent approves or declines it. Only the appearance and the
    disappearance of pending_approval are notified.
    """

    class Pattern(models.TextChoices):
        WEEKLY = "weekly", "Weekly"
        BIWEEKLY = "biweekly", "Every two weeks"
        WEEK_ON_WEEK_OFF = "week_on_week_off", "Week on / week off"
        CUSTOM = "custom", "Custom"

    family = models.OneToOneField(
        Family,
        on_delete=models.CASCADE,
        related_name="custody_schedule",
    )
    name = models.CharField(max_length=100, blank=True)
    pattern = models.CharField(
        max_length=20,
        choices=Pattern.choices,
        default=Pattern.WEEKLY,
    )
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    parent1_days = models.JSONField(default=list, blank=True)
    parent2_days = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=False)
    pending_approval = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Custody schedule for {self.family}"

    def request_approval(self, requested_by, **schedule):
        """Park a proposed schedule until the other parent answers."""
        start_date = schedule.get("start_date")
        self.pending_approval = {
            "name": schedule.get("name", ""),
            "pattern": schedule.get("pattern", self.Pattern.WEEKLY),
            "startDate": start_date.isoformat() if start_date else None,
            "parent1Days": list(schedule.get("parent1_days", [])),
            "parent2Days": list(schedule.get("parent2_days", [])),
            "requestedBy": requested_by.pk if requested_by else None,
            "requestedByName": requested_by.display_name if requested_by else None,
            "requestedAt": timezone.now().isoformat(),
        }
        self.save()

    def resolve_approval(self, approve):
        """Apply (approve=True) or discard the pending proposal."""
        pending = self.pending_approval
        if not pending:
            return False
        if approve:
            self.name = pending.get("name") or self.name
            self.pattern = pending.get("pattern") or self.pattern
            if pending.get("startDate"):
                self.start_date = date.fromisoformat(pending["startDate"][:10])
            self.parent1_days = pending.get("parent1Days", [])
            self.parent2_days = pending.get("parent2Days", [])
            self.is_active = True
        self.pending_approval = None
        self.save()
        return True

    def as_snapshot(self):
        return {
            "name": self.name,
            "isActive": self.is_active,
            "pendingApproval": self.pending_approval,
        }
