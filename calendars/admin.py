from django.contrib import admin

from .models import CalendarEvent, CustodySchedule


@admin.register(CalendarEvent)
class CalendarEventAdmin(admin.ModelAdmin):
    list_display = ["title", "family", "start_at", "parent_role", "reminder_minutes"]
    list_filter = ["event_type", "parent_role", "is_all_day"]
    search_fields = ["title", "family__name"]
    date_hierarchy = "start_at"


@admin.register(CustodySchedule)
class CustodyScheduleAdmin(admin.ModelAdmin):
    list_display = ["family", "name", "pattern", "is_active", "updated_at"]
    list_filter = ["pattern", "is_active"]
