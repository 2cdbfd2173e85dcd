from django.contrib import admin

from .models import Reminder


@admin.register(Reminder)
class ReminderAdmin(admin.ModelAdmin):
    list_display = ["title", "family", "event", "send_at", "sent", "sent_at"]
    list_filter = ["sent", "send_at"]
    search_fields = ["title", "family__name"]
    readonly_fields = ["created_at", "updated_at", "sent_at"]
    filter_horizontal = ["targets"]
