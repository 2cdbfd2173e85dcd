from django.contrib import admin

from .models import SwapRequest


@admin.register(SwapRequest)
class SwapRequestAdmin(admin.ModelAdmin):
    list_display = ["family", "requested_by", "requested_to", "original_date", "status"]
    list_filter = ["status", "request_type", "created_at"]
    search_fields = ["requested_by__email", "requested_to__email", "reason"]
    date_hierarchy = "original_date"
