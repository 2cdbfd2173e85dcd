from django.contrib import admin

from .models import Expense


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ["title", "family", "amount", "currency", "status", "created_at"]
    list_filter = ["status", "category", "created_at"]
    search_fields = ["title", "created_by__email"]
