from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import CustomUser, PushDevice


class PushDeviceInline(admin.TabularInline):
    model = PushDevice
    extra = 0
    readonly_fields = ["created_at"]


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ["username", "email", "first_name", "timezone", "is_staff"]
    fieldsets = UserAdmin.fieldsets + (("Preferences", {"fields": ("timezone",)}),)
    inlines = [PushDeviceInline]


@admin.register(PushDevice)
class PushDeviceAdmin(admin.ModelAdmin):
    list_display = ["user", "platform", "token", "created_at"]
    list_filter = ["platform"]
    search_fields = ["user__email", "user__username", "token"]
