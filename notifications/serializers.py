"""Serializers for the notifications API."""

from rest_framework import serializers

from .models import Reminder


class ReminderSerializer(serializers.ModelSerializer):
    """Read-only view of a scheduled calendar-event reminder."""

    event_id = serializers.IntegerField(read_only=True)
    target_ids = serializers.SerializerMethodField()

    class Meta:
        model = Reminder
        fields = [
            "id",
            "event_id",
            "title",
            "start_at",
            "send_at",
            "sent",
            "sent_at",
            "target_ids",
        ]
        read_only_fields = fields

    def get_target_ids(self, obj):
        return sorted(user.pk for user in obj.targets.all())
