"""API views for the notifications system."""

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from families.api import FamilyScopedMixin

from .models import Reminder
from .serializers import ReminderSerializer


class ReminderViewSet(FamilyScopedMixin, viewsets.ReadOnlyModelViewSet):
    """ViewSet for a family's calendar-event reminders.

    GET /api/v1/families/{family_pk}/reminders/          - List reminders
    GET /api/v1/families/{family_pk}/reminders/?pending=1 - Unsent only
    GET /api/v1/families/{family_pk}/reminders/{id}/     - Reminder detail
    """

    model = Reminder
    serializer_class = ReminderSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = super().get_queryset().prefetch_related("targets").order_by("send_at")
        if self.request.query_params.get("pending") in ("1", "true"):
            queryset = queryset.filter(sent=False)
        return queryset
