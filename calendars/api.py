"""REST API for calendars app: CalendarEvent and CustodySchedule."""

from django.db import transaction
from rest_framework import serializers, status, viewsets
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from families.api import FamilyScopedMixin
from families.api_permissions import IsFamilyMember

from .models import CalendarEvent, CustodySchedule


class CalendarEventSerializer(serializers.ModelSerializer):
    """CalendarEvent serializer (family comes from the URL)."""

    target_user_ids = serializers.ListField(
        child=serializers.IntegerField(), required=False
    )

    class Meta:
        model = CalendarEvent
        fields = [
            "id",
            "title",
            "description",
            "start_at",
            "end_at",
            "event_type",
            "parent_role",
            "is_all_day",
            "location",
            "target_user_ids",
            "reminder_minutes",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_by", "created_at", "updated_at"]

    def validate_target_user_ids(self, value):
        family = self.context["family"]
        member_ids = set(family.member_ids())
        unknown = [uid for uid in value if uid not in member_ids]
        if unknown:
            raise serializers.ValidationError(
                f"Not members of this family: {sorted(set(unknown))}"
            )
        return list(dict.fromkeys(value))

    def validate(self, attrs):
        start_at = attrs.get("start_at", getattr(self.instance, "start_at", None))
        end_at = attrs.get("end_at", getattr(self.instance, "end_at", None))
        if start_at and end_at and end_at < start_at:
            raise serializers.ValidationError({"end_at": "End must not precede start."})
        return attrs


class CalendarEventViewSet(FamilyScopedMixin, viewsets.ModelViewSet):
    """ViewSet for CalendarEvent CRUD (nested under families)."""

    model = CalendarEvent
    serializer_class = CalendarEventSerializer
    permission_classes = [IsAuthenticated, IsFamilyMember]

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if "family_pk" in self.kwargs:
            context["family"] = self.get_family()
        return context

    def perform_create(self, serializer):
        serializer.save(family=self.get_family(), created_by=self.request.user)


class CustodyScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustodySchedule
        fields = [
            "name",
            "pattern",
            "start_date",
            "end_date",
            "parent1_days",
            "parent2_days",
            "is_active",
            "pending_approval",
            "updated_at",
        ]
        read_only_fields = ["is_active", "pending_approval", "updated_at"]


class WeekdayListField(serializers.ListField):
    child = serializers.IntegerField(min_value=0, max_value=6)


class ApprovalRequestSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    pattern = serializers.ChoiceField(choices=CustodySchedule.Pattern.choices)
    start_date = serializers.DateField()
    parent1_days = WeekdayListField()
    parent2_days = WeekdayListField()


class CustodyScheduleUpdateSerializer(serializers.ModelSerializer):
    """Fields either parent may edit directly; the rest go through approval."""

    class Meta:
        model = CustodySchedule
        fields = ["name", "end_date"]


class ApprovalResponseSerializer(serializers.Serializer):
    approve = serializers.BooleanField()


class CustodyScheduleView(FamilyScopedMixin, APIView):
    """Custody schedule of a family.

    GET  /api/v1/families/{family_pk}/custody-schedule/                  - Current schedule
    PUT  /api/v1/families/{family_pk}/custody-schedule/                  - Rename or set end date
    POST /api/v1/families/{family_pk}/custody-schedule/request-approval/ - Propose a change
    POST /api/v1/families/{family_pk}/custody-schedule/resolve-approval/ - Approve or decline
    """

    model = CustodySchedule
    permission_classes = [IsAuthenticated]
    action = None

    def get_schedule(self):
        schedule, _ = CustodySchedule.objects.get_or_create(family=self.get_family())
        return schedule

    def get(self, request, family_pk):
        return Response(CustodyScheduleSerializer(self.get_schedule()).data)

    def put(self, request, family_pk):
        if self.action is not None:
            return Response(status=status.HTTP_405_METHOD_NOT_ALLOWED)
        schedule = self.get_schedule()
        serializer = CustodyScheduleUpdateSerializer(
            schedule, data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(CustodyScheduleSerializer(schedule).data)

    def post(self, request, family_pk):
        if self.action == "request-approval":
            return self._request_approval(request)
        if self.action == "resolve-approval":
            return self._resolve_approval(request)
        return Response(status=status.HTTP_405_METHOD_NOT_ALLOWED)

    def _request_approval(self, request):
        serializer = ApprovalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            schedule = self.get_schedule()
            schedule = CustodySchedule.objects.select_for_update().get(pk=schedule.pk)
            if schedule.pending_approval:
                return Response(
                    {"detail": "A custody schedule request is already pending."},
                    status=status.HTTP_409_CONFLICT,
                )
            schedule.request_approval(request.user, **serializer.validated_data)
        return Response(
            CustodyScheduleSerializer(schedule).data, status=status.HTTP_201_CREATED
        )

    def _resolve_approval(self, request):
        serializer = ApprovalResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        approve = serializer.validated_data["approve"]
        with transaction.atomic():
            schedule = self.get_schedule()
            schedule = CustodySchedule.objects.select_for_update().get(pk=schedule.pk)
            pending = schedule.pending_approval
            if not pending:
                return Response(
                    {"detail": "There is no pending custody schedule request."},
                    status=status.HTTP_409_CONFLICT,
                )
            if approve and pending.get("requestedBy") == request.user.pk:
                raise PermissionDenied("The other parent must approve this request.")
            schedule.resolve_approval(approve)
        return Response(CustodyScheduleSerializer(schedule).data)
