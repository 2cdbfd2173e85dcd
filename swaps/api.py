"""REST API for swaps app: SwapRequest."""

from django.utils import timezone
from rest_framework import serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from families.api import FamilyScopedMixin
from families.api_permissions import IsFamilyMember
from notifications.audience import resolve_other_parent

from .models import SwapRequest


class SwapRequestSerializer(serializers.ModelSerializer):
    """SwapRequest serializer (family and requester come from the request)."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = SwapRequest
        fields = [
            "id",
            "requested_by",
            "requested_to",
            "original_date",
            "proposed_date",
            "request_type",
            "reason",
            "status",
            "status_display",
            "response_note",
            "responded_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "requested_by",
            "status",
            "status_display",
            "response_note",
            "responded_at",
            "created_at",
            "updated_at",
        ]

    def validate_requested_to(self, value):
        family = self.context["family"]
        if value is not None and not family.has_member(value):
            raise serializers.ValidationError("Not a member of this family.")
        return value


class SwapResponseSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[SwapRequest.Status.APPROVED, SwapRequest.Status.REJECTED]
    )
    response_note = serializers.CharField(required=False, allow_blank=True)


class SwapRequestViewSet(FamilyScopedMixin, viewsets.ModelViewSet):
    """ViewSet for swap requests (nested under families).

    POST /api/v1/families/{family_pk}/swap-requests/{id}/respond/ - Approve or reject
    POST /api/v1/families/{family_pk}/swap-requests/{id}/cancel/  - Withdraw
    """

    model = SwapRequest
    serializer_class = SwapRequestSerializer
    permission_classes = [IsAuthenticated, IsFamilyMember]
    http_method_names = ["get", "post", "patch"]

    def get_queryset(self):
        return super().get_queryset().select_related("requested_by", "requested_to")

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if "family_pk" in self.kwargs:
            context["family"] = self.get_family()
        return context

    def perform_create(self, serializer):
        family = self.get_family()
        requested_to = serializer.validated_data.get("requested_to")
        if requested_to is None:
            other_id = resolve_other_parent(family.member_ids(), self.request.user.pk)
            requested_to = family.members.filter(pk=other_id).first()
        serializer.save(
            family=family,
            requested_by=self.request.user,
            requested_to=requested_to,
        )

    def perform_update(self, serializer):
        if serializer.instance.requested_by_id != self.request.user.pk:
            raise PermissionDenied("Only the requester can edit this request.")
        if serializer.instance.status != SwapRequest.Status.PENDING:
            raise PermissionDenied("Only pending requests can be edited.")
        serializer.save()

    @action(detail=True, methods=["post"])
    def respond(self, request, family_pk=None, pk=None):
        """Approve or reject a pending request addressed to the caller."""
        swap = self.get_object()
        if swap.requested_to_id != request.user.pk:
            raise PermissionDenied("Only the addressed parent can respond.")
        if swap.status != SwapRequest.Status.PENDING:
            return Response(
                {"detail": "This request has already been handled."},
                status=status.HTTP_409_CONFLICT,
            )
        serializer = SwapResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        swap.status = serializer.validated_data["status"]
        swap.response_note = serializer.validated_data.get("response_note", "")
        swap.responded_at = timezone.now()
        swap.save()
        return Response(self.get_serializer(swap).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, family_pk=None, pk=None):
        """Withdraw a pending request (requester only)."""
        swap = self.get_object()
        if swap.requested_by_id != request.user.pk:
            raise PermissionDenied("Only the requester can cancel this request.")
        if swap.status != SwapRequest.Status.PENDING:
            return Response(
                {"detail": "This request has already been handled."},
                status=status.HTTP_409_CONFLICT,
            )
        swap.status = SwapRequest.Status.CANCELLED
        swap.save()
        return Response(self.get_serializer(swap).data)
