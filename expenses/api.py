"""REST API for expenses app: Expense."""

from rest_framework import serializers, viewsets
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from families.api import FamilyScopedMixin
from families.api_permissions import IsFamilyMember

from .models import Expense

# A resolved expense never returns to pending
STATUS_TRANSITIONS = {
    Expense.Status.PENDING: (Expense.Status.APPROVED, Expense.Status.REJECTED),
    Expense.Status.APPROVED: (Expense.Status.PAID,),
    Expense.Status.REJECTED: (),
    Expense.Status.PAID: (),
}


class ExpenseSerializer(serializers.ModelSerializer):
    """Expense serializer (family and author come from the request)."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Expense
        fields = [
            "id",
            "title",
            "description",
            "amount",
            "currency",
            "category",
            "status",
            "status_display",
            "created_by",
            "updated_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "status_display",
            "created_by",
            "updated_by",
            "created_at",
            "updated_at",
        ]

    def validate_status(self, value):
        # New expenses always start pending
        if self.instance is None:
            if value != Expense.Status.PENDING:
                raise serializers.ValidationError("New expenses start as pending.")
            return value
        current = self.instance.status
        if value != current and value not in STATUS_TRANSITIONS.get(current, ()):
            raise serializers.ValidationError(
                f"Cannot change status from {current} to {value}."
            )
        return value


class ExpenseViewSet(FamilyScopedMixin, viewsets.ModelViewSet):
    """ViewSet for Expense CRUD (nested under families).

    Approving or rejecting is a PATCH of `status` by the other parent.
    """

    model = Expense
    serializer_class = ExpenseSerializer
    permission_classes = [IsAuthenticated, IsFamilyMember]

    def perform_create(self, serializer):
        serializer.save(family=self.get_family(), created_by=self.request.user)

    def perform_update(self, serializer):
        new_status = serializer.validated_data.get("status")
        if (
            new_status in (Expense.Status.APPROVED, Expense.Status.REJECTED)
            and new_status != serializer.instance.status
            and serializer.instance.created_by_id == self.request.user.pk
        ):
            raise PermissionDenied("The other parent must approve or reject this expense.")
        serializer.save(updated_by=self.request.user)
