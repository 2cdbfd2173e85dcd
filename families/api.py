"""REST API for families and shared plumbing for records nested under
/families/<family_pk>/."""

from django.shortcuts import get_object_or_404
from rest_framework import serializers, viewsets
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated

from .api_permissions import IsFamilyMember
from .models import Family


class FamilyScopedMixin:
    """ViewSet mixin that resolves and authorizes the family from the URL.

    Subclasses set `model` and get a queryset restricted to that family.
    """

    model = None

    def get_family(self):
        if not hasattr(self, "_family"):
            family = get_object_or_404(Family, pk=self.kwargs["family_pk"])
            if not family.has_member(self.request.user):
                raise PermissionDenied("You are not a member of this family.")
            self._family = family
        return self._family

    def get_queryset(self):
        return self.model.objects.filter(family=self.get_family())


class FamilySerializer(serializers.ModelSerializer):
    member_ids = serializers.SerializerMethodField()

    class Meta:
        model = Family
        fields = ["id", "name", "member_ids", "created_at", "updated_at"]
        read_only_fields = fields

    def get_member_ids(self, obj):
        return sorted(user.pk for user in obj.members.all())


class FamilyViewSet(viewsets.ReadOnlyModelViewSet):
    """Families the authenticated user belongs to."""

    serializer_class = FamilySerializer
    permission_classes = [IsAuthenticated, IsFamilyMember]

    def get_queryset(self):
        return Family.for_user(self.request.user).prefetch_related("members")
