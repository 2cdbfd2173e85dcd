"""DRF permission classes for family access control.

These wrap Family.has_member(user) to provide consistent authorization
for every family-scoped record (calendar events, swaps, expenses,
custody schedule, reminders).
"""

from typing import Any

from rest_framework.permissions import BasePermission

from .models import Family


class IsFamilyMember(BasePermission):
    """Permission: user is a member of the family that owns the object.

    List and create checks happen in FamilyScopedMixin, which resolves the
    family from the URL.
    """

    message = "You are not a member of this family."

    def has_permission(self, request: Any, view: Any) -> bool:
        return True

    def has_object_permission(self, request: Any, view: Any, obj: Any) -> bool:
        family = self._get_family(obj)
        if family is None:
            return False
        return family.has_member(request.user)

    def _get_family(self, obj: Any) -> Family | None:
        """Extract Family from object (handles Family and family-owned records)."""
        if isinstance(obj, Family):
            return obj
        if hasattr(obj, "family"):
            return obj.family
        return None
