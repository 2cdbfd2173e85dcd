"""API URL configuration for the co-parenting backend.

All API endpoints are prefixed with /api/v1/.
"""

from django.urls import include, path
from rest_framework.authtoken.views import obtain_auth_token
from rest_framework.routers import DefaultRouter

from accounts.api import PushDeviceView, UserProfileView
from calendars.api import CalendarEventViewSet, CustodyScheduleView
from expenses.api import ExpenseViewSet
from families.api import FamilyViewSet
from notifications.views import ReminderViewSet
from swaps.api import SwapRequestViewSet

LIST_ACTIONS = {"get": "list", "post": "create"}
DETAIL_ACTIONS = {
    "get": "retrieve",
    "put": "update",
    "patch": "partial_update",
    "delete": "destroy",
}

# Main router for top-level resources
router = DefaultRouter()
router.register("families", FamilyViewSet, basename="family")

# Family records are mounted as nested routes under families
urlpatterns = [
    # Account management
    path(
        "account/profile/",
        UserProfileView.as_view(),
        name="account-profile",
    ),
    path(
        "account/push-devices/",
        PushDeviceView.as_view(),
        name="account-push-devices",
    ),
    path("account/token/", obtain_auth_token, name="account-token"),
    # DRF browsable API login (for browser testing)
    path("api-auth/", include("rest_framework.urls")),
    # Main router (families)
    path("", include(router.urls)),
    # Calendar events
    path(
        "families/<int:family_pk>/events/",
        CalendarEventViewSet.as_view(LIST_ACTIONS),
        name="family-events-list",
    ),
    path(
        "families/<int:family_pk>/events/<int:pk>/",
        CalendarEventViewSet.as_view(DETAIL_ACTIONS),
        name="family-events-detail",
    ),
    # Swap requests
    path(
        "families/<int:family_pk>/swap-requests/",
        SwapRequestViewSet.as_view({"get": "list", "post": "create"}),
        name="family-swaps-list",
    ),
    path(
        "families/<int:family_pk>/swap-requests/<int:pk>/",
        SwapRequestViewSet.as_view({"get": "retrieve", "patch": "partial_update"}),
        name="family-swaps-detail",
    ),
    path(
        "families/<int:family_pk>/swap-requests/<int:pk>/respond/",
        SwapRequestViewSet.as_view({"post": "respond"}),
        name="family-swaps-respond",
    ),
    path(
        "families/<int:family_pk>/swap-requests/<int:pk>/cancel/",
        SwapRequestViewSet.as_view({"post": "cancel"}),
        name="family-swaps-cancel",
    ),
    # Expenses
    path(
        "families/<int:family_pk>/expenses/",
        ExpenseViewSet.as_view(LIST_ACTIONS),
        name="family-expenses-list",
    ),
    path(
        "families/<int:family_pk>/expenses/<int:pk>/",
        ExpenseViewSet.as_view(DETAIL_ACTIONS),
        name="family-expenses-detail",
    ),
    # Custody schedule and its approval workflow
    path(
        "families/<int:family_pk>/custody-schedule/",
        CustodyScheduleView.as_view(),
        name="family-custody-schedule",
    ),
    path(
        "families/<int:family_pk>/custody-schedule/request-approval/",
        CustodyScheduleView.as_view(action="request-approval"),
        name="family-custody-request-approval",
    ),
    path(
        "families/<int:family_pk>/custody-schedule/resolve-approval/",
        CustodyScheduleView.as_view(action="resolve-approval"),
        name="family-custody-resolve-approval",
    ),
    # Reminders (read-only)
    path(
        "families/<int:family_pk>/reminders/",
        ReminderViewSet.as_view({"get": "list"}),
        name="family-reminders-list",
    ),
    path(
        "families/<int:family_pk>/reminders/<int:pk>/",
        ReminderViewSet.as_view({"get": "retrieve"}),
        name="family-reminders-detail",
    ),
]
