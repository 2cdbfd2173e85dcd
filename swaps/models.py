from django.conf import settings
from django.db import models

from families.models import Family


class SwapRequest(models.Model):
    """A request by one parent to swap (or hand over) a custody day.

    Attributes:
        family (ForeignKey): Owning family
        requested_by (ForeignKey): Parent asking for the swap
        requested_to (ForeignKey): Parent who must answer (optional)
        original_date (DateTimeField): The custody day being given up
        proposed_date (DateTimeField): Day offered in exchange (null for one-way)
        status (CharField): pending -> approved / rejected / cancelled
    """

    class RequestType(models.TextChoices):
        SWAP = "swap", "Swap"
        ONE_WAY = "one-way", "One-way"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"

    family = models.ForeignKey(
        Family,
        on_delete=models.CASCADE,
        related_name="swap_requests",
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    requested_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    original_date = models.DateTimeField()
    proposed_date = models.DateTimeField(null=True, blank=True)
    request_type = models.CharField(
        max_length=10,
        choices=RequestType.choices,
        default=RequestType.SWAP,
    )
    reason = models.TextField(blank=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    response_note = models.TextField(blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Swap {self.original_date:%Y-%m-%d} ({self.get_status_display()})"

    def as_snapshot(self):
        return {
            "status": self.status,
            "requestedBy": self.requested_by_id,
            "requestedByName": (
                self.requested_by.display_name if self.requested_by_id else None
            ),
            "requestedTo": self.requested_to_id,
            "requestedToName": (
                self.requested_to.display_name if self.requested_to_id else None
            ),
            "originalDate": (
                self.original_date.isoformat() if self.original_date else None
            ),
            "proposedDate": (
                self.proposed_date.isoformat() if self.proposed_date else None
            ),
        }
