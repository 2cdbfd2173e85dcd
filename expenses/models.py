from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from families.models import Family


class Expense(models.Model):
    """A shared child-related expense awaiting the other parent's approval.

    Attributes:
        family (ForeignKey): Owning family
        title (CharField): What was paid for
        amount (DecimalField): Amount in `currency`
        status (CharField): pending -> approved / rejected (or paid)
        created_by (ForeignKey): Parent who logged the expense
        updated_by (ForeignKey): Parent who last changed the status
    """

    class Category(models.TextChoices):
        FOOD = "food", "Food"
        CLOTHING = "clothing", "Clothing"
        MEDICAL = "medical", "Medical"
        EDUCATION = "education", "Education"
        ACTIVITIES = "activities", "Activities"
        TRANSPORTATION = "transportation", "Transportation"
        CHILDCARE = "childcare", "Childcare"
        HOUSEHOLD = "household", "Household"
        TOYS = "toys", "Toys"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        PAID = "paid", "Paid"
        REJECTED = "rejected", "Rejected"

    family = models.ForeignKey(
        Family,
        on_delete=models.CASCADE,
        related_name="expenses",
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    currency = models.CharField(max_length=3, default="ILS")
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.OTHER,
    )
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.title} {self.amount} {self.currency} ({self.get_status_display()})"

    def as_snapshot(self):
        return {
            "title": self.title,
            "amount": str(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "status": self.status,
            "createdBy": self.created_by_id,
            "createdByName": (
                self.created_by.display_name if self.created_by_id else None
            ),
            "updatedBy": self.updated_by_id,
            "updatedByName": (
                self.updated_by.display_name if self.updated_by_id else None
            ),
        }
