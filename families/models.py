"""Family model: the group of co-parents sharing calendar, expense and
custody data. Membership drives every notification audience."""

from django.conf import settings
from django.db import models


class Family(models.Model):
    """A co-parenting family.

    Members are ordinary users. The lexicographically smallest member
    identifier is treated as "parent1" and the next one as "parent2" when
    calendar events are addressed by role (see notifications.audience).
    """

    name = models.CharField(max_length=100, blank=True)
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="families",
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "families"
        ordering = ["-created_at"]

    def __str__(self):
        return self.name or f"Family #{self.pk}"

    def member_ids(self):
        """Return the de-duplicated member user ids."""
        return list(self.members.values_list("id", flat=True).distinct())

    def has_member(self, user):
        if not user or not user.is_authenticated:
            return False
        return self.members.filter(pk=user.pk).exists()

    @classmethod
    def for_user(cls, user):
        return cls.objects.filter(members=user)
