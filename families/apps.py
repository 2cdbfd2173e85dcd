from django.apps import AppConfig


class FamiliesConfig(AppConfig):
    name = "families"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        """Register signal handlers for membership cache invalidation."""
        from django.db.models.signals import m2m_changed, post_delete, post_save

        from .cache_utils import invalidate_family_members_cache
        from .models import Family

        def invalidate_on_family_change(sender, instance, **kwargs):
            invalidate_family_members_cache(instance.pk)

        def invalidate_on_membership_change(sender, instance, action, reverse, pk_set, **kwargs):
            if action not in ("post_add", "post_remove", "post_clear", "pre_clear"):
                return
            if not reverse:
                invalidate_family_members_cache(instance.pk)
                return
            # user.families.add/remove/clear: instance is the user
            if action == "pre_clear":
                family_ids = list(instance.families.values_list("pk", flat=True))
            else:
                family_ids = pk_set or []
            for family_id in family_ids:
                invalidate_family_members_cache(family_id)

        post_save.connect(
            invalidate_on_family_change,
            sender=Family,
            dispatch_uid="invalidate_family_members_save",
            weak=False,
        )
        post_delete.connect(
            invalidate_on_family_change,
            sender=Family,
            dispatch_uid="invalidate_family_members_delete",
            weak=False,
        )
        m2m_changed.connect(
            invalidate_on_membership_change,
            sender=Family.members.through,
            dispatch_uid="invalidate_family_members_m2m",
            weak=False,
        )
