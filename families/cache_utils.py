"""Caching of family membership.

Every notification resolves its audience from the family's member ids, so
the ids are cached per family and dropped whenever membership changes.
"""

import logging

from django.core.cache import cache
from django.db import transaction

logger = logging.getLogger(__name__)

MEMBERS_CACHE_TIMEOUT = 300


def members_cache_key(family_id):
    return f"family_members_{family_id}"


def get_family_member_ids(family_id):
    """Return a family's member ids from cache or database.

    Raises Family.DoesNotExist when there is no such family; misses are not
    cached.
    """
    cache_key = members_cache_key(family_id)
    member_ids = cache.get(cache_key)
    if member_ids is not None:
        logger.debug(f"Cache HIT for family members: {family_id}")
        return member_ids

    from .models import Family

    member_ids = Family.objects.get(pk=family_id).member_ids()
    cache.set(cache_key, member_ids, MEMBERS_CACHE_TIMEOUT)
    logger.debug(
        f"Cache MISS for family members: {family_id}",
        extra={"family_id": family_id, "member_count": len(member_ids)},
    )
    return member_ids


def invalidate_family_members_cache(family_id):
    """Drop the cached member ids of a family.

    The key is deleted right away and again once the surrounding
    transaction commits, so a reader inside the transaction cannot leave
    stale ids behind.
    """
    cache_key = members_cache_key(family_id)

    def clear_cache():
        try:
            cache.delete(cache_key)
        except Exception as e:
            logger.error(
                f"Failed to invalidate family members cache: {e}",
                extra={"family_id": family_id, "cache_key": cache_key, "error": str(e)},
                exc_info=True,
            )

    clear_cache()
    transaction.on_commit(clear_cache)
