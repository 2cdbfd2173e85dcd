"""Audience resolution: which family members receive a notification.

Role tags on calendar events ("parent1", "parent2", "both") map onto
members by a deterministic rule: member ids are de-duplicated and sorted,
the first one is parent1 and the second one is parent2. Ids are compared as
strings (lexicographic order), not numerically. "parent-primary" and
"parent-secondary" are accepted as aliases of parent1 and parent2. The rule must not
change; role labels shown in the apps depend on it.
"""

import logging

from django.db import DatabaseError

logger = logging.getLogger(__name__)

ROLE_BOTH = "both"
ROLE_PARENT1 = "parent1"
ROLE_PARENT2 = "parent2"
ROLE_ALIASES = {
    "parent-primary": ROLE_PARENT1,
    "parent-secondary": ROLE_PARENT2,
}


def _unique(ids):
    """De-duplicate ids, dropping empty values, keeping first-seen order."""
    seen = []
    for uid in ids or []:
        if uid in (None, "") or uid in seen:
            continue
        seen.append(uid)
    return seen


def get_family_members(family_id):
    """Return the de-duplicated member ids of a family.

    A missing or unreadable family resolves to an empty list; callers treat
    an empty audience as "nothing to do".
    """
    from families.cache_utils import get_family_member_ids
    from families.models import Family

    try:
        return _unique(get_family_member_ids(family_id))
    except Family.DoesNotExist:
        logger.warning(
            "Family not found while resolving audience",
            extra={"family_id": family_id},
        )
        return []
    except (DatabaseError, ValueError) as e:
        logger.error(
            f"Failed to read family members: {e}",
            extra={"family_id": family_id, "error": str(e)},
            exc_info=True,
        )
        return []


def resolve_audience(members, explicit_targets=None, role_tag=None):
    """Compute the recipients of a calendar-event notification.

    Args:
        members: Member ids of the family
        explicit_targets: Optional explicit recipient ids; wins when non-empty
        role_tag: "both", "parent1" or "parent2"

    Returns:
        List of user ids. Unknown or missing roles fall back to every member.
    """
    explicit = _unique(explicit_targets)
    if explicit:
        return explicit

    ordered = sorted(_unique(members), key=str)
    if not ordered:
        return []

    role_tag = ROLE_ALIASES.get(role_tag, role_tag)

    if role_tag == ROLE_BOTH:
        return ordered
    if role_tag == ROLE_PARENT1:
        return ordered[:1]
    if role_tag == ROLE_PARENT2 and len(ordered) > 1:
        return [ordered[1]]

    return ordered


def resolve_other_parent(members, actor_id):
    """Return the member who is not the actor, for two-parent flows.

    With no actor the first member is returned; with no members, None.
    """
    unique = _unique(members)
    if not unique:
        return None
    if actor_id in (None, ""):
        return unique[0]
    for uid in unique:
        if uid != actor_id:
            return uid
    return None
