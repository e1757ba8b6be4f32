"""
Category policy - the per-category rules a fleet is scheduled under.

Policies are read-only for the scheduling engine; configuration management
owns them. All role logic here is pure set arithmetic over role IDs, so it
doesn't care how the identity provider represents members.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from .errors import InvariantViolation


@dataclass(frozen=True)
class CategoryPolicy:
    """Scheduling and notification rules for one fleet category."""

    category_id: int
    guild_id: str
    name: str
    min_spacing: timedelta = timedelta(0)
    max_advance: timedelta | None = None  # None = unlimited
    reminder_lead: timedelta | None = None  # None = no reminder
    viewer_roles: frozenset[str] = field(default_factory=frozenset)
    creator_roles: frozenset[str] = field(default_factory=frozenset)
    manager_roles: frozenset[str] = field(default_factory=frozenset)
    ping_roles: frozenset[str] = field(default_factory=frozenset)
    destinations: tuple[str, ...] = ()

    def __post_init__(self):
        if self.min_spacing < timedelta(0):
            raise InvariantViolation(
                f"Category {self.category_id}: min_spacing must not be negative"
            )
        if self.max_advance is not None and self.max_advance < timedelta(0):
            raise InvariantViolation(
                f"Category {self.category_id}: max_advance must not be negative"
            )
        if self.reminder_lead is not None and self.reminder_lead < timedelta(0):
            raise InvariantViolation(
                f"Category {self.category_id}: reminder_lead must not be negative"
            )

    @property
    def everyone_role(self) -> str:
        """Discord's @everyone role shares its ID with the guild."""
        return self.guild_id

    def pings_everyone(self) -> bool:
        return self.everyone_role in self.ping_roles


def _intersects(allowed: frozenset[str], roles) -> bool:
    return not allowed.isdisjoint(roles)


def can_view(policy: CategoryPolicy, roles: set[str]) -> bool:
    """Empty viewer set means the category is unrestricted."""
    if not policy.viewer_roles:
        return True
    return policy.everyone_role in policy.viewer_roles or _intersects(
        policy.viewer_roles, roles
    )


def can_create(policy: CategoryPolicy, roles: set[str]) -> bool:
    return policy.everyone_role in policy.creator_roles or _intersects(
        policy.creator_roles, roles
    )


def can_manage(
    policy: CategoryPolicy,
    roles: set[str],
    user_id: str | None = None,
    commander_id: str | None = None,
) -> bool:
    """
    Check whether a member may reschedule/edit/cancel a fleet.

    The fleet's commander can always manage their own fleet.
    """
    if user_id is not None and user_id == commander_id:
        return True
    return _intersects(policy.manager_roles, roles)


def viewable_category_ids(policies: list[CategoryPolicy], roles: set[str]) -> list[int]:
    """IDs of the categories a member with these roles may view."""
    return [p.category_id for p in policies if can_view(p, roles)]
