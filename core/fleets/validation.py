"""
Overlap validation for proposed fleet times.

Rules, in order:
1. Not further ahead than the category's max advance window.
2. Strictly in the future.
3. At least min_spacing away from every live fleet of the same category.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

from .errors import FleetValidationError
from .policy import CategoryPolicy
from .state import is_expired
from .types import Fleet


class RejectReason(str, enum.Enum):
    too_far_in_advance = "too_far_in_advance"
    in_past = "in_past"
    overlaps = "overlaps"


@dataclass(frozen=True)
class Accept:
    """Proposal accepted. Carries the created/updated fleet when returned by the service."""

    fleet: Fleet | None = None


@dataclass(frozen=True)
class Reject:
    """Proposal rejected. Nothing was created or modified."""

    reason: RejectReason
    message: str
    conflicting_fleet_id: int | None = None


def accepted_fleet(result: Accept | Reject) -> Fleet | None:
    """Unwrap a service result, raising FleetValidationError for a Reject."""
    if isinstance(result, Reject):
        raise FleetValidationError(result)
    return result.fleet


def _format_duration(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def validate_form_up_time(
    policy: CategoryPolicy,
    existing_fleets: list[Fleet],
    proposed: datetime,
    now: datetime,
    exclude_fleet_id: int | None = None,
) -> Accept | Reject:
    """
    Decide whether a fleet may form up at `proposed`.

    Args:
        policy: The category the fleet belongs to
        existing_fleets: Fleets to check spacing against (other categories are ignored)
        proposed: Proposed form-up time
        now: Current time
        exclude_fleet_id: Fleet being rescheduled, so it doesn't conflict with itself

    Returns:
        Accept() or Reject(reason, message, conflicting_fleet_id)
    """
    if policy.max_advance is not None and proposed - now > policy.max_advance:
        return Reject(
            RejectReason.too_far_in_advance,
            f"{policy.name} fleets can be scheduled at most "
            f"{_format_duration(policy.max_advance)} in advance",
        )

    if proposed <= now:
        return Reject(RejectReason.in_past, "Form-up time must be in the future")

    # Zero spacing: concurrent fleets are intentional for this category
    if policy.min_spacing <= timedelta(0):
        return Accept()

    for other in existing_fleets:
        if other.category_id != policy.category_id:
            continue
        if exclude_fleet_id is not None and other.id == exclude_fleet_id:
            continue
        if other.cancelled or is_expired(other, now):
            continue
        if abs(proposed - other.form_up_time) < policy.min_spacing:
            return Reject(
                RejectReason.overlaps,
                f"Too close to {policy.name} fleet '{other.name}' at "
                f"{other.form_up_time:%Y-%m-%d %H:%M} UTC; fleets in this category "
                f"must be at least {_format_duration(policy.min_spacing)} apart",
                conflicting_fleet_id=other.id,
            )

    return Accept()
