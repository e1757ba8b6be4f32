"""
Fleet lifecycle state machine.

    scheduled ──> reminder_sent ──> forming_up
        │               │               │
        └───────────────┴───────────────┴──> cancelled

reminder_sent is skipped when the category has no reminder lead or the fleet
disabled its reminder. "Expired" is never stored: a fleet more than an hour
past form-up is simply treated as inert.

Nothing in here touches Discord or the database.
"""

from datetime import datetime, timedelta

from core.enums import FleetStatus

from .errors import InvariantViolation
from .policy import CategoryPolicy
from .types import Fleet

FLEET_EXPIRY = timedelta(hours=1)

_ORDER = {
    FleetStatus.scheduled: 0,
    FleetStatus.reminder_sent: 1,
    FleetStatus.forming_up: 2,
}


def is_expired(fleet: Fleet, now: datetime) -> bool:
    """Cancelled fleets are never "expired", they're cancelled."""
    return not fleet.cancelled and now - fleet.form_up_time > FLEET_EXPIRY


def is_terminal(fleet: Fleet, now: datetime) -> bool:
    """No further transitions can happen to this fleet."""
    return fleet.cancelled or is_expired(fleet, now)


def reminder_applies(fleet: Fleet, policy: CategoryPolicy) -> bool:
    return policy.reminder_lead is not None and not fleet.disable_reminder


def reminder_time(fleet: Fleet, policy: CategoryPolicy) -> datetime | None:
    if not reminder_applies(fleet, policy):
        return None
    return fleet.form_up_time - policy.reminder_lead


def announcement_time(fleet: Fleet, policy: CategoryPolicy) -> datetime | None:
    """
    When the fleet first becomes public.

    Visible fleets are announced on creation (None). Hidden fleets are
    announced by their reminder, or by form-up when there is no reminder.
    """
    if not fleet.hidden:
        return None
    return reminder_time(fleet, policy) or fleet.form_up_time


def is_announced(fleet: Fleet, policy: CategoryPolicy, now: datetime) -> bool:
    announce_at = announcement_time(fleet, policy)
    return announce_at is None or now >= announce_at


def due_transition(
    fleet: Fleet, policy: CategoryPolicy, now: datetime
) -> FleetStatus | None:
    """
    The transition that should fire at `now`, if any.

    Only the furthest due transition is returned: a fleet whose form-up has
    already arrived goes straight to forming_up even if its reminder never fired.
    """
    if is_terminal(fleet, now):
        return None

    if fleet.status != FleetStatus.forming_up and now >= fleet.form_up_time:
        return FleetStatus.forming_up

    remind_at = reminder_time(fleet, policy)
    if (
        fleet.status == FleetStatus.scheduled
        and remind_at is not None
        and now >= remind_at
    ):
        return FleetStatus.reminder_sent

    return None


def transition(fleet: Fleet, target: FleetStatus) -> None:
    """
    Commit a transition on the fleet.

    Raises:
        InvariantViolation: If the transition is not legal. The fleet is left untouched.
    """
    current = fleet.status
    if current == FleetStatus.cancelled:
        raise InvariantViolation(
            f"Fleet {fleet.id} is cancelled and cannot move to {target.value}"
        )
    if target != FleetStatus.cancelled and _ORDER[target] <= _ORDER[current]:
        raise InvariantViolation(
            f"Fleet {fleet.id} cannot move from {current.value} to {target.value}"
        )
    fleet.status = target


def cancel(fleet: Fleet) -> None:
    transition(fleet, FleetStatus.cancelled)


def apply_reschedule(fleet: Fleet, new_time: datetime) -> None:
    """
    Move the fleet's form-up time.

    Status never moves backwards: a sent reminder is not re-sent, and a fleet
    already forming up stays forming up. An unsent reminder just fires at the
    new threshold.
    """
    if fleet.cancelled:
        raise InvariantViolation(f"Fleet {fleet.id} is cancelled and cannot be rescheduled")
    if new_time == fleet.form_up_time:
        return
    fleet.form_up_time = new_time
    fleet.time_revision += 1
    fleet.content_revision += 1


def apply_details(
    fleet: Fleet, details: dict[str, str] | None = None, name: str | None = None
) -> bool:
    """Edit descriptive fields. Never changes status. Returns True if anything changed."""
    if fleet.cancelled:
        raise InvariantViolation(f"Fleet {fleet.id} is cancelled and cannot be edited")

    changed = False
    if details is not None and details != fleet.details:
        fleet.details = dict(details)
        changed = True
    if name is not None and name != fleet.name:
        fleet.name = name
        changed = True
    if changed:
        fleet.content_revision += 1
    return changed
