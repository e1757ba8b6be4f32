"""
Fleet service - the operations the bot and the web API call.

Every function takes the store as its first argument (the same way query
functions take a connection), so tests can pass an in-memory store. Nothing
here talks to Discord: creating, rescheduling or cancelling a fleet only
records state, and the dispatcher turns that state into messages on its next
tick.
"""

import logging
from datetime import datetime, timezone

import sentry_sdk

from .errors import CategoryNotFoundError, FleetNotFoundError, InvariantViolation
from .locks import category_lock, fleet_lock
from .policy import CategoryPolicy, viewable_category_ids
from .state import (
    FLEET_EXPIRY,
    apply_details,
    apply_reschedule,
    cancel,
    is_announced,
    is_expired,
    is_terminal,
)
from .types import DestinationState, Fleet
from .validation import Accept, Reject, validate_form_up_time

logger = logging.getLogger(__name__)


async def _get_policy(store, category_id: int) -> CategoryPolicy:
    policy = await store.get_category_policy(category_id)
    if policy is None:
        raise CategoryNotFoundError(category_id)
    return policy


def _violation(message: str) -> InvariantViolation:
    logger.error(f"Refused fleet change: {message}")
    sentry_sdk.capture_message(message, level="error")
    return InvariantViolation(message)


async def _load_mutable(store, fleet_id: int, now: datetime) -> Fleet:
    """Load a fleet that is about to be changed. Terminal fleets can't be."""
    fleet = await store.load_fleet(fleet_id)
    if fleet is None:
        raise FleetNotFoundError(fleet_id)
    if fleet.cancelled:
        raise _violation(f"Fleet {fleet_id} is already cancelled")
    if is_expired(fleet, now):
        raise _violation(f"Fleet {fleet_id} has already expired")
    return fleet


async def get_fleet(store, fleet_id: int) -> Fleet:
    fleet = await store.load_fleet(fleet_id)
    if fleet is None:
        raise FleetNotFoundError(fleet_id)
    return fleet


async def get_policy_for_fleet(store, fleet: Fleet) -> CategoryPolicy:
    return await _get_policy(store, fleet.category_id)


async def propose_fleet(
    store,
    category_id: int,
    form_up_time: datetime,
    details: dict[str, str] | None,
    now: datetime,
    *,
    name: str,
    commander_id: str,
    hidden: bool = False,
    disable_reminder: bool = False,
) -> Accept | Reject:
    """
    Validate and create a fleet.

    The fleet starts as scheduled with its destinations snapshotted from the
    category. Its creation ping goes out on the dispatcher's next tick. A
    fleet forming up within the category's reminder lead gets no reminder.

    Returns:
        Accept(fleet) with the created fleet, or Reject(...) with nothing created

    Raises:
        CategoryNotFoundError: If the category doesn't exist
        PersistenceError: If the fleet could not be stored
    """
    policy = await _get_policy(store, category_id)

    async with category_lock(category_id):
        existing = await store.load_active_fleets(
            category_id=category_id, since=now - FLEET_EXPIRY
        )
        result = validate_form_up_time(policy, existing, form_up_time, now)
        if isinstance(result, Reject):
            logger.info(
                f"Rejected fleet '{name}' in category {category_id}: {result.reason.value}"
            )
            return result

        # The reminder threshold must fall after creation
        if (
            policy.reminder_lead is not None
            and not disable_reminder
            and form_up_time - now <= policy.reminder_lead
        ):
            logger.info(
                f"Fleet '{name}' forms up inside the {policy.name} reminder window, "
                f"no reminder"
            )
            disable_reminder = True

        fleet = Fleet(
            category_id=category_id,
            guild_id=policy.guild_id,
            name=name,
            commander_id=commander_id,
            form_up_time=form_up_time,
            details=dict(details or {}),
            hidden=hidden,
            disable_reminder=disable_reminder,
            destinations={
                channel_id: DestinationState(channel_id=channel_id)
                for channel_id in policy.destinations
            },
        )
        fleet = await store.create_fleet(fleet)

    return Accept(fleet)


async def reschedule_fleet(
    store, fleet_id: int, new_time: datetime, now: datetime
) -> Accept | Reject:
    """
    Move a fleet's form-up time, re-validating against its category.

    Raises:
        FleetNotFoundError: Unknown fleet
        InvariantViolation: Fleet is cancelled or expired
        PersistenceError: Storage failure
    """
    fleet = await get_fleet(store, fleet_id)
    policy = await _get_policy(store, fleet.category_id)

    async with category_lock(fleet.category_id), fleet_lock(fleet_id):
        fleet = await _load_mutable(store, fleet_id, now)
        existing = await store.load_active_fleets(
            category_id=fleet.category_id, since=now - FLEET_EXPIRY
        )
        result = validate_form_up_time(
            policy, existing, new_time, now, exclude_fleet_id=fleet_id
        )
        if isinstance(result, Reject):
            logger.info(f"Rejected reschedule of fleet {fleet_id}: {result.reason.value}")
            return result

        apply_reschedule(fleet, new_time)
        await store.save_fleet(fleet)

    logger.info(f"Rescheduled fleet {fleet_id} to {new_time.isoformat()}")
    return Accept(fleet)


async def edit_fleet_details(
    store,
    fleet_id: int,
    details: dict[str, str] | None = None,
    name: str | None = None,
    now: datetime | None = None,
) -> Fleet:
    """Change a fleet's name and/or details. Status is never affected."""
    now = now or datetime.now(timezone.utc)
    async with fleet_lock(fleet_id):
        fleet = await _load_mutable(store, fleet_id, now)
        if apply_details(fleet, details=details, name=name):
            await store.save_fleet(fleet)
            logger.info(f"Edited fleet {fleet_id}")
    return fleet


async def cancel_fleet(store, fleet_id: int, now: datetime | None = None) -> Fleet:
    """
    Cancel a fleet. The dispatcher edits posted messages and sends the notice.

    Raises:
        FleetNotFoundError: Unknown fleet
        InvariantViolation: Fleet is already cancelled or expired
    """
    now = now or datetime.now(timezone.utc)
    async with fleet_lock(fleet_id):
        fleet = await _load_mutable(store, fleet_id, now)
        cancel(fleet)
        await store.save_fleet(fleet)
    logger.info(f"Cancelled fleet {fleet_id}")
    return fleet


async def list_visible_fleets(
    store, category_ids: list[int], now: datetime
) -> list[Fleet]:
    """
    Fleets in these categories that should be shown right now.

    Cancelled and expired fleets are left out, as are hidden fleets whose
    announcement time hasn't come yet.
    """
    visible = []
    for category_id in category_ids:
        policy = await store.get_category_policy(category_id)
        if policy is None:
            continue
        for fleet in await store.load_active_fleets(
            category_id=category_id, since=now - FLEET_EXPIRY
        ):
            if is_terminal(fleet, now) or not is_announced(fleet, policy, now):
                continue
            visible.append(fleet)
    visible.sort(key=lambda f: (f.form_up_time, f.id or 0))
    return visible


async def list_fleets_for_member(
    store, guild_id: str, roles: set[str], now: datetime
) -> list[Fleet]:
    """Visible fleets of a guild, limited to the categories the member may view."""
    policies = await store.get_guild_policies(guild_id)
    return await list_visible_fleets(
        store, viewable_category_ids(policies, roles), now
    )
