"""
Fleet timerboard routes.

Endpoints:
- GET /api/guilds/{guild_id}/fleets - Fleets the caller may see
- POST /api/categories/{category_id}/fleets - Schedule a fleet
- PATCH /api/fleets/{fleet_id} - Edit name/details
- POST /api/fleets/{fleet_id}/reschedule - Move form-up time
- POST /api/fleets/{fleet_id}/cancel - Cancel a fleet
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from core.discord_outbound import DiscordRoleDirectory, get_ready_bot
from core.fleets import (
    CategoryNotFoundError,
    CategoryPolicy,
    Fleet,
    FleetNotFoundError,
    FleetStore,
    FleetValidationError,
    InvariantViolation,
    PersistenceError,
    Reject,
    accepted_fleet,
    can_create,
    can_manage,
    cancel_fleet,
    edit_fleet_details,
    get_fleet,
    get_policy_for_fleet,
    list_fleets_for_member,
    propose_fleet,
    reschedule_fleet,
)
from web_api.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["fleets"])

UNAVAILABLE = "Scheduling temporarily unavailable"


# =====================================================
# Dependencies
# =====================================================


def get_fleet_store() -> FleetStore:
    return FleetStore()


def get_role_directory() -> DiscordRoleDirectory:
    """Role lookups go through the bot; without it we can't check permissions."""
    bot = get_ready_bot()
    if bot is None:
        raise HTTPException(503, "Discord bot not connected")
    return DiscordRoleDirectory(bot)


# =====================================================
# Schemas
# =====================================================


class CreateFleetRequest(BaseModel):
    """Schema for scheduling a fleet."""

    name: str
    form_up_time: datetime
    details: dict[str, str] = {}
    hidden: bool = False
    disable_reminder: bool = False


class EditFleetRequest(BaseModel):
    name: str | None = None
    details: dict[str, str] | None = None


class RescheduleFleetRequest(BaseModel):
    form_up_time: datetime


# =====================================================
# Helpers
# =====================================================


def _as_utc(value: datetime) -> datetime:
    """Naive times from the client are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _rejection(result: Reject) -> HTTPException:
    return HTTPException(
        400,
        {
            "reason": result.reason.value,
            "message": result.message,
            "conflicting_fleet_id": result.conflicting_fleet_id,
        },
    )


def _unavailable(e: PersistenceError) -> HTTPException:
    logger.error(f"Fleet storage failure: {e}")
    return HTTPException(503, UNAVAILABLE)


async def _require_manage(
    store, directory, fleet_id: int, user_id: str
) -> tuple[Fleet, CategoryPolicy]:
    try:
        fleet = await get_fleet(store, fleet_id)
        policy = await get_policy_for_fleet(store, fleet)
    except (FleetNotFoundError, CategoryNotFoundError) as e:
        raise HTTPException(404, str(e))
    except PersistenceError as e:
        raise _unavailable(e)

    roles = await directory.roles_of(policy.guild_id, user_id)
    if not can_manage(policy, roles, user_id=user_id, commander_id=fleet.commander_id):
        if not await directory.is_admin(policy.guild_id, user_id):
            raise HTTPException(403, "You can't manage this fleet")
    return fleet, policy


# =====================================================
# Routes
# =====================================================


@router.get("/guilds/{guild_id}/fleets")
async def list_guild_fleets(
    guild_id: str,
    user: dict = Depends(get_current_user),
    store: FleetStore = Depends(get_fleet_store),
    directory: DiscordRoleDirectory = Depends(get_role_directory),
) -> dict[str, Any]:
    """Upcoming fleets of a guild in categories the caller can view."""
    roles = await directory.roles_of(guild_id, user["sub"])
    try:
        fleets = await list_fleets_for_member(
            store, guild_id, roles, datetime.now(timezone.utc)
        )
    except PersistenceError as e:
        raise _unavailable(e)
    return {"fleets": [fleet.to_dict() for fleet in fleets]}


@router.post("/categories/{category_id}/fleets", status_code=201)
async def create_fleet(
    category_id: int,
    request: CreateFleetRequest,
    user: dict = Depends(get_current_user),
    store: FleetStore = Depends(get_fleet_store),
    directory: DiscordRoleDirectory = Depends(get_role_directory),
) -> dict[str, Any]:
    """
    Schedule a fleet in a category.

    Returns 400 with the rejection reason when the time is not allowed.
    """
    user_id = user["sub"]
    try:
        policy = await store.get_category_policy(category_id)
    except PersistenceError as e:
        raise _unavailable(e)
    if policy is None:
        raise HTTPException(404, "Category not found")

    roles = await directory.roles_of(policy.guild_id, user_id)
    if not can_create(policy, roles) and not await directory.is_admin(
        policy.guild_id, user_id
    ):
        raise HTTPException(403, "You can't schedule fleets in this category")

    try:
        result = await propose_fleet(
            store,
            category_id,
            _as_utc(request.form_up_time),
            request.details,
            datetime.now(timezone.utc),
            name=request.name,
            commander_id=user_id,
            hidden=request.hidden,
            disable_reminder=request.disable_reminder,
        )
    except CategoryNotFoundError:
        raise HTTPException(404, "Category not found")
    except PersistenceError as e:
        raise _unavailable(e)

    try:
        fleet = accepted_fleet(result)
    except FleetValidationError as e:
        raise _rejection(e.rejection)
    return {"fleet": fleet.to_dict()}


@router.patch("/fleets/{fleet_id}")
async def edit_fleet(
    fleet_id: int,
    request: EditFleetRequest,
    user: dict = Depends(get_current_user),
    store: FleetStore = Depends(get_fleet_store),
    directory: DiscordRoleDirectory = Depends(get_role_directory),
) -> dict[str, Any]:
    await _require_manage(store, directory, fleet_id, user["sub"])
    try:
        fleet = await edit_fleet_details(
            store, fleet_id, details=request.details, name=request.name
        )
    except FleetNotFoundError as e:
        raise HTTPException(404, str(e))
    except InvariantViolation as e:
        raise HTTPException(409, str(e))
    except PersistenceError as e:
        raise _unavailable(e)
    return {"fleet": fleet.to_dict()}


@router.post("/fleets/{fleet_id}/reschedule")
async def reschedule(
    fleet_id: int,
    request: RescheduleFleetRequest,
    user: dict = Depends(get_current_user),
    store: FleetStore = Depends(get_fleet_store),
    directory: DiscordRoleDirectory = Depends(get_role_directory),
) -> dict[str, Any]:
    await _require_manage(store, directory, fleet_id, user["sub"])
    try:
        result = await reschedule_fleet(
            store,
            fleet_id,
            _as_utc(request.form_up_time),
            datetime.now(timezone.utc),
        )
    except FleetNotFoundError as e:
        raise HTTPException(404, str(e))
    except InvariantViolation as e:
        raise HTTPException(409, str(e))
    except PersistenceError as e:
        raise _unavailable(e)

    try:
        fleet = accepted_fleet(result)
    except FleetValidationError as e:
        raise _rejection(e.rejection)
    return {"fleet": fleet.to_dict()}


@router.post("/fleets/{fleet_id}/cancel")
async def cancel(
    fleet_id: int,
    user: dict = Depends(get_current_user),
    store: FleetStore = Depends(get_fleet_store),
    directory: DiscordRoleDirectory = Depends(get_role_directory),
) -> dict[str, Any]:
    await _require_manage(store, directory, fleet_id, user["sub"])
    try:
        fleet = await cancel_fleet(store, fleet_id)
    except FleetNotFoundError as e:
        raise HTTPException(404, str(e))
    except InvariantViolation as e:
        raise HTTPException(409, str(e))
    except PersistenceError as e:
        raise _unavailable(e)
    return {"fleet": fleet.to_dict()}
