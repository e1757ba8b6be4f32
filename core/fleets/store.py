"""
PostgreSQL-backed store for categories, fleets and their notification state.

This is the persistence collaborator of the scheduling engine. Every method
opens its own connection/transaction and converts database failures into
PersistenceError, so callers never guess at fleet state after a failed write.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from core.database import get_connection, get_transaction
from core.enums import CategoryRoleKind, DeliveryStatus, FleetStatus, NotificationKind
from core.queries import fleets as queries

from .errors import PersistenceError, StaleFleetError
from .policy import CategoryPolicy
from .state import FLEET_EXPIRY
from .types import Delivery, DestinationState, Fleet

logger = logging.getLogger(__name__)


def _seconds(value: int | None) -> timedelta | None:
    return timedelta(seconds=value) if value is not None else None


def policy_from_rows(
    category: dict, role_rows: list[dict], channel_rows: list[dict]
) -> CategoryPolicy:
    """Build a CategoryPolicy from a category row plus its role and channel rows."""
    roles: dict[CategoryRoleKind, set[str]] = {kind: set() for kind in CategoryRoleKind}
    for row in role_rows:
        roles[CategoryRoleKind(row["kind"])].add(row["role_id"])

    return CategoryPolicy(
        category_id=category["category_id"],
        guild_id=category["guild_id"],
        name=category["name"],
        min_spacing=_seconds(category["min_spacing_seconds"] or 0),
        max_advance=_seconds(category["max_advance_seconds"]),
        reminder_lead=_seconds(category["reminder_lead_seconds"]),
        viewer_roles=frozenset(roles[CategoryRoleKind.viewer]),
        creator_roles=frozenset(roles[CategoryRoleKind.creator]),
        manager_roles=frozenset(roles[CategoryRoleKind.manager]),
        ping_roles=frozenset(roles[CategoryRoleKind.ping]),
        destinations=tuple(row["channel_id"] for row in channel_rows),
    )


def fleet_from_rows(row: dict, message_rows: list[dict]) -> Fleet:
    """Build a Fleet (with notification state) from its row and message rows."""
    fleet = Fleet(
        id=row["fleet_id"],
        category_id=row["category_id"],
        guild_id=row["guild_id"],
        name=row["name"],
        commander_id=row["commander_id"],
        form_up_time=row["form_up_time"],
        status=FleetStatus(row["status"]),
        details=dict(row["details"] or {}),
        hidden=row["hidden"],
        disable_reminder=row["disable_reminder"],
        content_revision=row["content_revision"],
        time_revision=row["time_revision"],
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
    for channel_id in row["destination_channel_ids"] or []:
        fleet.destinations[channel_id] = DestinationState(channel_id=channel_id)

    for message in message_rows:
        destination = fleet.destinations.setdefault(
            message["channel_id"], DestinationState(channel_id=message["channel_id"])
        )
        destination.add(
            Delivery(
                kind=NotificationKind(message["kind"]),
                status=DeliveryStatus(message["status"]),
                message_id=message["message_id"],
                revision=message["revision"],
                time_revision=message["time_revision"],
                attempts=message["attempts"],
                next_attempt_at=message["next_attempt_at"],
                last_error=message["last_error"],
            )
        )
    return fleet


def _fleet_values(fleet: Fleet) -> dict:
    return {
        "category_id": fleet.category_id,
        "guild_id": fleet.guild_id,
        "name": fleet.name,
        "commander_id": fleet.commander_id,
        "form_up_time": fleet.form_up_time,
        "status": fleet.status,
        "details": fleet.details,
        "hidden": fleet.hidden,
        "disable_reminder": fleet.disable_reminder,
        "destination_channel_ids": list(fleet.destinations),
        "content_revision": fleet.content_revision,
        "time_revision": fleet.time_revision,
    }


def _message_rows(fleet: Fleet) -> list[dict]:
    return [
        {
            "channel_id": destination.channel_id,
            "kind": delivery.kind,
            "status": delivery.status,
            "message_id": delivery.message_id,
            "revision": delivery.revision,
            "time_revision": delivery.time_revision,
            "attempts": delivery.attempts,
            "next_attempt_at": delivery.next_attempt_at,
            "last_error": delivery.last_error,
        }
        for destination in fleet.destinations.values()
        for delivery in destination.deliveries.values()
    ]


class FleetStore:
    """Persistence for the scheduling engine."""

    async def get_category_policy(self, category_id: int) -> CategoryPolicy | None:
        try:
            async with get_connection() as conn:
                category = await queries.get_category(conn, category_id)
                if not category:
                    return None
                roles = await queries.get_category_roles(conn, [category_id])
                channels = await queries.get_category_channels(conn, [category_id])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load category {category_id}: {e}") from e
        return policy_from_rows(category, roles, channels)

    async def get_guild_policies(self, guild_id: str) -> list[CategoryPolicy]:
        try:
            async with get_connection() as conn:
                categories = await queries.get_categories_for_guild(conn, guild_id)
                ids = [c["category_id"] for c in categories]
                roles = await queries.get_category_roles(conn, ids)
                channels = await queries.get_category_channels(conn, ids)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to load categories for guild {guild_id}: {e}"
            ) from e

        return [
            policy_from_rows(
                category,
                [r for r in roles if r["category_id"] == category["category_id"]],
                [c for c in channels if c["category_id"] == category["category_id"]],
            )
            for category in categories
        ]

    async def load_fleet(self, fleet_id: int) -> Fleet | None:
        try:
            async with get_connection() as conn:
                row = await queries.get_fleet(conn, fleet_id)
                if not row:
                    return None
                messages = await queries.get_fleet_messages(conn, [fleet_id])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load fleet {fleet_id}: {e}") from e
        return fleet_from_rows(row, messages)

    async def load_active_fleets(
        self,
        category_id: int | None = None,
        guild_id: str | None = None,
        since: datetime | None = None,
        include_cancelled: bool = False,
    ) -> list[Fleet]:
        """
        Load fleets ordered by form-up time.

        Args:
            category_id: Only this category
            guild_id: Only this guild
            since: Only fleets forming up at or after this time
            include_cancelled: Also return cancelled fleets (the dispatcher needs them)
        """
        try:
            async with get_connection() as conn:
                rows = await queries.get_fleets(
                    conn,
                    category_ids=[category_id] if category_id is not None else None,
                    guild_id=guild_id,
                    since=since,
                    include_cancelled=include_cancelled,
                )
                messages = await queries.get_fleet_messages(
                    conn, [row["fleet_id"] for row in rows]
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load fleets: {e}") from e

        by_fleet: dict[int, list[dict]] = {}
        for message in messages:
            by_fleet.setdefault(message["fleet_id"], []).append(message)
        return [fleet_from_rows(row, by_fleet.get(row["fleet_id"], [])) for row in rows]

    async def load_fleets_with_pending_work(self, now: datetime) -> list[Fleet]:
        """
        Fleets the dispatcher may still have to act on.

        That is every fleet not yet an hour past form-up, cancelled ones
        included (their cancellation may still be undelivered).
        """
        return await self.load_active_fleets(
            since=now - FLEET_EXPIRY, include_cancelled=True
        )

    async def create_fleet(self, fleet: Fleet) -> Fleet:
        """Insert a new fleet. Sets id, version and timestamps on the passed object."""
        try:
            async with get_transaction() as conn:
                row = await queries.insert_fleet(conn, _fleet_values(fleet))
                await queries.upsert_fleet_messages(
                    conn, row["fleet_id"], _message_rows(fleet)
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create fleet: {e}") from e

        fleet.id = row["fleet_id"]
        fleet.version = row["version"]
        fleet.created_at = row["created_at"]
        fleet.updated_at = row["updated_at"]
        logger.info(f"Created fleet {fleet.id} in category {fleet.category_id}")
        return fleet

    async def save_fleet(self, fleet: Fleet) -> Fleet:
        """
        Persist fleet fields and notification state in one transaction.

        Raises:
            StaleFleetError: If someone else saved the fleet since it was loaded
            PersistenceError: On any database failure
        """
        try:
            async with get_transaction() as conn:
                new_version = await queries.update_fleet(
                    conn, fleet.id, fleet.version, _fleet_values(fleet)
                )
                if new_version is None:
                    raise StaleFleetError(fleet.id, fleet.version)
                await queries.upsert_fleet_messages(conn, fleet.id, _message_rows(fleet))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save fleet {fleet.id}: {e}") from e

        fleet.version = new_version
        return fleet

    async def list_destinations(self) -> list[tuple[str, str]]:
        """(guild_id, channel_id) for every channel any category posts to."""
        try:
            async with get_connection() as conn:
                rows = await queries.get_destination_channels(conn)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load destination channels: {e}") from e
        return [(row["guild_id"], row["channel_id"]) for row in rows]

    async def get_summary_message_id(self, channel_id: str) -> str | None:
        try:
            async with get_connection() as conn:
                row = await queries.get_channel_fleet_list(conn, channel_id)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to load fleet list for channel {channel_id}: {e}"
            ) from e
        return row["message_id"] if row else None

    async def set_summary_message_id(
        self, guild_id: str, channel_id: str, message_id: str | None
    ) -> None:
        try:
            async with get_transaction() as conn:
                await queries.upsert_channel_fleet_list(
                    conn, guild_id, channel_id, message_id
                )
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to save fleet list for channel {channel_id}: {e}"
            ) from e
