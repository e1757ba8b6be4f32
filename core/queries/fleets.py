"""Database queries for fleets, fleet categories and fleet messages."""

from datetime import datetime

from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import FleetStatus
from ..tables import (
    channel_fleet_lists,
    fleet_categories,
    fleet_category_channels,
    fleet_category_roles,
    fleet_messages,
    fleets,
)


# =====================================================
# Categories (read-only)
# =====================================================


async def get_category(conn: AsyncConnection, category_id: int) -> dict | None:
    """Get a single category row by ID."""
    result = await conn.execute(
        select(fleet_categories).where(fleet_categories.c.category_id == category_id)
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def get_categories_for_guild(conn: AsyncConnection, guild_id: str) -> list[dict]:
    """Get all categories of a guild, ordered by name."""
    result = await conn.execute(
        select(fleet_categories)
        .where(fleet_categories.c.guild_id == guild_id)
        .order_by(fleet_categories.c.name)
    )
    return [dict(row) for row in result.mappings()]


async def get_category_roles(
    conn: AsyncConnection, category_ids: list[int]
) -> list[dict]:
    """Get role assignments (viewer/creator/manager/ping) for categories."""
    if not category_ids:
        return []
    result = await conn.execute(
        select(
            fleet_category_roles.c.category_id,
            fleet_category_roles.c.role_id,
            fleet_category_roles.c.kind,
        ).where(fleet_category_roles.c.category_id.in_(category_ids))
    )
    return [dict(row) for row in result.mappings()]


async def get_category_channels(
    conn: AsyncConnection, category_ids: list[int]
) -> list[dict]:
    """Get destination channels for categories, in configured order."""
    if not category_ids:
        return []
    result = await conn.execute(
        select(
            fleet_category_channels.c.category_id,
            fleet_category_channels.c.channel_id,
        )
        .where(fleet_category_channels.c.category_id.in_(category_ids))
        .order_by(
            fleet_category_channels.c.category_id,
            fleet_category_channels.c.position,
            fleet_category_channels.c.channel_id,
        )
    )
    return [dict(row) for row in result.mappings()]


async def get_destination_channels(conn: AsyncConnection) -> list[dict]:
    """Every channel any category posts to, with its guild."""
    result = await conn.execute(
        select(fleet_categories.c.guild_id, fleet_category_channels.c.channel_id)
        .select_from(
            fleet_category_channels.join(
                fleet_categories,
                fleet_category_channels.c.category_id
                == fleet_categories.c.category_id,
            )
        )
        .distinct()
        .order_by(fleet_categories.c.guild_id, fleet_category_channels.c.channel_id)
    )
    return [dict(row) for row in result.mappings()]


# =====================================================
# Fleets
# =====================================================


async def get_fleet(
    conn: AsyncConnection, fleet_id: int, for_update: bool = False
) -> dict | None:
    """Get a single fleet row by ID, optionally locking it for the transaction."""
    query = select(fleets).where(fleets.c.fleet_id == fleet_id)
    if for_update:
        query = query.with_for_update()
    result = await conn.execute(query)
    row = result.mappings().first()
    return dict(row) if row else None


async def get_fleets(
    conn: AsyncConnection,
    category_ids: list[int] | None = None,
    guild_id: str | None = None,
    since: datetime | None = None,
    include_cancelled: bool = False,
) -> list[dict]:
    """
    Get fleets, ordered by form-up time.

    Args:
        category_ids: Only fleets in these categories
        guild_id: Only fleets in this guild
        since: Only fleets forming up at or after this time
        include_cancelled: Include cancelled fleets
    """
    query = select(fleets)
    if category_ids is not None:
        query = query.where(fleets.c.category_id.in_(category_ids))
    if guild_id is not None:
        query = query.where(fleets.c.guild_id == guild_id)
    if since is not None:
        query = query.where(fleets.c.form_up_time >= since)
    if not include_cancelled:
        query = query.where(fleets.c.status != FleetStatus.cancelled)
    result = await conn.execute(query.order_by(fleets.c.form_up_time, fleets.c.fleet_id))
    return [dict(row) for row in result.mappings()]


async def insert_fleet(conn: AsyncConnection, values: dict) -> dict:
    """
    Create a fleet row.

    Returns:
        The inserted row (with fleet_id, created_at)
    """
    result = await conn.execute(insert(fleets).values(**values).returning(fleets))
    return dict(result.mappings().first())


async def update_fleet(
    conn: AsyncConnection, fleet_id: int, expected_version: int, values: dict
) -> int | None:
    """
    Update a fleet row if nobody else saved it since it was loaded.

    Returns:
        The new version, or None if the version check failed
    """
    result = await conn.execute(
        update(fleets)
        .where(
            and_(
                fleets.c.fleet_id == fleet_id,
                fleets.c.version == expected_version,
            )
        )
        .values(**values, version=fleets.c.version + 1, updated_at=func.now())
        .returning(fleets.c.version)
    )
    row = result.first()
    return row.version if row else None


# =====================================================
# Fleet messages (notification state)
# =====================================================


async def get_fleet_messages(
    conn: AsyncConnection, fleet_ids: list[int]
) -> list[dict]:
    """Get notification state rows for fleets."""
    if not fleet_ids:
        return []
    result = await conn.execute(
        select(fleet_messages)
        .where(fleet_messages.c.fleet_id.in_(fleet_ids))
        .order_by(fleet_messages.c.fleet_message_id)
    )
    return [dict(row) for row in result.mappings()]


async def upsert_fleet_messages(
    conn: AsyncConnection, fleet_id: int, rows: list[dict]
) -> None:
    """Insert or update (fleet, channel, kind) notification rows."""
    if not rows:
        return
    stmt = pg_insert(fleet_messages).values(
        [{"fleet_id": fleet_id, **row} for row in rows]
    )
    stmt = stmt.on_conflict_do_update(
        constraint="fleet_messages_fleet_channel_kind",
        set_={
            "status": stmt.excluded.status,
            "message_id": stmt.excluded.message_id,
            "revision": stmt.excluded.revision,
            "time_revision": stmt.excluded.time_revision,
            "attempts": stmt.excluded.attempts,
            "next_attempt_at": stmt.excluded.next_attempt_at,
            "last_error": stmt.excluded.last_error,
            "updated_at": func.now(),
        },
    )
    await conn.execute(stmt)


# =====================================================
# Channel fleet lists (summary messages)
# =====================================================


async def get_channel_fleet_list(
    conn: AsyncConnection, channel_id: str
) -> dict | None:
    result = await conn.execute(
        select(channel_fleet_lists).where(
            channel_fleet_lists.c.channel_id == channel_id
        )
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def upsert_channel_fleet_list(
    conn: AsyncConnection, guild_id: str, channel_id: str, message_id: str | None
) -> None:
    stmt = pg_insert(channel_fleet_lists).values(
        channel_id=channel_id, guild_id=guild_id, message_id=message_id
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[channel_fleet_lists.c.channel_id],
        set_={"message_id": stmt.excluded.message_id, "updated_at": func.now()},
    )
    await conn.execute(stmt)
