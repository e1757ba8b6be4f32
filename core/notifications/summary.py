"""
Upcoming-fleets list, reposted periodically in every destination channel.

Each cycle posts a fresh list and deletes the previous one, so the list stays
at the bottom of the channel. The previous message's ID is kept in the
database (channel_fleet_lists), never in memory, so restarts don't leave
stale lists behind.
"""

import logging
from datetime import datetime, timezone

import sentry_sdk

from core.fleets.errors import DeliveryError, PersistenceError
from core.fleets.policy import CategoryPolicy, can_view
from core.fleets.state import FLEET_EXPIRY, is_announced, is_terminal
from core.fleets.types import Fleet

from .render import render_summary

logger = logging.getLogger(__name__)


def summary_key(channel_id: str) -> str:
    return f"Fleet list {channel_id}"


def select_listed_fleets(
    fleets: list[Fleet],
    policies: dict[int, CategoryPolicy],
    audience: set[str],
    now: datetime,
) -> list[tuple[Fleet, CategoryPolicy]]:
    """
    Fleets a channel's audience may see, soonest first.

    Leaves out cancelled and expired fleets, hidden fleets not yet announced,
    and categories whose viewer roles the audience doesn't hold.
    """
    entries = []
    for fleet in fleets:
        policy = policies.get(fleet.category_id)
        if policy is None or not can_view(policy, audience):
            continue
        if is_terminal(fleet, now) or not is_announced(fleet, policy, now):
            continue
        entries.append((fleet, policy))
    entries.sort(key=lambda entry: (entry[0].form_up_time, entry[0].id or 0))
    return entries


async def _publish_channel(
    store,
    transport,
    directory,
    guild_id: str,
    channel_id: str,
    fleets: list[Fleet],
    policies: dict[int, CategoryPolicy],
    now: datetime,
) -> None:
    audience = await directory.destination_roles(guild_id, channel_id)
    message = render_summary(select_listed_fleets(fleets, policies, audience, now), now)

    previous_id = await store.get_summary_message_id(channel_id)
    new_id = await transport.send_message(
        channel_id, message, ping=False, key=summary_key(channel_id)
    )

    try:
        await store.set_summary_message_id(guild_id, channel_id, new_id)
    except PersistenceError:
        # Unrecorded lists would never get cleaned up; drop the new one instead
        try:
            await transport.delete_message(channel_id, new_id)
        except DeliveryError as e:
            logger.warning(f"Could not remove unrecorded fleet list in {channel_id}: {e}")
        raise

    if previous_id and previous_id != new_id:
        try:
            await transport.delete_message(channel_id, previous_id)
        except DeliveryError as e:
            logger.warning(
                f"Could not delete previous fleet list {previous_id} in {channel_id}: {e}"
            )


async def publish_summaries(
    store, transport, directory, now: datetime | None = None
) -> dict:
    """
    Repost the upcoming-fleets list in every destination channel.

    A destination only ever lists fleets of its own guild. Destinations are
    independent: a failure on one is logged and the rest still publish.

    Returns:
        Dict with counts: {"published": n, "failed": n}
    """
    now = now or datetime.now(timezone.utc)
    destinations = await store.list_destinations()

    guild_data: dict[str, tuple[list[Fleet], dict[int, CategoryPolicy]]] = {}
    published = failed = 0

    for guild_id, channel_id in destinations:
        try:
            if guild_id not in guild_data:
                policies = {
                    p.category_id: p for p in await store.get_guild_policies(guild_id)
                }
                fleets = await store.load_active_fleets(
                    guild_id=guild_id, since=now - FLEET_EXPIRY
                )
                guild_data[guild_id] = (fleets, policies)
            fleets, policies = guild_data[guild_id]

            await _publish_channel(
                store, transport, directory, guild_id, channel_id, fleets, policies, now
            )
            published += 1
        except DeliveryError as e:
            logger.warning(f"Failed to publish fleet list in channel {channel_id}: {e}")
            failed += 1
        except Exception as e:
            logger.error(f"Error publishing fleet list in channel {channel_id}: {e}")
            sentry_sdk.capture_exception(e)
            failed += 1

    logger.info(f"Published {published} fleet list(s), {failed} failed")
    return {"published": published, "failed": failed}
