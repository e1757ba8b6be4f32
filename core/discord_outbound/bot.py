"""Holds the running bot so the scheduler and web API can reach Discord."""

import discord
from discord import Client, Guild, Member

_bot: Client | None = None


def set_bot(bot: Client) -> None:
    """Register the bot. Called by the fleet cog when it loads."""
    global _bot
    _bot = bot


def get_ready_bot() -> Client | None:
    """The bot, if it's connected to the gateway. None before on_ready."""
    if _bot is None or not _bot.is_ready():
        return None
    return _bot


async def get_or_fetch_member(guild: Guild, discord_id: int) -> Member | None:
    """Get member from cache, falling back to API fetch."""
    member = guild.get_member(discord_id)
    if member:
        return member
    try:
        return await guild.fetch_member(discord_id)
    except discord.NotFound:
        return None
