# core/discord_outbound/channels.py
"""Discord channel lookups."""

import discord


async def get_or_fetch_channel(
    bot,
    channel_id: int,
) -> discord.abc.GuildChannel | None:
    """Get channel from cache or fetch from API."""
    channel = bot.get_channel(channel_id)
    if channel:
        return channel
    try:
        return await bot.fetch_channel(channel_id)
    except discord.NotFound:
        return None


async def get_or_fetch_guild(bot, guild_id: int) -> discord.Guild | None:
    """Get guild from cache or fetch from API."""
    guild = bot.get_guild(guild_id)
    if guild:
        return guild
    try:
        return await bot.fetch_guild(guild_id)
    except discord.NotFound:
        return None
