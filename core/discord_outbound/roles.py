# core/discord_outbound/roles.py
"""Discord role lookups - answers "who holds which role" for permission checks."""

import logging

import discord

from .bot import get_or_fetch_member
from .channels import get_or_fetch_channel, get_or_fetch_guild

logger = logging.getLogger(__name__)


class DiscordRoleDirectory:
    """Role IDs of members and channel audiences, as strings."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def _member(self, guild_id: str, user_id: str) -> discord.Member | None:
        guild = await get_or_fetch_guild(self.bot, int(guild_id))
        if guild is None:
            return None
        return await get_or_fetch_member(guild, int(user_id))

    async def roles_of(self, guild_id: str, user_id: str) -> set[str]:
        """
        Role IDs a member holds, including @everyone (whose ID is the guild's).

        Unknown members hold no roles.
        """
        member = await self._member(guild_id, user_id)
        if member is None:
            return set()
        return {str(role.id) for role in member.roles}

    async def is_admin(self, guild_id: str, user_id: str) -> bool:
        member = await self._member(guild_id, user_id)
        return bool(member and member.guild_permissions.administrator)

    async def destination_roles(self, guild_id: str, channel_id: str) -> set[str]:
        """
        Roles that can read a channel.

        Used as the audience of the channel's fleet list: categories are only
        listed where their viewers can already see.
        """
        channel = await get_or_fetch_channel(self.bot, int(channel_id))
        if channel is None or str(channel.guild.id) != guild_id:
            logger.warning(f"Channel {channel_id} not found in guild {guild_id}")
            return set()
        return {
            str(role.id)
            for role in channel.guild.roles
            if channel.permissions_for(role).view_channel
        }
