"""Tests for Discord role lookups."""

import pytest
from unittest.mock import AsyncMock, MagicMock

import discord

from core.discord_outbound.roles import DiscordRoleDirectory


def make_role(role_id):
    role = MagicMock(spec=discord.Role)
    role.id = role_id
    return role


def make_bot(guild=None, channel=None):
    bot = MagicMock()
    bot.get_guild.return_value = guild
    bot.get_channel.return_value = channel
    return bot


class TestRolesOf:
    @pytest.mark.asyncio
    async def test_returns_role_ids_as_strings(self):
        member = MagicMock()
        member.roles = [make_role(900), make_role(10)]
        guild = MagicMock()
        guild.get_member.return_value = member

        roles = await DiscordRoleDirectory(make_bot(guild)).roles_of("900", "42")

        guild.get_member.assert_called_once_with(42)
        assert roles == {"900", "10"}

    @pytest.mark.asyncio
    async def test_unknown_member_has_no_roles(self):
        guild = MagicMock()
        guild.get_member.return_value = None
        guild.fetch_member = AsyncMock(side_effect=discord.NotFound(MagicMock(), "Unknown Member"))

        roles = await DiscordRoleDirectory(make_bot(guild)).roles_of("900", "42")

        assert roles == set()

    @pytest.mark.asyncio
    async def test_unknown_guild(self):
        bot = make_bot()
        bot.fetch_guild = AsyncMock(side_effect=discord.NotFound(MagicMock(), "Unknown Guild"))

        assert await DiscordRoleDirectory(bot).roles_of("900", "42") == set()


class TestIsAdmin:
    @pytest.mark.asyncio
    async def test_administrator_permission(self):
        member = MagicMock()
        member.guild_permissions.administrator = True
        guild = MagicMock()
        guild.get_member.return_value = member

        assert await DiscordRoleDirectory(make_bot(guild)).is_admin("900", "42")

    @pytest.mark.asyncio
    async def test_regular_member(self):
        member = MagicMock()
        member.guild_permissions.administrator = False
        guild = MagicMock()
        guild.get_member.return_value = member

        assert not await DiscordRoleDirectory(make_bot(guild)).is_admin("900", "42")


class TestDestinationRoles:
    @pytest.mark.asyncio
    async def test_roles_that_can_view_channel(self):
        everyone, members, hidden = make_role(900), make_role(10), make_role(20)
        channel = MagicMock()
        channel.guild.id = 900
        channel.guild.roles = [everyone, members, hidden]
        channel.permissions_for.side_effect = lambda role: MagicMock(
            view_channel=role is not hidden
        )

        roles = await DiscordRoleDirectory(make_bot(channel=channel)).destination_roles(
            "900", "500"
        )

        assert roles == {"900", "10"}

    @pytest.mark.asyncio
    async def test_channel_of_other_guild(self):
        channel = MagicMock()
        channel.guild.id = 901

        roles = await DiscordRoleDirectory(make_bot(channel=channel)).destination_roles(
            "900", "500"
        )

        assert roles == set()
