"""Tests for the Discord fleet message transport."""

import pytest
from unittest.mock import AsyncMock, MagicMock

import discord

from core.discord_outbound.messages import DiscordTransport, build_embed, footer_has_key
from core.fleets.errors import DeliveryError
from core.notifications.render import FleetMessage

KEY = "Fleet ref 7/create"


def make_message(**kwargs) -> FleetMessage:
    values = dict(
        title="Keepstar defense",
        description="Strat Op fleet posted by <@42>.",
        colour=0x3498DB,
        content="**.:New Upcoming Strat Op:.**\n\n<@&50>",
        fields=[("Commander", "<@42>")],
    )
    values.update(kwargs)
    return FleetMessage(**values)


def make_transport(channel):
    bot = MagicMock()
    bot.get_channel.return_value = channel
    bot.user.id = 1
    return DiscordTransport(bot)


def make_channel():
    channel = MagicMock()
    channel.send = AsyncMock(return_value=MagicMock(id=555))
    partial = MagicMock()
    partial.edit = AsyncMock()
    partial.delete = AsyncMock()
    channel.get_partial_message.return_value = partial
    return channel


def posted(message_id, author_id, footer):
    message = MagicMock()
    message.id = message_id
    message.author.id = author_id
    embed = discord.Embed(title="x")
    if footer:
        embed.set_footer(text=footer)
    message.embeds = [embed]
    return message


def history_of(*messages):
    async def history(limit=None):
        for message in messages:
            yield message

    return history


class TestBuildEmbed:
    def test_key_goes_in_footer(self):
        embed = build_embed(make_message(footer="3 fleet(s)"), KEY)
        assert embed.footer.text == f"3 fleet(s) | {KEY}"
        assert footer_has_key(embed.footer.text, KEY)

    def test_fields(self):
        embed = build_embed(make_message())
        assert embed.fields[0].name == "Commander"
        assert embed.footer.text is None

    def test_footer_key_match_is_exact(self):
        assert not footer_has_key("Fleet ref 17/create", KEY)
        assert not footer_has_key(None, KEY)


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_posts_with_pings(self):
        channel = make_channel()

        message_id = await make_transport(channel).send_message(
            "500", make_message(), ping=True, key=KEY
        )

        assert message_id == "555"
        kwargs = channel.send.call_args.kwargs
        assert kwargs["content"].endswith("<@&50>")
        assert kwargs["allowed_mentions"].roles is True
        assert kwargs["allowed_mentions"].everyone is True
        assert "reference" not in kwargs

    @pytest.mark.asyncio
    async def test_silent_reply(self):
        channel = make_channel()

        await make_transport(channel).send_message(
            "500", make_message(content=None), ping=False, key=KEY, reply_to="444"
        )

        kwargs = channel.send.call_args.kwargs
        assert "content" not in kwargs
        assert kwargs["allowed_mentions"].roles is False
        assert kwargs["reference"].message_id == 444

    @pytest.mark.asyncio
    async def test_transient_failure_is_retryable(self):
        channel = make_channel()
        channel.send = AsyncMock(side_effect=discord.HTTPException(MagicMock(), "Rate limited"))

        with pytest.raises(DeliveryError) as exc_info:
            await make_transport(channel).send_message("500", make_message(), ping=True, key=KEY)
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_forbidden_is_permanent(self):
        channel = make_channel()
        channel.send = AsyncMock(side_effect=discord.Forbidden(MagicMock(), "Missing Access"))

        with pytest.raises(DeliveryError) as exc_info:
            await make_transport(channel).send_message("500", make_message(), ping=True, key=KEY)
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_missing_channel_is_permanent(self):
        bot = MagicMock()
        bot.get_channel.return_value = None
        bot.fetch_channel = AsyncMock(side_effect=discord.NotFound(MagicMock(), "Unknown Channel"))

        with pytest.raises(DeliveryError) as exc_info:
            await DiscordTransport(bot).send_message("500", make_message(), ping=True, key=KEY)
        assert not exc_info.value.retryable


class TestEditAndDelete:
    @pytest.mark.asyncio
    async def test_edit_leaves_content_alone(self):
        channel = make_channel()

        await make_transport(channel).edit_message("500", "555", make_message(content=None))

        channel.get_partial_message.assert_called_once_with(555)
        kwargs = channel.get_partial_message.return_value.edit.call_args.kwargs
        assert "content" not in kwargs
        assert kwargs["embed"].title == "Keepstar defense"

    @pytest.mark.asyncio
    async def test_edit_clears_content(self):
        channel = make_channel()

        await make_transport(channel).edit_message("500", "555", make_message(content=""))

        kwargs = channel.get_partial_message.return_value.edit.call_args.kwargs
        assert kwargs["content"] is None

    @pytest.mark.asyncio
    async def test_edit_of_deleted_message_is_permanent(self):
        channel = make_channel()
        channel.get_partial_message.return_value.edit = AsyncMock(
            side_effect=discord.NotFound(MagicMock(), "Unknown Message")
        )

        with pytest.raises(DeliveryError) as exc_info:
            await make_transport(channel).edit_message("500", "555", make_message())
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_delete_of_deleted_message_is_fine(self):
        channel = make_channel()
        channel.get_partial_message.return_value.delete = AsyncMock(
            side_effect=discord.NotFound(MagicMock(), "Unknown Message")
        )

        await make_transport(channel).delete_message("500", "555")

    @pytest.mark.asyncio
    async def test_delete_failure_is_retryable(self):
        channel = make_channel()
        channel.get_partial_message.return_value.delete = AsyncMock(
            side_effect=discord.HTTPException(MagicMock(), "Error")
        )

        with pytest.raises(DeliveryError) as exc_info:
            await make_transport(channel).delete_message("500", "555")
        assert exc_info.value.retryable


class TestFindMessage:
    @pytest.mark.asyncio
    async def test_finds_own_message_by_key(self):
        channel = make_channel()
        channel.history = history_of(
            posted(10, 1, "Fleet ref 8/create"),
            posted(11, 2, KEY),  # someone else quoting the key
            posted(12, 1, KEY),
        )

        assert await make_transport(channel).find_message("500", KEY) == "12"

    @pytest.mark.asyncio
    async def test_returns_none_when_absent(self):
        channel = make_channel()
        channel.history = history_of(posted(10, 1, None))

        assert await make_transport(channel).find_message("500", KEY) is None
