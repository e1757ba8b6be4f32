# core/discord_outbound/messages.py
"""
Discord transport for fleet messages.

Turns FleetMessage values into embeds and maps discord.py failures onto
DeliveryError, which is the only exception the dispatcher expects from here.
"""

import asyncio
import logging

import discord

from core.fleets.errors import DeliveryError
from core.notifications.render import FleetMessage

from .channels import get_or_fetch_channel

logger = logging.getLogger(__name__)

# How far back find_message looks for an unconfirmed post
FIND_HISTORY_LIMIT = 50

FOOTER_SEPARATOR = " | "

_TRANSIENT_ERRORS = (discord.HTTPException, OSError, asyncio.TimeoutError)


def build_embed(message: FleetMessage, key: str | None = None) -> discord.Embed:
    """Build the embed for a message, stamping the delivery key into the footer."""
    embed = discord.Embed(
        title=message.title[:256],
        description=message.description[:4096],
        colour=message.colour,
        timestamp=message.timestamp,
    )
    for name, value in message.fields[:25]:
        embed.add_field(name=name[:256], value=value[:1024], inline=True)

    footer = FOOTER_SEPARATOR.join(part for part in (message.footer, key) if part)
    if footer:
        embed.set_footer(text=footer)
    return embed


def footer_has_key(text: str | None, key: str) -> bool:
    if not text:
        return False
    return text == key or text.endswith(FOOTER_SEPARATOR + key)


def _mentions(ping: bool) -> discord.AllowedMentions:
    return discord.AllowedMentions(
        everyone=ping, roles=ping, users=False, replied_user=False
    )


class DiscordTransport:
    """Sends, edits, deletes and finds fleet messages through the bot."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def _channel(self, channel_id: str) -> discord.abc.Messageable:
        try:
            channel = await get_or_fetch_channel(self.bot, int(channel_id))
        except discord.Forbidden as e:
            raise DeliveryError(f"No access to channel {channel_id}", retryable=False) from e
        except _TRANSIENT_ERRORS as e:
            raise DeliveryError(f"Could not fetch channel {channel_id}: {e}") from e
        if channel is None:
            raise DeliveryError(f"Channel {channel_id} not found", retryable=False)
        return channel

    async def send_message(
        self,
        channel_id: str,
        message: FleetMessage,
        *,
        ping: bool,
        key: str,
        reply_to: str | None = None,
    ) -> str:
        """
        Post a message. Returns the new message's ID.

        Raises:
            DeliveryError: On any Discord failure (retryable unless the channel
                           is gone or the bot lost access)
        """
        channel = await self._channel(channel_id)
        kwargs = {
            "embed": build_embed(message, key),
            "allowed_mentions": _mentions(ping),
        }
        if message.content:
            kwargs["content"] = message.content
        if reply_to:
            kwargs["reference"] = discord.MessageReference(
                message_id=int(reply_to),
                channel_id=int(channel_id),
                fail_if_not_exists=False,
            )

        try:
            sent = await channel.send(**kwargs)
        except discord.Forbidden as e:
            raise DeliveryError(
                f"Not allowed to post in channel {channel_id}", retryable=False
            ) from e
        except _TRANSIENT_ERRORS as e:
            raise DeliveryError(f"Failed to post in channel {channel_id}: {e}") from e
        return str(sent.id)

    async def edit_message(
        self, channel_id: str, message_id: str, message: FleetMessage
    ) -> None:
        """
        Replace a posted message's embed. Content is left alone when
        message.content is None and cleared when it is empty.

        Raises:
            DeliveryError: retryable=False if the message no longer exists
        """
        channel = await self._channel(channel_id)
        kwargs = {"embed": build_embed(message)}
        if message.content is not None:
            kwargs["content"] = message.content or None

        try:
            await channel.get_partial_message(int(message_id)).edit(**kwargs)
        except discord.NotFound as e:
            raise DeliveryError(
                f"Message {message_id} in channel {channel_id} no longer exists",
                retryable=False,
            ) from e
        except discord.Forbidden as e:
            raise DeliveryError(
                f"Not allowed to edit message {message_id}", retryable=False
            ) from e
        except _TRANSIENT_ERRORS as e:
            raise DeliveryError(f"Failed to edit message {message_id}: {e}") from e

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        """Delete a message. Already-deleted messages are fine."""
        channel = await self._channel(channel_id)
        try:
            await channel.get_partial_message(int(message_id)).delete()
        except discord.NotFound:
            logger.debug(f"Message {message_id} in channel {channel_id} already deleted")
        except _TRANSIENT_ERRORS as e:
            raise DeliveryError(f"Failed to delete message {message_id}: {e}") from e

    async def find_message(self, channel_id: str, key: str) -> str | None:
        """
        Find a recent bot message stamped with this delivery key.

        Returns:
            The message ID, or None if no such message was posted
        """
        channel = await self._channel(channel_id)
        bot_user = self.bot.user
        try:
            async for posted in channel.history(limit=FIND_HISTORY_LIMIT):
                if bot_user is not None and posted.author.id != bot_user.id:
                    continue
                for embed in posted.embeds:
                    if footer_has_key(embed.footer.text, key):
                        return str(posted.id)
        except discord.Forbidden as e:
            raise DeliveryError(
                f"Not allowed to read history of channel {channel_id}", retryable=False
            ) from e
        except _TRANSIENT_ERRORS as e:
            raise DeliveryError(
                f"Failed to read history of channel {channel_id}: {e}"
            ) from e
        return None
