# core/discord_outbound/__init__.py
"""Discord outbound operations - all Discord API calls go through here."""

from .bot import get_or_fetch_member, get_ready_bot, set_bot
from .channels import get_or_fetch_channel, get_or_fetch_guild
from .messages import DiscordTransport, build_embed
from .roles import DiscordRoleDirectory

__all__ = [
    "set_bot",
    "get_ready_bot",
    "get_or_fetch_member",
    "get_or_fetch_channel",
    "get_or_fetch_guild",
    "DiscordTransport",
    "DiscordRoleDirectory",
    "build_embed",
]
