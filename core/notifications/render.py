"""
Render fleets into Discord-ready messages.

Produces FleetMessage values, not discord.py objects; the transport turns them
into embeds. Times are shown with Discord timestamp markup so every reader
sees them in their own timezone.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from core.enums import NotificationKind
from core.fleets.policy import CategoryPolicy
from core.fleets.types import Fleet

from .templates import get_message, has_part

COLOUR_BLUE = 0x3498DB
COLOUR_ORANGE = 0xF39C12
COLOUR_RED = 0xE74C3C
COLOUR_GREY = 0x95A5A6

_COLOURS = {
    NotificationKind.create: COLOUR_BLUE,
    NotificationKind.reschedule: COLOUR_BLUE,
    NotificationKind.reminder: COLOUR_ORANGE,
    NotificationKind.formup: COLOUR_RED,
    NotificationKind.cancel: COLOUR_GREY,
}


@dataclass
class FleetMessage:
    """
    A channel message with one embed.

    content=None leaves existing content alone when editing; "" clears it.
    """

    title: str
    description: str
    colour: int
    content: str | None = None
    fields: list[tuple[str, str]] = field(default_factory=list)
    footer: str | None = None
    timestamp: datetime | None = None


def discord_timestamp(dt: datetime, style: str = "F") -> str:
    """Discord timestamp markup, e.g. <t:1700000000:R> renders as "in 2 hours"."""
    return f"<t:{int(dt.timestamp())}:{style}>"


def format_countdown(delta: timedelta) -> str:
    """Compact countdown: "2d 3h", "1h 5m", "12m". Never negative."""
    total_minutes = max(int(delta.total_seconds() // 60), 0)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_mentions(policy: CategoryPolicy) -> str:
    if policy.pings_everyone():
        return "@everyone"
    return " ".join(f"<@&{role_id}>" for role_id in sorted(policy.ping_roles))


def _context(fleet: Fleet, policy: CategoryPolicy) -> dict:
    return {
        "category": policy.name,
        "fleet_name": fleet.name,
        "commander_mention": f"<@{fleet.commander_id}>",
        "form_up_full": discord_timestamp(fleet.form_up_time, "F"),
        "form_up_relative": discord_timestamp(fleet.form_up_time, "R"),
        "form_up_utc": f"{fleet.form_up_time:%Y-%m-%d %H:%M}",
        "mentions": format_mentions(policy),
    }


def _fleet_fields(fleet: Fleet, context: dict) -> list[tuple[str, str]]:
    fields = [
        (get_message("fields", "commander", context), context["commander_mention"]),
        (
            get_message("fields", "form_up", context),
            get_message("fields", "form_up_value", context),
        ),
    ]
    fields.extend((label, value) for label, value in fleet.details.items() if value)
    return fields


def render_notification(
    kind: NotificationKind,
    fleet: Fleet,
    policy: CategoryPolicy,
    *,
    first_announcement: bool = False,
) -> FleetMessage:
    """
    Render one notification of a fleet.

    Args:
        kind: What is being sent
        fleet: The fleet, in its current state
        policy: The fleet's category
        first_announcement: A reminder that is the first message of a hidden fleet
    """
    context = _context(fleet, policy)
    template = (
        "announce"
        if kind == NotificationKind.reminder and first_announcement
        else kind.value
    )

    if kind in (NotificationKind.reschedule, NotificationKind.cancel):
        # Notices, not fleet embeds: no field table
        fields = []
    else:
        fields = _fleet_fields(fleet, context)

    content = None
    if has_part(template, "content"):
        content = get_message(template, "content", context).strip()
    elif kind == NotificationKind.cancel:
        content = ""

    return FleetMessage(
        title=get_message(template, "title", context),
        description=get_message(template, "description", context),
        colour=_COLOURS[kind],
        content=content,
        fields=fields,
    )


def render_edit(
    kind: NotificationKind, fleet: Fleet, policy: CategoryPolicy
) -> FleetMessage:
    """Re-render an already posted fleet embed with current details, leaving its pings alone."""
    return replace(render_notification(kind, fleet, policy), content=None)


# Discord rejects embed descriptions over 4096 characters
MAX_DESCRIPTION_LENGTH = 4000


def _join_lines(lines: list[str]) -> str:
    kept = []
    length = 0
    for i, line in enumerate(lines):
        if length + len(line) + 1 > MAX_DESCRIPTION_LENGTH:
            kept.append(f"...and {len(lines) - i} more")
            break
        kept.append(line)
        length += len(line) + 1
    return "\n".join(kept)


def render_summary(
    entries: list[tuple[Fleet, CategoryPolicy]], now: datetime
) -> FleetMessage:
    """
    Render the upcoming-fleets list for one channel.

    Args:
        entries: (fleet, category) pairs, already filtered and sorted
        now: Publish time, countdowns are relative to it
    """
    lines = []
    for fleet, policy in entries:
        context = _context(fleet, policy)
        if fleet.form_up_time <= now:
            lines.append(get_message("summary", "line_now", context))
        else:
            context["countdown"] = format_countdown(fleet.form_up_time - now)
            lines.append(get_message("summary", "line", context))

    description = _join_lines(lines) if lines else get_message("summary", "empty", {})
    return FleetMessage(
        title=get_message("summary", "title", {}),
        description=description,
        colour=COLOUR_BLUE,
        content="",
        footer=get_message("summary", "footer", {"count": len(entries)}),
        timestamp=now,
    )
