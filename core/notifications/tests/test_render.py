"""Tests for fleet message rendering."""

from datetime import datetime, timedelta, timezone

from core.enums import NotificationKind
from core.fleets.policy import CategoryPolicy
from core.fleets.types import Fleet
from core.notifications.render import (
    COLOUR_GREY,
    MAX_DESCRIPTION_LENGTH,
    discord_timestamp,
    format_countdown,
    format_mentions,
    render_edit,
    render_notification,
    render_summary,
)

NOW = datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)

POLICY = CategoryPolicy(
    category_id=1,
    guild_id="900",
    name="Strat Op",
    ping_roles=frozenset({"51", "50"}),
)


def make_fleet(**kwargs) -> Fleet:
    values = dict(
        id=1,
        category_id=1,
        guild_id="900",
        name="Keepstar defense",
        commander_id="42",
        form_up_time=NOW + timedelta(hours=2),
        details={"Location": "1DQ1-A", "Doctrine": ""},
    )
    values.update(kwargs)
    return Fleet(**values)


class TestFormatting:
    def test_discord_timestamp(self):
        assert discord_timestamp(NOW, "R") == f"<t:{int(NOW.timestamp())}:R>"

    def test_countdown(self):
        assert format_countdown(timedelta(days=2, hours=3, minutes=5)) == "2d 3h"
        assert format_countdown(timedelta(hours=1, minutes=5)) == "1h 5m"
        assert format_countdown(timedelta(minutes=12)) == "12m"
        assert format_countdown(timedelta(minutes=-5)) == "0m"

    def test_mentions_sorted_role_pings(self):
        assert format_mentions(POLICY) == "<@&50> <@&51>"

    def test_everyone_mention(self):
        policy = CategoryPolicy(
            category_id=1, guild_id="900", name="Strat Op", ping_roles=frozenset({"900", "50"})
        )
        assert format_mentions(policy) == "@everyone"


class TestRenderNotification:
    def test_create(self):
        message = render_notification(NotificationKind.create, make_fleet(), POLICY)

        assert message.content.startswith("**.:New Upcoming Strat Op:.**")
        assert message.content.endswith("<@&50> <@&51>")
        assert message.title == "Keepstar defense"
        assert ("Commander", "<@42>") in message.fields
        assert ("Location", "1DQ1-A") in message.fields
        # Empty details are left out
        assert all(label != "Doctrine" for label, _ in message.fields)

    def test_reminder_as_first_announcement(self):
        message = render_notification(
            NotificationKind.reminder, make_fleet(), POLICY, first_announcement=True
        )
        assert "New Upcoming" in message.content

    def test_plain_reminder(self):
        message = render_notification(NotificationKind.reminder, make_fleet(), POLICY)
        assert "Reminder - Upcoming Strat Op" in message.content

    def test_cancel_clears_content(self):
        message = render_notification(NotificationKind.cancel, make_fleet(), POLICY)

        assert message.content == ""
        assert message.colour == COLOUR_GREY
        assert message.fields == []
        assert "Cancelled" in message.title

    def test_reschedule_notice_shows_new_time(self):
        fleet = make_fleet()
        message = render_notification(NotificationKind.reschedule, fleet, POLICY)

        assert message.content is None
        assert f"{fleet.form_up_time:%Y-%m-%d %H:%M}" in message.description

    def test_edit_keeps_existing_pings(self):
        message = render_edit(NotificationKind.formup, make_fleet(), POLICY)
        assert message.content is None
        assert message.title == "Keepstar defense"


class TestRenderSummary:
    def test_lines_with_countdown(self):
        fleet = make_fleet()
        message = render_summary([(fleet, POLICY)], NOW)

        assert message.title == "Upcoming Fleets"
        assert "**Strat Op** - Keepstar defense" in message.description
        assert "(in 2h 0m)" in message.description
        assert message.footer.startswith("1 fleet(s)")
        assert message.timestamp == NOW

    def test_forming_now(self):
        fleet = make_fleet(form_up_time=NOW - timedelta(minutes=10))
        message = render_summary([(fleet, POLICY)], NOW)
        assert "forming up now" in message.description

    def test_long_list_is_truncated(self):
        entries = [
            (make_fleet(id=i, name="x" * 200, form_up_time=NOW + timedelta(hours=i)), POLICY)
            for i in range(1, 60)
        ]

        message = render_summary(entries, NOW)

        assert len(message.description) <= MAX_DESCRIPTION_LENGTH + 30
        assert message.description.endswith("more")
