"""Tests for the /fleet slash commands."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from core.fleets.policy import CategoryPolicy
from core.tests.fakes import InMemoryFleetStore
from discord_bot.cogs.fleet_cog import FleetCog, parse_form_up
from discord_bot.tests.fake_interaction import FakeInteraction, FakeMember

GUILD = 900

STRAT_OP = CategoryPolicy(
    category_id=1,
    guild_id=str(GUILD),
    name="Strat Op",
    min_spacing=timedelta(hours=2),
    creator_roles=frozenset({"20"}),
    manager_roles=frozenset({"30"}),
    destinations=("500",),
)

OTHER_GUILD = CategoryPolicy(category_id=2, guild_id="901", name="Roam")


def form_up_in(hours: float) -> str:
    return f"{datetime.now(timezone.utc) + timedelta(hours=hours):%Y-%m-%d %H:%M}"


@pytest.fixture
def store():
    return InMemoryFleetStore([STRAT_OP, OTHER_GUILD])


@pytest.fixture
def cog(store):
    return FleetCog(MagicMock(), store=store)


def interaction_for(user_id=42, roles=(GUILD, 20), administrator=False):
    return FakeInteraction(GUILD, FakeMember(user_id, roles, administrator))


async def create(cog, interaction, hours=3, category=1, **kwargs):
    await cog.create.callback(
        cog, interaction, category, "Keepstar defense", form_up_in(hours), **kwargs
    )


class TestParseFormUp:
    def test_formats(self):
        expected = datetime(2026, 5, 1, 18, 30, tzinfo=timezone.utc)
        assert parse_form_up("2026-05-01 18:30") == expected
        assert parse_form_up(" 2026-05-01T18:30 ") == expected

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_form_up("tomorrow-ish")


class TestCreate:
    @pytest.mark.asyncio
    async def test_schedules_fleet(self, cog, store):
        interaction = interaction_for()

        await create(cog, interaction, location="1DQ1-A")

        assert interaction.response.ephemeral
        assert "Scheduled **Keepstar defense**" in interaction.last_message
        fleet = store.stored(1)
        assert fleet.commander_id == "42"
        assert fleet.details == {"Location": "1DQ1-A"}

    @pytest.mark.asyncio
    async def test_rejection_is_shown(self, cog, store):
        interaction = interaction_for()
        await create(cog, interaction, hours=3)

        await create(cog, interaction, hours=4)

        assert "Too close to" in interaction.last_message
        assert len(store.fleets) == 1

    @pytest.mark.asyncio
    async def test_needs_creator_role(self, cog, store):
        interaction = interaction_for(roles=(GUILD,))

        await create(cog, interaction)

        assert "can't schedule" in interaction.last_message
        assert store.fleets == {}

    @pytest.mark.asyncio
    async def test_category_of_other_guild(self, cog, store):
        interaction = interaction_for(administrator=True)

        await create(cog, interaction, category=2)

        assert interaction.last_message == "Unknown fleet category."

    @pytest.mark.asyncio
    async def test_bad_time(self, cog, store):
        interaction = interaction_for()

        await cog.create.callback(cog, interaction, 1, "Keepstar defense", "soon")

        assert "YYYY-MM-DD HH:MM" in interaction.last_message
        assert store.fleets == {}

    @pytest.mark.asyncio
    async def test_storage_outage(self, cog, store):
        store.fail_writes = True
        interaction = interaction_for()

        await create(cog, interaction)

        assert "temporarily unavailable" in interaction.last_message


class TestManage:
    @pytest.mark.asyncio
    async def test_commander_cancels(self, cog, store):
        interaction = interaction_for()
        await create(cog, interaction)

        await cog.cancel.callback(cog, interaction, 1)

        assert interaction.last_message == "Cancelled **Keepstar defense**."
        assert store.stored(1).cancelled

    @pytest.mark.asyncio
    async def test_stranger_cannot_cancel(self, cog, store):
        await create(cog, interaction_for())
        stranger = interaction_for(user_id=43, roles=(GUILD,))

        await cog.cancel.callback(cog, stranger, 1)

        assert stranger.last_message == "You can't manage this fleet."
        assert not store.stored(1).cancelled

    @pytest.mark.asyncio
    async def test_manager_reschedules(self, cog, store):
        await create(cog, interaction_for())
        manager = interaction_for(user_id=44, roles=(GUILD, 30))

        await cog.reschedule.callback(cog, manager, 1, form_up_in(6))

        assert "now forms up" in manager.last_message
        assert store.stored(1).time_revision == 1

    @pytest.mark.asyncio
    async def test_cancelled_fleet_cannot_be_rescheduled(self, cog, store):
        interaction = interaction_for()
        await create(cog, interaction)
        await cog.cancel.callback(cog, interaction, 1)

        await cog.reschedule.callback(cog, interaction, 1, form_up_in(6))

        assert "already cancelled" in interaction.last_message

    @pytest.mark.asyncio
    async def test_unknown_fleet(self, cog):
        interaction = interaction_for()

        await cog.cancel.callback(cog, interaction, 404)

        assert interaction.last_message == "Fleet #404 not found."


class TestList:
    @pytest.mark.asyncio
    async def test_lists_upcoming_fleets(self, cog):
        interaction = interaction_for()
        await create(cog, interaction, hours=5)

        await cog.list_fleets.callback(cog, interaction)

        assert interaction.last_message.startswith("#1 **Keepstar defense**")

    @pytest.mark.asyncio
    async def test_empty(self, cog):
        interaction = interaction_for()

        await cog.list_fleets.callback(cog, interaction)

        assert interaction.last_message == "No upcoming fleets."
