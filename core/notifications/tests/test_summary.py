"""Tests for the upcoming-fleets list publisher."""

from datetime import datetime, timedelta, timezone

import pytest

from core.fleets import service
from core.fleets.policy import CategoryPolicy
from core.fleets.types import Fleet
from core.notifications.summary import publish_summaries, select_listed_fleets, summary_key
from core.tests.fakes import FakeRoleDirectory, InMemoryFleetStore, RecordingTransport

NOW = datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)

STRAT_OP = CategoryPolicy(
    category_id=1,
    guild_id="900",
    name="Strat Op",
    reminder_lead=timedelta(hours=1),
    destinations=("500", "501"),
)

CAPITALS = CategoryPolicy(
    category_id=2,
    guild_id="900",
    name="Capitals",
    viewer_roles=frozenset({"10"}),
    destinations=("501",),
)

OTHER_GUILD = CategoryPolicy(
    category_id=3,
    guild_id="901",
    name="Roam",
    destinations=("600",),
)


async def schedule(store, category_id, hours, name="Fleet", **kwargs):
    result = await service.propose_fleet(
        store,
        category_id,
        NOW + timedelta(hours=hours),
        {},
        NOW,
        name=name,
        commander_id="42",
        **kwargs,
    )
    return result.fleet


@pytest.fixture
def store():
    return InMemoryFleetStore([STRAT_OP, CAPITALS, OTHER_GUILD])


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def directory():
    # Channel 501 is readable by the capitals role, 500 only by @everyone
    return FakeRoleDirectory(channel_roles={"500": {"900"}, "501": {"900", "10"}})


class TestPublishCycles:
    @pytest.mark.asyncio
    async def test_two_cycles_leave_one_live_list_per_channel(self, store, transport, directory):
        await schedule(store, 1, 3, name="Keepstar defense")

        await publish_summaries(store, transport, directory, NOW)
        result = await publish_summaries(store, transport, directory, NOW + timedelta(minutes=30))

        assert result == {"published": 3, "failed": 0}
        for channel_id in ("500", "501", "600"):
            live = transport.live_messages(channel_id)
            assert len(live) == 1
            assert store.summaries[channel_id][1] == live[0]["message_id"]

    @pytest.mark.asyncio
    async def test_lists_never_ping(self, store, transport, directory):
        await publish_summaries(store, transport, directory, NOW)

        assert transport.sent
        assert all(record["ping"] is False for record in transport.sent)
        assert transport.sent[0]["key"] == summary_key(transport.sent[0]["channel_id"])

    @pytest.mark.asyncio
    async def test_failed_delete_is_tolerated(self, store, transport, directory):
        await publish_summaries(store, transport, directory, NOW)
        transport.fail_deletes = True

        result = await publish_summaries(store, transport, directory, NOW + timedelta(minutes=30))

        assert result["published"] == 3
        live = transport.live_messages("500")
        assert len(live) == 2
        # The record follows the newest list, the stale one is just left behind
        newest = max(live, key=lambda record: int(record["message_id"]))
        assert store.summaries["500"][1] == newest["message_id"]

    @pytest.mark.asyncio
    async def test_unrecorded_list_is_removed(self, store, transport, directory):
        await publish_summaries(store, transport, directory, NOW)
        store.fail_writes = True

        result = await publish_summaries(store, transport, directory, NOW + timedelta(minutes=30))

        assert result == {"published": 0, "failed": 3}
        for channel_id in ("500", "501", "600"):
            assert len(transport.live_messages(channel_id)) == 1

    @pytest.mark.asyncio
    async def test_unreachable_channel_does_not_block_others(self, store, transport, directory):
        transport.missing_channels.add("500")

        result = await publish_summaries(store, transport, directory, NOW)

        assert result == {"published": 2, "failed": 1}


class TestListContents:
    @pytest.mark.asyncio
    async def test_channel_only_lists_its_own_guild(self, store, transport, directory):
        await schedule(store, 1, 3, name="Keepstar defense")
        await schedule(store, 3, 3, name="Lowsec roam")

        await publish_summaries(store, transport, directory, NOW)

        home = transport.live_messages("500")[0]["message"]
        other = transport.live_messages("600")[0]["message"]
        assert "Keepstar defense" in home.description
        assert "Lowsec roam" not in home.description
        assert "Lowsec roam" in other.description

    @pytest.mark.asyncio
    async def test_restricted_category_only_where_audience_can_view(self, store, transport, directory):
        await schedule(store, 2, 4, name="Dread bomb")

        await publish_summaries(store, transport, directory, NOW)

        assert "Dread bomb" not in transport.live_messages("500")[0]["message"].description
        assert "Dread bomb" in transport.live_messages("501")[0]["message"].description

    @pytest.mark.asyncio
    async def test_empty_list(self, store, transport, directory):
        await publish_summaries(store, transport, directory, NOW)

        message = transport.live_messages("500")[0]["message"]
        assert message.description == "No upcoming fleets."
        assert message.footer.startswith("0 fleet(s)")


class TestSelectListedFleets:
    def _fleet(self, fleet_id, hours, **kwargs):
        return Fleet(
            id=fleet_id,
            category_id=1,
            guild_id="900",
            name=f"Fleet {fleet_id}",
            commander_id="42",
            form_up_time=NOW + timedelta(hours=hours),
            **kwargs,
        )

    def test_sorted_by_form_up_time(self):
        fleets = [self._fleet(1, 5), self._fleet(2, 2), self._fleet(3, 3)]

        entries = select_listed_fleets(fleets, {1: STRAT_OP}, {"900"}, NOW)

        assert [fleet.id for fleet, _ in entries] == [2, 3, 1]

    def test_skips_unannounced_hidden_and_expired(self):
        fleets = [
            self._fleet(1, 5, hidden=True),
            self._fleet(2, -2),
            self._fleet(3, 0.5, hidden=True),
        ]

        entries = select_listed_fleets(fleets, {1: STRAT_OP}, {"900"}, NOW)

        # Hidden fleet 3 is inside its reminder window, so it's announced
        assert [fleet.id for fleet, _ in entries] == [3]

    def test_skips_unknown_categories(self):
        assert select_listed_fleets([self._fleet(1, 2)], {}, {"900"}, NOW) == []
