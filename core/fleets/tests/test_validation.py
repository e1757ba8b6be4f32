"""Tests for form-up time validation."""

from datetime import datetime, timedelta, timezone

import pytest

from core.enums import FleetStatus
from core.fleets.policy import CategoryPolicy
from core.fleets.types import Fleet
from core.fleets.errors import FleetValidationError
from core.fleets.validation import (
    Accept,
    Reject,
    RejectReason,
    accepted_fleet,
    validate_form_up_time,
)

NOW = datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)


def make_fleet(fleet_id: int, form_up_time: datetime, category_id: int = 1, **kwargs) -> Fleet:
    return Fleet(
        id=fleet_id,
        category_id=category_id,
        guild_id="900",
        name=f"Fleet {fleet_id}",
        commander_id="42",
        form_up_time=form_up_time,
        **kwargs,
    )


CATEGORY_A = CategoryPolicy(
    category_id=1,
    guild_id="900",
    name="Strat Op",
    min_spacing=timedelta(hours=2),
    max_advance=timedelta(hours=24),
)


class TestSpacingScenario:
    """Category A: 2h spacing, 24h advance window."""

    def test_first_fleet_accepted(self):
        result = validate_form_up_time(CATEGORY_A, [], NOW + timedelta(hours=1), NOW)
        assert isinstance(result, Accept)

    def test_overlapping_fleet_rejected(self):
        existing = [make_fleet(1, NOW + timedelta(hours=1))]

        result = validate_form_up_time(
            CATEGORY_A, existing, NOW + timedelta(hours=2, minutes=30), NOW
        )

        assert isinstance(result, Reject)
        assert result.reason == RejectReason.overlaps
        assert result.conflicting_fleet_id == 1
        assert "2h" in result.message

    def test_exact_spacing_accepted(self):
        existing = [make_fleet(1, NOW + timedelta(hours=1))]

        result = validate_form_up_time(CATEGORY_A, existing, NOW + timedelta(hours=3), NOW)

        assert isinstance(result, Accept)

    def test_spacing_applies_before_existing_fleet_too(self):
        existing = [make_fleet(1, NOW + timedelta(hours=5))]

        result = validate_form_up_time(CATEGORY_A, existing, NOW + timedelta(hours=4), NOW)

        assert isinstance(result, Reject)
        assert result.reason == RejectReason.overlaps


class TestAdvanceWindow:
    def test_exactly_max_advance_accepted(self):
        result = validate_form_up_time(CATEGORY_A, [], NOW + timedelta(hours=24), NOW)
        assert isinstance(result, Accept)

    def test_beyond_max_advance_rejected(self):
        result = validate_form_up_time(
            CATEGORY_A, [], NOW + timedelta(hours=24, microseconds=1), NOW
        )
        assert isinstance(result, Reject)
        assert result.reason == RejectReason.too_far_in_advance

    def test_unlimited_advance(self):
        policy = CategoryPolicy(category_id=2, guild_id="900", name="Roam")
        result = validate_form_up_time(policy, [], NOW + timedelta(days=365), NOW)
        assert isinstance(result, Accept)


class TestPastTimes:
    def test_now_is_rejected(self):
        result = validate_form_up_time(CATEGORY_A, [], NOW, NOW)
        assert isinstance(result, Reject)
        assert result.reason == RejectReason.in_past

    def test_past_is_rejected(self):
        result = validate_form_up_time(CATEGORY_A, [], NOW - timedelta(minutes=5), NOW)
        assert result.reason == RejectReason.in_past


class TestIgnoredFleets:
    def test_zero_spacing_allows_concurrent_fleets(self):
        policy = CategoryPolicy(category_id=1, guild_id="900", name="Roam")
        existing = [make_fleet(1, NOW + timedelta(hours=1))]

        result = validate_form_up_time(policy, existing, NOW + timedelta(hours=1), NOW)

        assert isinstance(result, Accept)

    def test_other_categories_ignored(self):
        existing = [make_fleet(1, NOW + timedelta(hours=1), category_id=7)]
        result = validate_form_up_time(CATEGORY_A, existing, NOW + timedelta(hours=1), NOW)
        assert isinstance(result, Accept)

    def test_cancelled_fleets_ignored(self):
        existing = [
            make_fleet(1, NOW + timedelta(hours=1), status=FleetStatus.cancelled)
        ]
        result = validate_form_up_time(CATEGORY_A, existing, NOW + timedelta(hours=1), NOW)
        assert isinstance(result, Accept)

    def test_expired_fleets_ignored(self):
        existing = [make_fleet(1, NOW - timedelta(hours=1, minutes=1))]
        result = validate_form_up_time(CATEGORY_A, existing, NOW + timedelta(minutes=30), NOW)
        assert isinstance(result, Accept)

    def test_rescheduled_fleet_does_not_conflict_with_itself(self):
        existing = [make_fleet(1, NOW + timedelta(hours=1))]

        result = validate_form_up_time(
            CATEGORY_A, existing, NOW + timedelta(hours=1, minutes=30), NOW, exclude_fleet_id=1
        )

        assert isinstance(result, Accept)


class TestAcceptedFleet:
    def test_returns_fleet_of_accept(self):
        fleet = make_fleet(1, NOW + timedelta(hours=1))
        assert accepted_fleet(Accept(fleet)) is fleet

    def test_reject_raises_with_rejection_attached(self):
        rejection = Reject(RejectReason.in_past, "Form-up time must be in the future")

        with pytest.raises(FleetValidationError) as exc_info:
            accepted_fleet(rejection)

        assert exc_info.value.rejection is rejection
        assert str(exc_info.value) == "Form-up time must be in the future"
