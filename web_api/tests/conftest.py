# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Routes run against the in-memory fleet store and a fake role directory, so
API tests need neither a database nor a Discord connection.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from core.fleets.policy import CategoryPolicy
from core.tests.fakes import FakeRoleDirectory, InMemoryFleetStore

GUILD = "900"
COMMANDER = "42"
PILOT = "43"
DIRECTOR = "44"

STRAT_OP = CategoryPolicy(
    category_id=1,
    guild_id=GUILD,
    name="Strat Op",
    min_spacing=timedelta(hours=2),
    max_advance=timedelta(days=2),
    reminder_lead=timedelta(hours=1),
    creator_roles=frozenset({"20"}),
    manager_roles=frozenset({"30"}),
    destinations=("500",),
)

CAPITALS = CategoryPolicy(
    category_id=2,
    guild_id=GUILD,
    name="Capitals",
    viewer_roles=frozenset({"10"}),
    creator_roles=frozenset({"20"}),
    destinations=("501",),
)


@pytest.fixture
def store():
    return InMemoryFleetStore([STRAT_OP, CAPITALS])


@pytest.fixture
def directory():
    return FakeRoleDirectory(
        member_roles={COMMANDER: {"20"}, PILOT: set(), DIRECTOR: {"30", "10"}},
    )


@pytest.fixture
def as_user(store, directory):
    """Returns a function that makes a TestClient authenticated as a Discord user."""
    from main import app
    from web_api.auth import get_current_user
    from web_api.routes.fleets import get_fleet_store, get_role_directory

    app.dependency_overrides[get_fleet_store] = lambda: store
    app.dependency_overrides[get_role_directory] = lambda: directory

    def make_client(user_id: str) -> TestClient:
        app.dependency_overrides[get_current_user] = lambda: {
            "sub": user_id,
            "username": f"pilot-{user_id}",
        }
        return TestClient(app)

    yield make_client
    app.dependency_overrides.clear()
