"""Pytest fixtures for core query tests."""

import os

import pytest
import pytest_asyncio
from dotenv import load_dotenv

load_dotenv(".env.local")


def pytest_collection_modifyitems(config, items):
    """Query tests talk to a real PostgreSQL; skip them when none is configured."""
    if os.environ.get("DATABASE_URL"):
        return
    skip = pytest.mark.skip(reason="DATABASE_URL not set")
    for item in items:
        if "core/queries/tests" in str(item.fspath):
            item.add_marker(skip)


@pytest_asyncio.fixture
async def db_conn():
    """
    Provide a DB connection that rolls back after each test.

    All changes made during the test are visible within the test,
    but rolled back afterward so DB stays clean.
    """
    from core.database import close_engine, get_engine

    engine = get_engine()

    async with engine.connect() as conn:
        txn = await conn.begin()
        try:
            yield conn
        finally:
            await txn.rollback()

    await close_engine()
