"""
Per-fleet and per-category locks.

Service mutations and dispatcher processing of the same fleet are serialized
through one asyncio.Lock per fleet ID. Proposals and reschedules additionally
hold their category's lock so two overlapping fleets can't both pass
validation. Everything runs on a single event loop, so an in-process registry
is enough; the store's version check catches anything that slips past it.

Lock order is always category, then fleet.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

_fleet_locks: dict[int, asyncio.Lock] = {}
_category_locks: dict[int, asyncio.Lock] = {}


def _get_lock(registry: dict[int, asyncio.Lock], key: int) -> asyncio.Lock:
    lock = registry.get(key)
    if lock is None:
        lock = asyncio.Lock()
        registry[key] = lock
    return lock


@asynccontextmanager
async def fleet_lock(fleet_id: int) -> AsyncGenerator[None, None]:
    """
    Hold the fleet's lock for the duration of a read-modify-write.

    Usage:
        async with fleet_lock(fleet_id):
            fleet = await store.load_fleet(fleet_id)
            ...
            await store.save_fleet(fleet)
    """
    async with _get_lock(_fleet_locks, fleet_id):
        yield


@asynccontextmanager
async def category_lock(category_id: int) -> AsyncGenerator[None, None]:
    """Hold the category's lock while validating spacing and writing."""
    async with _get_lock(_category_locks, category_id):
        yield


def forget_fleet(fleet_id: int) -> None:
    """Drop the lock of an inert fleet so the registry doesn't grow forever."""
    lock = _fleet_locks.get(fleet_id)
    if lock is not None and not lock.locked():
        del _fleet_locks[fleet_id]


def clear_locks() -> None:
    """Reset the registries (tests)."""
    _fleet_locks.clear()
    _category_locks.clear()
