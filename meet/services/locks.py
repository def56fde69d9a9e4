"""In-process keyed locks serialising writers that touch the same quota."""
from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Hashable, Iterable


def athlete_key(athlete_id: int) -> tuple:
    return ("athlete", athlete_id)


def event_key(event_id: int, group_id: int) -> tuple:
    return ("event", event_id, group_id)


def team_group_key(team_id: int, group_id: int) -> tuple:
    return ("team-group", team_id, group_id)


def leaders_key(team_id: int, group_id: int) -> tuple:
    return ("leaders", team_id, group_id)


class LockRegistry:
    """Hands out one asyncio.Lock per key.

    ``hold`` takes several keys at once in sorted order, so two callers asking
    for overlapping key sets can never deadlock each other. Locks are never
    evicted; the key space is bounded by the number of athletes and events.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def _lock(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, keys: Iterable[Hashable]):
        ordered = sorted(set(keys), key=repr)
        async with AsyncExitStack() as stack:
            for key in ordered:
                await stack.enter_async_context(self._lock(key))
            yield ordered
