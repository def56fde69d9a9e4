"""Quota evaluation across team, group, athlete and event dimensions.

Every check is a pure read of committed state plus a proposed delta and returns
a :class:`QuotaCheck`. Nothing here writes; callers decide whether to raise.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from meet.errors import QuotaExceeded
from meet.services import catalog
from meet.services.catalog import RegistrationFilter

ATHLETES_PER_TEAM = "athletes-per-team"
LEADERS_PER_TEAM = "leaders-per-team"
EVENTS_PER_ATHLETE = "events-per-athlete"
EVENT_CAPACITY = "event-capacity"


@dataclass(frozen=True)
class QuotaCheck:
    """Outcome of one quota check. ``current`` is the projected count after the delta."""

    dimension: str
    current: int
    limit: int
    ok: bool
    event_id: Optional[int] = None
    unlimited: bool = False

    @property
    def reason(self) -> str:
        if self.unlimited:
            return f"{self.dimension}: unlimited"
        if self.ok:
            return f"{self.dimension}: {self.current}/{self.limit}"
        return f"{self.dimension}: {self.current} exceeds limit {self.limit}"

    def raise_for_violation(self) -> "QuotaCheck":
        """Raise QuotaExceeded when the check failed, else return self."""
        if not self.ok:
            raise QuotaExceeded(self.dimension, self.current, self.limit, event_id=self.event_id)
        return self


def _bounded(dimension: str, current: int, limit: int, event_id: Optional[int] = None) -> QuotaCheck:
    return QuotaCheck(dimension=dimension, current=current, limit=limit, ok=current <= limit, event_id=event_id)


async def check_athlete_count(
    session: AsyncSession, team_id: int, group_id: int, proposed_delta: int = 1
) -> QuotaCheck:
    """Athletes enrolled by the team in the group, plus delta, against max_athletes_per_team."""
    group = await catalog.get_group(session, group_id)
    count = await catalog.count_athletes(session, team_id, group_id)
    return _bounded(ATHLETES_PER_TEAM, count + proposed_delta, group.max_athletes_per_team)


async def check_leader_count(
    session: AsyncSession, team_id: int, group_id: int, proposed_delta: int = 1
) -> QuotaCheck:
    """Confirmed team-level (athlete-less) registrations, plus delta, against max_leaders_per_team."""
    group = await catalog.get_group(session, group_id)
    count = await catalog.count_confirmed_registrations(
        session, RegistrationFilter(team_id=team_id, group_id=group_id, leaders_only=True)
    )
    return _bounded(LEADERS_PER_TEAM, count + proposed_delta, group.max_leaders_per_team)


async def check_events_per_athlete(
    session: AsyncSession, athlete_id: int, proposed_event_ids: Iterable[int]
) -> QuotaCheck:
    """Size of the proposed *final* event set against max_events_per_athlete.

    Registrations are replaced wholesale, so the existing set is irrelevant here.
    """
    athlete = await catalog.get_athlete(session, athlete_id)
    group = await catalog.get_group(session, athlete.group_id)
    return _bounded(EVENTS_PER_ATHLETE, len(set(proposed_event_ids)), group.max_events_per_athlete)


async def check_event_capacity(
    session: AsyncSession,
    event_id: int,
    group_id: int,
    excluding_athlete_id: Optional[int] = None,
    proposed_delta: int = 1,
) -> QuotaCheck:
    """Confirmed registrations for (event, group) against max_participants_per_event.

    A limit of 0 means unlimited and always passes. An athlete that already
    holds a confirmed slot is subtracted once, so re-submitting an event they
    hold does not consume a second slot.
    """
    group = await catalog.get_group(session, group_id)
    count = await catalog.count_confirmed_registrations(
        session, RegistrationFilter(event_id=event_id, group_id=group_id)
    )
    held = 0
    if excluding_athlete_id is not None:
        held = await catalog.count_confirmed_registrations(
            session,
            RegistrationFilter(event_id=event_id, group_id=group_id, athlete_id=excluding_athlete_id),
        )
    projected = count - min(held, 1) + proposed_delta
    if not group.has_event_cap:
        return QuotaCheck(
            dimension=EVENT_CAPACITY,
            current=projected,
            limit=0,
            ok=True,
            event_id=event_id,
            unlimited=True,
        )
    return _bounded(EVENT_CAPACITY, projected, group.max_participants_per_event, event_id=event_id)
