"""Reference catalog: read access to teams, groups, events, athletes and registrations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from meet.errors import NotFoundError
from meet.models import (
    Athlete,
    Event,
    Group,
    GroupEventMapping,
    Registration,
    RegistrationStatus,
    Team,
)


async def get_team(session: AsyncSession, team_id: int) -> Team:
    team = await session.get(Team, team_id)
    if not team:
        raise NotFoundError("Team", team_id)
    return team


async def get_group(session: AsyncSession, group_id: int) -> Group:
    group = await session.get(Group, group_id)
    if not group:
        raise NotFoundError("Group", group_id)
    return group


async def get_event(session: AsyncSession, event_id: int) -> Event:
    event = await session.get(Event, event_id)
    if not event:
        raise NotFoundError("Event", event_id)
    return event


async def get_athlete(session: AsyncSession, athlete_id: int, *, for_update: bool = False) -> Athlete:
    """Get athlete by ID. ``for_update`` row-locks it until the transaction ends."""
    query = select(Athlete).where(Athlete.id == athlete_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    athlete = result.scalar_one_or_none()
    if not athlete:
        raise NotFoundError("Athlete", athlete_id)
    return athlete


async def get_mapping(session: AsyncSession, group_id: int, event_id: int) -> Optional[GroupEventMapping]:
    result = await session.execute(
        select(GroupEventMapping).where(
            GroupEventMapping.group_id == group_id,
            GroupEventMapping.event_id == event_id,
        )
    )
    return result.scalar_one_or_none()


async def is_event_mapped_to_group(session: AsyncSession, event_id: int, group_id: int) -> bool:
    return await get_mapping(session, group_id, event_id) is not None


async def lock_group_events(session: AsyncSession, group_id: int, event_ids: list[int]) -> list[GroupEventMapping]:
    """Row-lock the (group, event) mapping rows in ascending event order.

    The mapping row doubles as the per-(event, group) lock for capacity checks.
    Backends without ``FOR UPDATE`` (SQLite) read the rows unlocked.
    """
    if not event_ids:
        return []
    result = await session.execute(
        select(GroupEventMapping)
        .where(
            GroupEventMapping.group_id == group_id,
            GroupEventMapping.event_id.in_(event_ids),
        )
        .order_by(GroupEventMapping.event_id)
        .with_for_update()
    )
    return list(result.scalars().all())


async def list_group_events(
    session: AsyncSession, group_id: int, mandatory: Optional[bool] = None
) -> list[Event]:
    """Events mapped to a group, ordered by id. Filter on the mandatory flag when given."""
    query = (
        select(Event)
        .join(GroupEventMapping, GroupEventMapping.event_id == Event.id)
        .where(GroupEventMapping.group_id == group_id)
        .order_by(Event.id)
    )
    if mandatory is not None:
        query = query.where(GroupEventMapping.is_mandatory == mandatory)
    result = await session.execute(query)
    return list(result.scalars().all())


@dataclass(frozen=True)
class RegistrationFilter:
    """Filter for confirmed registration lookups. ``None`` fields are ignored.

    ``leaders_only`` restricts to team-level rows (no athlete).
    """

    team_id: Optional[int] = None
    group_id: Optional[int] = None
    event_id: Optional[int] = None
    athlete_id: Optional[int] = None
    leaders_only: bool = False

    def apply(self, query):
        query = query.where(Registration.status == RegistrationStatus.CONFIRMED)
        if self.team_id is not None:
            query = query.where(Registration.team_id == self.team_id)
        if self.group_id is not None:
            query = query.where(Registration.group_id == self.group_id)
        if self.event_id is not None:
            query = query.where(Registration.event_id == self.event_id)
        if self.athlete_id is not None:
            query = query.where(Registration.athlete_id == self.athlete_id)
        if self.leaders_only:
            query = query.where(Registration.athlete_id.is_(None))
        return query


async def list_confirmed_registrations(session: AsyncSession, filter: RegistrationFilter) -> list[Registration]:
    result = await session.execute(filter.apply(select(Registration)).order_by(Registration.id))
    return list(result.scalars().all())


async def count_confirmed_registrations(session: AsyncSession, filter: RegistrationFilter) -> int:
    result = await session.execute(filter.apply(select(func.count(Registration.id))))
    return result.scalar_one()


async def count_athletes(session: AsyncSession, team_id: int, group_id: Optional[int] = None) -> int:
    query = select(func.count(Athlete.id)).where(Athlete.team_id == team_id)
    if group_id is not None:
        query = query.where(Athlete.group_id == group_id)
    result = await session.execute(query)
    return result.scalar_one()


class TeamDirectory:
    """Resolves organization codes to team IDs.

    Explicit ``CODE -> team_id`` entries (from configuration) win; anything else
    is looked up by ``teams.org_code``.
    """

    def __init__(self, codes: Optional[dict[str, int]] = None):
        self._codes = {k.upper(): v for k, v in (codes or {}).items()}

    async def resolve(self, session: AsyncSession, org_code: str) -> Team:
        code = (org_code or "").strip().upper()
        if not code:
            raise NotFoundError("Organization", org_code)
        team_id = self._codes.get(code)
        if team_id is not None:
            return await get_team(session, team_id)
        result = await session.execute(
            select(Team).where(func.upper(Team.org_code) == code).order_by(Team.id).limit(1)
        )
        team = result.scalar_one_or_none()
        if not team:
            raise NotFoundError("Organization", org_code)
        return team
