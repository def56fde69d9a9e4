"""Athlete enrollment and leader slots, guarded by the per-team quotas."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meet.errors import AuthorizationError, NotFoundError, RegistrationConflictError
from meet.models import Athlete, Registration, RegistrationStatus
from meet.services import catalog, quota
from meet.services.catalog import RegistrationFilter

logger = logging.getLogger("meet.enrollment")


def _clean_id_number(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


async def _check_id_number_free(
    session: AsyncSession, team_id: int, id_number: Optional[str], exclude_athlete_id: Optional[int] = None
) -> None:
    if not id_number:
        return
    query = select(Athlete).where(Athlete.team_id == team_id, Athlete.id_number == id_number)
    if exclude_athlete_id is not None:
        query = query.where(Athlete.id != exclude_athlete_id)
    result = await session.execute(query)
    if result.scalars().first():
        raise RegistrationConflictError(f"ID number {id_number} is already enrolled in team {team_id}")


async def _owned_athlete(session: AsyncSession, team_id: int, athlete_id: int, *, for_update: bool = False) -> Athlete:
    athlete = await catalog.get_athlete(session, athlete_id, for_update=for_update)
    if athlete.team_id != team_id:
        raise AuthorizationError(f"Athlete {athlete_id} does not belong to team {team_id}")
    return athlete


async def _holds_registrations(session: AsyncSession, team_id: int, athlete_id: int) -> bool:
    count = await catalog.count_confirmed_registrations(
        session, RegistrationFilter(team_id=team_id, athlete_id=athlete_id)
    )
    return count > 0


async def enroll_athlete(
    session: AsyncSession, team_id: int, group_id: int, name: str, id_number: Optional[str] = None
) -> Athlete:
    """Enroll a new athlete. Call inside a transaction; the caller commits."""
    await catalog.get_team(session, team_id)
    (await quota.check_athlete_count(session, team_id, group_id, proposed_delta=1)).raise_for_violation()
    id_number = _clean_id_number(id_number)
    await _check_id_number_free(session, team_id, id_number)
    athlete = Athlete(team_id=team_id, group_id=group_id, name=name.strip(), id_number=id_number)
    session.add(athlete)
    await session.flush()
    logger.info("Enrolled athlete %s (%s) in team %s group %s", athlete.id, athlete.name, team_id, group_id)
    return athlete


async def update_athlete(
    session: AsyncSession,
    team_id: int,
    athlete_id: int,
    name: Optional[str] = None,
    id_number: Optional[str] = None,
    group_id: Optional[int] = None,
) -> Athlete:
    """Rename, re-number or move an athlete.

    Moving to another group is refused while the athlete holds confirmed
    registrations: they were validated against the old group's rules and must
    be withdrawn explicitly first.
    """
    athlete = await _owned_athlete(session, team_id, athlete_id, for_update=True)
    if group_id is not None and group_id != athlete.group_id:
        if await _holds_registrations(session, team_id, athlete_id):
            raise RegistrationConflictError(
                f"Athlete {athlete_id} holds registrations; withdraw them before changing group"
            )
        (await quota.check_athlete_count(session, team_id, group_id, proposed_delta=1)).raise_for_violation()
        logger.info("Moving athlete %s from group %s to %s", athlete_id, athlete.group_id, group_id)
        athlete.group_id = group_id
    if id_number is not None:
        cleaned = _clean_id_number(id_number)
        await _check_id_number_free(session, team_id, cleaned, exclude_athlete_id=athlete_id)
        athlete.id_number = cleaned
    if name is not None and name.strip():
        athlete.name = name.strip()
    await session.flush()
    return athlete


async def remove_athlete(session: AsyncSession, team_id: int, athlete_id: int) -> None:
    """Delete an athlete that holds no confirmed registrations.

    Leftover PENDING/CANCELLED rows go with it.
    """
    athlete = await _owned_athlete(session, team_id, athlete_id, for_update=True)
    if await _holds_registrations(session, team_id, athlete_id):
        raise RegistrationConflictError(f"Athlete {athlete_id} holds registrations; withdraw them first")
    result = await session.execute(select(Registration).where(Registration.athlete_id == athlete_id))
    for row in result.scalars().all():
        await session.delete(row)
    await session.delete(athlete)
    await session.flush()
    logger.info("Removed athlete %s from team %s", athlete_id, team_id)


async def register_leader(session: AsyncSession, team_id: int, group_id: int) -> Registration:
    """Take one leader/coach slot (a confirmed row with no athlete and no event)."""
    await catalog.get_team(session, team_id)
    (await quota.check_leader_count(session, team_id, group_id, proposed_delta=1)).raise_for_violation()
    row = Registration(
        team_id=team_id, group_id=group_id, athlete_id=None, event_id=None, status=RegistrationStatus.CONFIRMED
    )
    session.add(row)
    await session.flush()
    logger.info("Registered leader slot %s for team %s group %s", row.id, team_id, group_id)
    return row


async def remove_leader(session: AsyncSession, team_id: int, registration_id: int) -> None:
    row = await session.get(Registration, registration_id)
    if not row or row.athlete_id is not None or row.event_id is not None:
        raise NotFoundError("Leader registration", registration_id)
    if row.team_id != team_id:
        raise AuthorizationError(f"Leader registration {registration_id} does not belong to team {team_id}")
    await session.delete(row)
    await session.flush()
