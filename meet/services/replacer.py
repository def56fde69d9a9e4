"""Wholesale replacement of an athlete's event registrations.

The caller names the complete set of events the athlete should hold. The set
is validated as a whole, then reconciled against the stored confirmed rows in
one transaction: either the stored set ends up equal to the target, or nothing
changes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from meet.errors import (
    AuthorizationError,
    IneligibleEventError,
    PersistenceError,
    RegistrationConflictError,
    RegistrationError,
)
from meet.models import Athlete, Registration, RegistrationStatus
from meet.services import catalog, eligibility, quota
from meet.services.catalog import RegistrationFilter
from meet.services.locks import LockRegistry, athlete_key, event_key

logger = logging.getLogger("meet.replace")


class ReplaceState(str, Enum):
    VALIDATING = "VALIDATING"
    COMMITTING = "COMMITTING"
    DONE = "DONE"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class RegistrationDiff:
    to_delete: frozenset[int]
    to_insert: frozenset[int]
    unchanged: frozenset[int]


def diff_registration_sets(existing: Iterable[int], target: Iterable[int]) -> RegistrationDiff:
    """Set reconciliation between the stored and the requested event IDs."""
    existing_set = frozenset(existing)
    target_set = frozenset(target)
    return RegistrationDiff(
        to_delete=existing_set - target_set,
        to_insert=target_set - existing_set,
        unchanged=existing_set & target_set,
    )


def normalize_event_ids(event_ids: Iterable[int]) -> list[int]:
    """Deduplicate and sort ascending, the order validation errors are reported in."""
    normalized = set()
    for event_id in event_ids:
        if isinstance(event_id, bool) or not isinstance(event_id, int):
            raise TypeError(f"event ids must be integers, got {event_id!r}")
        normalized.add(event_id)
    return sorted(normalized)


@dataclass(frozen=True)
class ReplaceResult:
    team_id: int
    athlete_id: int
    event_ids: list[int]
    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)
    missing_mandatory: list[int] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "total": len(self.event_ids),
            "added": len(self.added),
            "removed": len(self.removed),
            "unchanged": len(self.unchanged),
        }


def _transition(athlete_id: int, state: ReplaceState) -> ReplaceState:
    logger.debug("athlete %s registration replace -> %s", athlete_id, state.value)
    return state


async def get_athlete_registered_event_ids(session: AsyncSession, team_id: int, athlete_id: int) -> list[int]:
    """Event IDs the athlete holds confirmed registrations for, on behalf of ``team_id``."""
    athlete = await catalog.get_athlete(session, athlete_id)
    _check_owner(athlete, team_id)
    rows = await catalog.list_confirmed_registrations(
        session, RegistrationFilter(team_id=team_id, athlete_id=athlete_id)
    )
    return sorted({r.event_id for r in rows if r.event_id is not None})


def _check_owner(athlete: Athlete, team_id: int) -> None:
    if athlete.team_id != team_id:
        raise AuthorizationError(f"Athlete {athlete.id} does not belong to team {team_id}")


async def _held_rows(session: AsyncSession, team_id: int, athlete_id: int) -> list[Registration]:
    """Every event row this team holds for the athlete, whatever its status."""
    result = await session.execute(
        select(Registration)
        .where(
            Registration.team_id == team_id,
            Registration.athlete_id == athlete_id,
            Registration.event_id.is_not(None),
        )
        .order_by(Registration.id)
    )
    return list(result.scalars().all())


async def _validate(session: AsyncSession, athlete: Athlete, group_id: int, target: list[int]) -> None:
    """Structural then per-event validation. Raises on the first violation."""
    (await quota.check_events_per_athlete(session, athlete.id, target)).raise_for_violation()
    if not target:
        return
    await catalog.lock_group_events(session, group_id, target)
    for event_id in target:
        kind = await eligibility.classify(session, group_id, event_id)
        if kind == eligibility.Eligibility.NOT_ELIGIBLE:
            raise IneligibleEventError(event_id, group_id)
        check = await quota.check_event_capacity(
            session, event_id, group_id, excluding_athlete_id=athlete.id, proposed_delta=1
        )
        logger.debug("athlete %s event %s capacity %s", athlete.id, event_id, check.reason)
        check.raise_for_violation()


async def _apply(
    session: AsyncSession, athlete: Athlete, team_id: int, held: list[Registration], diff: RegistrationDiff
) -> None:
    """Delete what left the set, insert what joined it, keep the rest untouched.

    Non-confirmed rows for events that join the set are superseded by the new
    confirmed row.
    """
    for row in held:
        confirmed = row.status == RegistrationStatus.CONFIRMED
        if (confirmed and row.event_id in diff.to_delete) or (not confirmed and row.event_id in diff.to_insert):
            await session.delete(row)
    await session.flush()
    for event_id in sorted(diff.to_insert):
        session.add(
            Registration(
                team_id=team_id,
                athlete_id=athlete.id,
                group_id=athlete.group_id,
                event_id=event_id,
                status=RegistrationStatus.CONFIRMED,
            )
        )
    await session.flush()


async def replace_registrations(
    session: AsyncSession,
    team_id: int,
    athlete_id: int,
    event_ids: Iterable[int],
    locks: Optional[LockRegistry] = None,
) -> ReplaceResult:
    """Replace the athlete's confirmed event set with ``event_ids``.

    ``session`` must not be inside a transaction; this function opens and
    commits its own. Raises NotFoundError, AuthorizationError,
    IneligibleEventError or QuotaExceeded before any write, and
    PersistenceError if the store fails (nothing is applied in that case).
    """
    target = normalize_event_ids(event_ids)
    logger.info("Replacing registrations: team=%s athlete=%s events=%s", team_id, athlete_id, target)
    locks = locks or LockRegistry()

    try:
        async with session.begin():
            peeked = await catalog.get_athlete(session, athlete_id)
            group_id = peeked.group_id
        session.expunge_all()
    except SQLAlchemyError as exc:
        logger.exception("Loading athlete %s failed", athlete_id)
        raise PersistenceError(f"Could not load athlete {athlete_id}") from exc

    keys = [athlete_key(athlete_id)] + [event_key(e, group_id) for e in target]
    async with locks.hold(keys):
        state = _transition(athlete_id, ReplaceState.VALIDATING)
        try:
            async with session.begin():
                athlete = await catalog.get_athlete(session, athlete_id, for_update=True)
                _check_owner(athlete, team_id)
                if athlete.group_id != group_id:
                    raise RegistrationConflictError(
                        f"Athlete {athlete_id} changed group during the update; retry"
                    )
                held = await _held_rows(session, team_id, athlete_id)
                existing = {r.event_id for r in held if r.status == RegistrationStatus.CONFIRMED}

                await _validate(session, athlete, group_id, target)
                missing = await eligibility.missing_mandatory(session, group_id, target)

                state = _transition(athlete_id, ReplaceState.COMMITTING)
                diff = diff_registration_sets(existing, target)
                await _apply(session, athlete, team_id, held, diff)
        except RegistrationError as exc:
            _transition(athlete_id, ReplaceState.REJECTED)
            logger.warning("Registration replace rejected for athlete %s: %s", athlete_id, exc)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Registration replace for athlete %s failed in %s", athlete_id, state.value)
            raise PersistenceError(f"Could not save registrations for athlete {athlete_id}") from exc

    _transition(athlete_id, ReplaceState.DONE)
    result = ReplaceResult(
        team_id=team_id,
        athlete_id=athlete_id,
        event_ids=target,
        added=sorted(diff.to_insert),
        removed=sorted(diff.to_delete),
        unchanged=sorted(diff.unchanged),
        missing_mandatory=missing,
    )
    logger.info("Athlete %s registrations replaced: %s", athlete_id, result.counts)
    return result
