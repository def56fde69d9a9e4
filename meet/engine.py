"""RegistrationEngine - the interface the HTTP layer (or any caller) talks to."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import config
from meet.errors import PersistenceError, RegistrationConflictError
from meet.models import Athlete, Event, Registration, Team
from meet.models.base import async_session_factory
from meet.services import enrollment, eligibility, replacer, summary
from meet.services.catalog import TeamDirectory
from meet.services.locks import LockRegistry, athlete_key, leaders_key, team_group_key
from meet.services.replacer import ReplaceResult
from meet.services.summary import SummaryRecord

logger = logging.getLogger("meet.engine")


class RegistrationEngine:
    """Validates and applies registration changes against the record store.

    One instance per process: the lock registry it owns is what serialises
    concurrent writers touching the same athlete, event or team quota.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        directory: Optional[TeamDirectory] = None,
        locks: Optional[LockRegistry] = None,
    ):
        self._session_factory = session_factory
        self.directory = directory or TeamDirectory(config.ORG_TEAM_CODES)
        self.locks = locks or LockRegistry()

    @asynccontextmanager
    async def _write(self, what: str, keys: Iterable = ()):
        """Hold ``keys``, open a transaction, commit on exit; map store failures to typed errors."""
        async with self.locks.hold(keys):
            async with self._session_factory() as session:
                try:
                    async with session.begin():
                        yield session
                except IntegrityError as exc:
                    logger.warning("%s conflicted with existing data: %s", what, exc.orig)
                    raise RegistrationConflictError(f"{what} conflicts with existing data") from exc
                except SQLAlchemyError as exc:
                    logger.exception("%s failed", what)
                    raise PersistenceError(f"{what} failed; nothing was saved") from exc

    # --- Queries ---

    async def list_eligible_events(self, group_id: int) -> list[Event]:
        async with self._session_factory() as session:
            return await eligibility.list_eligible_events(session, group_id)

    async def list_mandatory_events(self, group_id: int) -> list[Event]:
        async with self._session_factory() as session:
            return await eligibility.list_mandatory_events(session, group_id)

    async def classify_event(self, group_id: int, event_id: int) -> eligibility.Eligibility:
        async with self._session_factory() as session:
            return await eligibility.classify(session, group_id, event_id)

    async def get_athlete_registered_event_ids(self, team_id: int, athlete_id: int) -> list[int]:
        async with self._session_factory() as session:
            return await replacer.get_athlete_registered_event_ids(session, team_id, athlete_id)

    async def get_registration_summary(self, team_id: int) -> list[SummaryRecord]:
        async with self._session_factory() as session:
            return await summary.get_registration_summary(session, team_id)

    async def get_event_statistics(self, team_id: int, event_id: int) -> dict:
        async with self._session_factory() as session:
            return await summary.get_event_statistics(session, team_id, event_id)

    async def resolve_team(self, org_code: str) -> Team:
        async with self._session_factory() as session:
            return await self.directory.resolve(session, org_code)

    @staticmethod
    def has_access(team_id: int, target_team_id: int) -> bool:
        """A team may only read and write its own registration data."""
        return team_id == target_team_id

    # --- Writes ---

    async def replace_athlete_registrations(
        self, team_id: int, athlete_id: int, event_ids: Iterable[int]
    ) -> ReplaceResult:
        async with self._session_factory() as session:
            return await replacer.replace_registrations(
                session, team_id, athlete_id, event_ids, locks=self.locks
            )

    async def enroll_athlete(
        self, team_id: int, group_id: int, name: str, id_number: Optional[str] = None
    ) -> Athlete:
        async with self._write("Enrolling athlete", [team_group_key(team_id, group_id)]) as session:
            return await enrollment.enroll_athlete(session, team_id, group_id, name, id_number)

    async def update_athlete(
        self,
        team_id: int,
        athlete_id: int,
        name: Optional[str] = None,
        id_number: Optional[str] = None,
        group_id: Optional[int] = None,
    ) -> Athlete:
        keys = [athlete_key(athlete_id)]
        if group_id is not None:
            keys.append(team_group_key(team_id, group_id))
        async with self._write(f"Updating athlete {athlete_id}", keys) as session:
            return await enrollment.update_athlete(session, team_id, athlete_id, name, id_number, group_id)

    async def remove_athlete(self, team_id: int, athlete_id: int) -> None:
        async with self._write(f"Removing athlete {athlete_id}", [athlete_key(athlete_id)]) as session:
            await enrollment.remove_athlete(session, team_id, athlete_id)

    async def register_leader(self, team_id: int, group_id: int) -> Registration:
        async with self._write("Registering leader", [leaders_key(team_id, group_id)]) as session:
            return await enrollment.register_leader(session, team_id, group_id)

    async def remove_leader(self, team_id: int, registration_id: int) -> None:
        async with self._write(f"Removing leader {registration_id}") as session:
            await enrollment.remove_leader(session, team_id, registration_id)
