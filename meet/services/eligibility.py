"""Eligibility checks: may an athlete of a group enter an event?"""
from __future__ import annotations

from enum import Enum
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from meet.models import Event
from meet.services import catalog


class Eligibility(str, Enum):
    MANDATORY = "MANDATORY"
    OPTIONAL = "OPTIONAL"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"


async def classify(session: AsyncSession, group_id: int, event_id: int) -> Eligibility:
    """Classify an event for a group from the mapping row alone.

    Raises NotFoundError when either the group or the event does not exist.
    """
    await catalog.get_group(session, group_id)
    await catalog.get_event(session, event_id)
    mapping = await catalog.get_mapping(session, group_id, event_id)
    if mapping is None:
        return Eligibility.NOT_ELIGIBLE
    return Eligibility.MANDATORY if mapping.is_mandatory else Eligibility.OPTIONAL


async def is_eligible(session: AsyncSession, group_id: int, event_id: int) -> bool:
    return await classify(session, group_id, event_id) != Eligibility.NOT_ELIGIBLE


async def list_eligible_events(session: AsyncSession, group_id: int) -> list[Event]:
    await catalog.get_group(session, group_id)
    return await catalog.list_group_events(session, group_id)


async def list_mandatory_events(session: AsyncSession, group_id: int) -> list[Event]:
    await catalog.get_group(session, group_id)
    return await catalog.list_group_events(session, group_id, mandatory=True)


async def list_optional_events(session: AsyncSession, group_id: int) -> list[Event]:
    await catalog.get_group(session, group_id)
    return await catalog.list_group_events(session, group_id, mandatory=False)


async def missing_mandatory(session: AsyncSession, group_id: int, event_ids: Iterable[int]) -> list[int]:
    """Mandatory events of the group that are absent from ``event_ids``. Informational only."""
    chosen = set(event_ids)
    mandatory = await catalog.list_group_events(session, group_id, mandatory=True)
    return [e.id for e in mandatory if e.id not in chosen]
