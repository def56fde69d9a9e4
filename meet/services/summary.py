"""Read-only registration summaries: limit vs. actual per group and category."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meet.models import Athlete, Group
from meet.services import catalog
from meet.services.catalog import RegistrationFilter

logger = logging.getLogger("meet.summary")


class SummaryType:
    LEADER = "LEADER"
    ATHLETE = "ATHLETE"
    EVENT = "EVENT"
    TOTAL = "TOTAL"


def usage_rate(actual: int, limit: Optional[int]) -> Optional[float]:
    """Percentage of ``limit`` used, rounded half-up to 2 places. None when there is no limit."""
    if not limit:
        return None
    rate = Decimal(actual) * 100 / Decimal(limit)
    return float(rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SummaryRecord:
    label: str
    limit: Optional[int]
    actual: int
    usage_rate: Optional[float]
    is_over_limit: bool
    type: str
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    event_id: Optional[int] = None
    event_name: Optional[str] = None

    @classmethod
    def build(cls, label: str, limit: Optional[int], actual: int, type: str, *, unlimited_when_zero: bool = False, **refs):
        over = limit is not None and actual > limit
        if unlimited_when_zero and limit == 0:
            over = False
        return cls(
            label=label,
            limit=limit,
            actual=actual,
            usage_rate=usage_rate(actual, limit),
            is_over_limit=over,
            type=type,
            **refs,
        )

    def to_dict(self) -> dict:
        return asdict(self)


async def _covered_groups(session: AsyncSession, team) -> list[Group]:
    """The team's own group plus every group its athletes are enrolled in, active only."""
    result = await session.execute(select(Athlete.group_id).where(Athlete.team_id == team.id).distinct())
    group_ids = {row[0] for row in result.fetchall()}
    if team.group_id is not None:
        group_ids.add(team.group_id)
    groups = []
    for group_id in sorted(group_ids):
        group = await catalog.get_group(session, group_id)
        if not group.is_active:
            logger.debug("Skipping inactive group %s", group.name)
            continue
        groups.append(group)
    return groups


async def _group_records(session: AsyncSession, team_id: int, group: Group) -> list[SummaryRecord]:
    refs = {"group_id": group.id, "group_name": group.name}
    leaders = await catalog.count_confirmed_registrations(
        session, RegistrationFilter(team_id=team_id, group_id=group.id, leaders_only=True)
    )
    athletes = await catalog.count_athletes(session, team_id, group.id)
    records = [
        SummaryRecord.build(f"{group.name} leaders", group.max_leaders_per_team, leaders, SummaryType.LEADER, **refs),
        SummaryRecord.build(f"{group.name} athletes", group.max_athletes_per_team, athletes, SummaryType.ATHLETE, **refs),
    ]
    for event in await catalog.list_group_events(session, group.id):
        actual = await catalog.count_confirmed_registrations(
            session, RegistrationFilter(team_id=team_id, group_id=group.id, event_id=event.id)
        )
        records.append(
            SummaryRecord.build(
                f"{group.name} {event.name}",
                group.max_participants_per_event,
                actual,
                SummaryType.EVENT,
                unlimited_when_zero=True,
                event_id=event.id,
                event_name=event.name,
                **refs,
            )
        )
    return records


async def get_registration_summary(session: AsyncSession, team_id: int) -> list[SummaryRecord]:
    """Leader, athlete and per-event records for each covered group, then two totals.

    Only CONFIRMED registrations count. Reads are not isolated from concurrent
    writers, so counts may trail an in-flight update.
    """
    team = await catalog.get_team(session, team_id)
    groups = await _covered_groups(session, team)
    if not groups:
        logger.info("Team %s has no active groups; empty summary", team_id)
        return []

    summary: list[SummaryRecord] = []
    for group in groups:
        summary.extend(await _group_records(session, team_id, group))

    total_athletes = await catalog.count_athletes(session, team_id)
    total_leaders = await catalog.count_confirmed_registrations(
        session, RegistrationFilter(team_id=team_id, leaders_only=True)
    )
    summary.append(
        SummaryRecord.build(
            "Total athletes", sum(g.max_athletes_per_team for g in groups), total_athletes, SummaryType.TOTAL
        )
    )
    summary.append(
        SummaryRecord.build(
            "Total leaders", sum(g.max_leaders_per_team for g in groups), total_leaders, SummaryType.TOTAL
        )
    )
    logger.info("Summary for team %s: %d records", team_id, len(summary))
    return summary


async def get_event_statistics(session: AsyncSession, team_id: int, event_id: int) -> dict:
    """The team's confirmed count for one event in every active group that offers it."""
    team = await catalog.get_team(session, team_id)
    event = await catalog.get_event(session, event_id)
    stats = []
    for group in await _covered_groups(session, team):
        if not await catalog.is_event_mapped_to_group(session, event_id, group.id):
            continue
        count = await catalog.count_confirmed_registrations(
            session, RegistrationFilter(team_id=team_id, group_id=group.id, event_id=event_id)
        )
        record = SummaryRecord.build(
            group.name, group.max_participants_per_event, count, SummaryType.EVENT, unlimited_when_zero=True
        )
        stats.append({
            "group_id": group.id,
            "group_name": group.name,
            "registration_count": count,
            "max_participants": group.max_participants_per_event,
            "usage_rate": record.usage_rate,
            "is_over_limit": record.is_over_limit,
        })
    return {
        "event_id": event.id,
        "event_name": event.name,
        "event_type": event.event_type,
        "group_statistics": stats,
    }
