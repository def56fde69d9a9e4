"""Tests for wholesale replacement of an athlete's event registrations."""
import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from meet.errors import (
    AuthorizationError,
    IneligibleEventError,
    NotFoundError,
    PersistenceError,
    QuotaExceeded,
)
from meet.models import Registration, RegistrationStatus
from meet.models.base import async_session_factory
from meet.services import replacer
from meet.services.replacer import diff_registration_sets, normalize_event_ids


async def confirmed_count(event_id):
    async with async_session_factory() as s:
        result = await s.execute(
            select(func.count(Registration.id)).where(
                Registration.event_id == event_id,
                Registration.status == RegistrationStatus.CONFIRMED,
            )
        )
        return result.scalar_one()


@pytest.fixture
async def meet(seed):
    """Group with a one-slot 100m, team, two athletes."""
    group = await seed.group(max_events_per_athlete=2, max_participants_per_event=1)
    team = await seed.team(group)
    e100 = await seed.event("100m", groups=[group])
    e200 = await seed.event("200m", groups=[group])
    a1 = await seed.athlete(team, name="A1")
    a2 = await seed.athlete(team, name="A2")
    return {"group": group, "team": team, "e100": e100, "e200": e200, "a1": a1, "a2": a2}


def test_diff_registration_sets():
    diff = diff_registration_sets({1, 2, 3}, {3, 4})
    assert diff.to_delete == {1, 2}
    assert diff.to_insert == {4}
    assert diff.unchanged == {3}


def test_normalize_event_ids():
    assert normalize_event_ids([5, 1, 5, 3]) == [1, 3, 5]
    assert normalize_event_ids([]) == []
    with pytest.raises(TypeError):
        normalize_event_ids([1, "2"])


@pytest.mark.asyncio
async def test_capacity_scenario(reg_engine, meet):
    """Second athlete is refused a full event until the first withdraws."""
    team, e100 = meet["team"], meet["e100"]

    result = await reg_engine.replace_athlete_registrations(team.id, meet["a1"].id, [e100.id])
    assert result.event_ids == [e100.id]
    assert result.added == [e100.id]
    assert await confirmed_count(e100.id) == 1

    with pytest.raises(QuotaExceeded) as exc_info:
        await reg_engine.replace_athlete_registrations(team.id, meet["a2"].id, [e100.id])
    assert exc_info.value.dimension == "event-capacity"
    assert exc_info.value.event_id == e100.id
    assert (exc_info.value.current, exc_info.value.limit) == (2, 1)

    # Same set again at 100% capacity: succeeds, nothing moves
    result = await reg_engine.replace_athlete_registrations(team.id, meet["a1"].id, [e100.id])
    assert result.unchanged == [e100.id]
    assert result.counts == {"total": 1, "added": 0, "removed": 0, "unchanged": 1}
    assert await confirmed_count(e100.id) == 1

    result = await reg_engine.replace_athlete_registrations(team.id, meet["a1"].id, [])
    assert result.removed == [e100.id]
    assert await confirmed_count(e100.id) == 0

    result = await reg_engine.replace_athlete_registrations(team.id, meet["a2"].id, [e100.id])
    assert result.event_ids == [e100.id]
    assert await reg_engine.get_athlete_registered_event_ids(team.id, meet["a2"].id) == [e100.id]


@pytest.mark.asyncio
async def test_identity_replace_keeps_rows(reg_engine, meet):
    """Unchanged registrations are left in place, not deleted and re-created."""
    team, a1 = meet["team"], meet["a1"]
    await reg_engine.replace_athlete_registrations(team.id, a1.id, [meet["e100"].id, meet["e200"].id])
    async with async_session_factory() as s:
        before = (await s.execute(select(Registration.id).where(Registration.athlete_id == a1.id))).scalars().all()

    await reg_engine.replace_athlete_registrations(team.id, a1.id, [meet["e200"].id])
    async with async_session_factory() as s:
        after = (await s.execute(select(Registration).where(Registration.athlete_id == a1.id))).scalars().all()
    assert len(after) == 1
    assert after[0].event_id == meet["e200"].id
    assert after[0].id in before


@pytest.mark.asyncio
async def test_too_many_events(reg_engine, seed):
    group = await seed.group(max_events_per_athlete=3)
    team = await seed.team(group)
    athlete = await seed.athlete(team)
    events = [await seed.event(f"Event {i}", groups=[group]) for i in range(4)]
    await reg_engine.replace_athlete_registrations(team.id, athlete.id, [events[0].id])

    with pytest.raises(QuotaExceeded) as exc_info:
        await reg_engine.replace_athlete_registrations(team.id, athlete.id, [e.id for e in events])
    assert exc_info.value.dimension == "events-per-athlete"
    assert (exc_info.value.current, exc_info.value.limit) == (4, 3)
    assert await reg_engine.get_athlete_registered_event_ids(team.id, athlete.id) == [events[0].id]


@pytest.mark.asyncio
async def test_duplicates_are_deduplicated(reg_engine, meet):
    team, a1, e100 = meet["team"], meet["a1"], meet["e100"]
    # Three ids, but only two distinct: within max_events_per_athlete=2
    result = await reg_engine.replace_athlete_registrations(
        team.id, a1.id, [meet["e200"].id, e100.id, e100.id]
    )
    assert result.event_ids == [e100.id, meet["e200"].id]
    assert await confirmed_count(e100.id) == 1


@pytest.mark.asyncio
async def test_ineligible_event_is_all_or_nothing(reg_engine, seed, meet):
    team, a1 = meet["team"], meet["a1"]
    unmapped = await seed.event("Shot Put")
    await reg_engine.replace_athlete_registrations(team.id, a1.id, [meet["e100"].id])

    with pytest.raises(IneligibleEventError) as exc_info:
        await reg_engine.replace_athlete_registrations(team.id, a1.id, [meet["e200"].id, unmapped.id])
    assert exc_info.value.event_id == unmapped.id
    assert await reg_engine.get_athlete_registered_event_ids(team.id, a1.id) == [meet["e100"].id]


@pytest.mark.asyncio
async def test_errors_reported_in_ascending_order(reg_engine, seed, meet):
    """With several bad events, the lowest id is the one reported."""
    first = await seed.event("Discus")
    second = await seed.event("Javelin")
    with pytest.raises(IneligibleEventError) as exc_info:
        await reg_engine.replace_athlete_registrations(meet["team"].id, meet["a1"].id, [second.id, first.id])
    assert exc_info.value.event_id == first.id


@pytest.mark.asyncio
async def test_unknown_event(reg_engine, meet):
    with pytest.raises(NotFoundError):
        await reg_engine.replace_athlete_registrations(meet["team"].id, meet["a1"].id, [meet["e100"].id, 9999])
    assert await confirmed_count(meet["e100"].id) == 0


@pytest.mark.asyncio
async def test_unknown_athlete(reg_engine, meet):
    with pytest.raises(NotFoundError):
        await reg_engine.replace_athlete_registrations(meet["team"].id, 9999, [])


@pytest.mark.asyncio
async def test_other_teams_athlete(reg_engine, seed, meet):
    rival = await seed.team(meet["group"], name="Rival High")
    with pytest.raises(AuthorizationError):
        await reg_engine.replace_athlete_registrations(rival.id, meet["a1"].id, [meet["e100"].id])
    with pytest.raises(AuthorizationError):
        await reg_engine.get_athlete_registered_event_ids(rival.id, meet["a1"].id)


@pytest.mark.asyncio
async def test_empty_set_always_valid(reg_engine, seed):
    """Withdrawing from everything needs no event rules, even with every limit at 0."""
    group = await seed.group(max_events_per_athlete=0, max_participants_per_event=0)
    team = await seed.team(group)
    athlete = await seed.athlete(team)
    result = await reg_engine.replace_athlete_registrations(team.id, athlete.id, [])
    assert result.event_ids == []
    assert result.counts["total"] == 0


@pytest.mark.asyncio
async def test_unlimited_event(reg_engine, seed):
    group = await seed.group(max_participants_per_event=0)
    team = await seed.team(group)
    event = await seed.event("100m", groups=[group])
    for i in range(6):
        athlete = await seed.athlete(team, name=f"Runner {i}")
        await reg_engine.replace_athlete_registrations(team.id, athlete.id, [event.id])
    assert await confirmed_count(event.id) == 6


@pytest.mark.asyncio
async def test_pending_row_is_superseded(reg_engine, seed, meet):
    team, group, a1, e100 = meet["team"], meet["group"], meet["a1"], meet["e100"]
    await seed.registration(team, group, e100, a1, status=RegistrationStatus.PENDING)

    result = await reg_engine.replace_athlete_registrations(team.id, a1.id, [e100.id])
    assert result.added == [e100.id]
    async with async_session_factory() as s:
        rows = (await s.execute(select(Registration).where(Registration.athlete_id == a1.id))).scalars().all()
    assert [(r.event_id, r.status) for r in rows] == [(e100.id, RegistrationStatus.CONFIRMED)]


@pytest.mark.asyncio
async def test_capacity_counts_other_teams(reg_engine, seed, meet):
    """Capacity is per (event, group) across every team."""
    rival = await seed.team(meet["group"], name="Rival High")
    rival_athlete = await seed.athlete(rival, name="R1")
    await reg_engine.replace_athlete_registrations(rival.id, rival_athlete.id, [meet["e100"].id])
    with pytest.raises(QuotaExceeded):
        await reg_engine.replace_athlete_registrations(meet["team"].id, meet["a1"].id, [meet["e100"].id])


@pytest.mark.asyncio
async def test_mandatory_events_reported(reg_engine, seed):
    group = await seed.group()
    team = await seed.team(group)
    athlete = await seed.athlete(team)
    relay = await seed.event("4x100m Relay", groups=[group], mandatory=True)
    sprint = await seed.event("100m", groups=[group])

    result = await reg_engine.replace_athlete_registrations(team.id, athlete.id, [sprint.id])
    assert result.missing_mandatory == [relay.id]
    result = await reg_engine.replace_athlete_registrations(team.id, athlete.id, [sprint.id, relay.id])
    assert result.missing_mandatory == []


@pytest.mark.asyncio
async def test_commit_failure_rolls_back(reg_engine, meet, monkeypatch):
    """A store failure mid-commit leaves the previous set intact."""
    team, a1 = meet["team"], meet["a1"]
    await reg_engine.replace_athlete_registrations(team.id, a1.id, [meet["e100"].id])
    real_apply = replacer._apply

    async def failing_apply(session, athlete, team_id, held, diff):
        await real_apply(session, athlete, team_id, held, diff)
        raise OperationalError("INSERT INTO registrations", {}, Exception("disk I/O error"))

    monkeypatch.setattr(replacer, "_apply", failing_apply)
    with pytest.raises(PersistenceError):
        await reg_engine.replace_athlete_registrations(team.id, a1.id, [meet["e200"].id])
    assert await reg_engine.get_athlete_registered_event_ids(team.id, a1.id) == [meet["e100"].id]


@pytest.mark.asyncio
async def test_concurrent_replace_cannot_overshoot(reg_engine, seed, meet):
    """Racing athletes for the last slot: exactly one wins."""
    a3 = await seed.athlete(meet["team"], name="A3")
    athletes = [meet["a1"], meet["a2"], a3]
    results = await asyncio.gather(
        *[
            reg_engine.replace_athlete_registrations(meet["team"].id, a.id, [meet["e100"].id])
            for a in athletes
        ],
        return_exceptions=True,
    )
    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, QuotaExceeded)]
    assert len(winners) == 1
    assert len(losers) == 2
    assert await confirmed_count(meet["e100"].id) == 1


@pytest.mark.asyncio
async def test_concurrent_replace_same_athlete(reg_engine, meet):
    """Two updates for one athlete serialise; the stored set is one of the two targets."""
    team, a1 = meet["team"], meet["a1"]
    targets = [[meet["e100"].id], [meet["e200"].id]]
    await asyncio.gather(*[reg_engine.replace_athlete_registrations(team.id, a1.id, t) for t in targets])
    assert await reg_engine.get_athlete_registered_event_ids(team.id, a1.id) in targets
