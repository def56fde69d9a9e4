"""API routes for athlete enrollment, event registration and summaries."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from meet.engine import RegistrationEngine

logger = logging.getLogger("meet.api")

router = APIRouter(prefix="/api", tags=["registrations"])

_engine = RegistrationEngine()


def get_engine() -> RegistrationEngine:
    return _engine


# --- Pydantic schemas ---


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    event_type: str
    gender: str


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    org_code: Optional[str]
    group_id: Optional[int]
    status: str


class AthleteCreate(BaseModel):
    name: str = Field(min_length=1)
    group_id: int
    id_number: Optional[str] = None


class AthleteUpdate(BaseModel):
    name: Optional[str] = None
    group_id: Optional[int] = None
    id_number: Optional[str] = None


class AthleteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    group_id: int
    name: str
    id_number: Optional[str]


class RegistrationUpdate(BaseModel):
    event_ids: list[int]  # complete target set; [] withdraws from everything


class RegistrationSetResponse(BaseModel):
    team_id: int
    athlete_id: int
    event_ids: list[int]
    counts: dict[str, int] = {}
    added: list[int] = []
    removed: list[int] = []
    unchanged: list[int] = []
    missing_mandatory: list[int] = []


class SummaryRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class SummaryResponse(BaseModel):
    team_id: int
    records: list[SummaryRecordResponse]


class LeaderCreate(BaseModel):
    group_id: int


class LeaderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    group_id: int
    status: str


# --- Reference data ---


@router.get("/groups/{group_id}/events", response_model=list[EventResponse])
async def list_group_events(group_id: int, engine: RegistrationEngine = Depends(get_engine)):
    """Events the group may enter, ordered by id."""
    return await engine.list_eligible_events(group_id)


@router.get("/teams/by-org/{org_code}", response_model=TeamResponse)
async def resolve_team(org_code: str, engine: RegistrationEngine = Depends(get_engine)):
    """Look up the team for an organization code."""
    return await engine.resolve_team(org_code)


# --- Athletes ---


@router.post("/teams/{team_id}/athletes", response_model=AthleteResponse)
async def enroll_athlete(team_id: int, body: AthleteCreate, engine: RegistrationEngine = Depends(get_engine)):
    """Enroll an athlete into a group (subject to the team's athlete quota)."""
    return await engine.enroll_athlete(team_id, body.group_id, body.name, body.id_number)


@router.patch("/teams/{team_id}/athletes/{athlete_id}", response_model=AthleteResponse)
async def update_athlete(
    team_id: int, athlete_id: int, body: AthleteUpdate, engine: RegistrationEngine = Depends(get_engine)
):
    """Update an athlete. Group changes are refused while registrations exist."""
    if not body.model_fields_set:
        raise HTTPException(400, "Nothing to update")
    return await engine.update_athlete(team_id, athlete_id, body.name, body.id_number, body.group_id)


@router.delete("/teams/{team_id}/athletes/{athlete_id}")
async def remove_athlete(team_id: int, athlete_id: int, engine: RegistrationEngine = Depends(get_engine)):
    await engine.remove_athlete(team_id, athlete_id)
    return {"ok": True}


# --- Event registrations ---


@router.get("/teams/{team_id}/athletes/{athlete_id}/registrations", response_model=RegistrationSetResponse)
async def get_athlete_registrations(team_id: int, athlete_id: int, engine: RegistrationEngine = Depends(get_engine)):
    """Event IDs the athlete is confirmed for."""
    event_ids = await engine.get_athlete_registered_event_ids(team_id, athlete_id)
    return RegistrationSetResponse(team_id=team_id, athlete_id=athlete_id, event_ids=event_ids)


@router.put("/teams/{team_id}/athletes/{athlete_id}/registrations", response_model=RegistrationSetResponse)
async def replace_athlete_registrations(
    team_id: int, athlete_id: int, body: RegistrationUpdate, engine: RegistrationEngine = Depends(get_engine)
):
    """Replace the athlete's full event set. All-or-nothing."""
    result = await engine.replace_athlete_registrations(team_id, athlete_id, body.event_ids)
    return RegistrationSetResponse(
        team_id=result.team_id,
        athlete_id=result.athlete_id,
        event_ids=result.event_ids,
        counts=result.counts,
        added=result.added,
        removed=result.removed,
        unchanged=result.unchanged,
        missing_mandatory=result.missing_mandatory,
    )


# --- Leaders ---


@router.post("/teams/{team_id}/leaders", response_model=LeaderResponse)
async def register_leader(team_id: int, body: LeaderCreate, engine: RegistrationEngine = Depends(get_engine)):
    return await engine.register_leader(team_id, body.group_id)


@router.delete("/teams/{team_id}/leaders/{registration_id}")
async def remove_leader(team_id: int, registration_id: int, engine: RegistrationEngine = Depends(get_engine)):
    await engine.remove_leader(team_id, registration_id)
    return {"ok": True}


# --- Summaries ---


@router.get("/teams/{team_id}/registrations/summary", response_model=SummaryResponse)
async def get_registration_summary(team_id: int, engine: RegistrationEngine = Depends(get_engine)):
    """Limit vs. actual per group: leaders, athletes, each event, then totals."""
    records = await engine.get_registration_summary(team_id)
    return SummaryResponse(
        team_id=team_id,
        records=[SummaryRecordResponse.model_validate(r) for r in records],
    )


@router.get("/teams/{team_id}/events/{event_id}/statistics")
async def get_event_statistics(team_id: int, event_id: int, engine: RegistrationEngine = Depends(get_engine)):
    """The team's confirmed count for one event, per group that offers it."""
    stats = await engine.get_event_statistics(team_id, event_id)
    return {"team_id": team_id, **stats}
