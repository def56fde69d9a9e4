"""Database models."""
from meet.models.base import Base, init_db
from meet.models.group import Group, GroupStatus
from meet.models.team import Team, TeamStatus
from meet.models.athlete import Athlete
from meet.models.event import Event, EventType, GroupEventMapping
from meet.models.registration import Registration, RegistrationStatus

__all__ = [
    "Base",
    "Group",
    "GroupStatus",
    "Team",
    "TeamStatus",
    "Athlete",
    "Event",
    "EventType",
    "GroupEventMapping",
    "Registration",
    "RegistrationStatus",
    "init_db",
]
