"""Registration model - an athlete (or team-level leader slot) registered into a group."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meet.models.base import Base


class RegistrationStatus:
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Registration(Base):
    """Assignment row. Only CONFIRMED rows count toward any quota.

    Athlete rows always carry an event. Leader rows have neither athlete nor event.
    """

    __tablename__ = "registrations"
    __table_args__ = (
        Index("ix_registrations_event_group_status", "event_id", "group_id", "status"),
        Index("ix_registrations_team_group", "team_id", "group_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    athlete_id: Mapped[Optional[int]] = mapped_column(ForeignKey("athletes.id"), nullable=True, index=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False)
    event_id: Mapped[Optional[int]] = mapped_column(ForeignKey("events.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RegistrationStatus.CONFIRMED)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    athlete: Mapped[Optional["Athlete"]] = relationship("Athlete", back_populates="registrations")
