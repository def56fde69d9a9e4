"""Athlete model."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meet.models.base import Base


class Athlete(Base):
    """Athlete enrolled by a team into exactly one group."""

    __tablename__ = "athletes"
    # NULL id_numbers never collide, so uniqueness only bites when one is given
    __table_args__ = (UniqueConstraint("team_id", "id_number", name="uq_athletes_team_id_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False, index=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    id_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    team: Mapped["Team"] = relationship("Team", back_populates="athletes")
    registrations = relationship("Registration", back_populates="athlete")
