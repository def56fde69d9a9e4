"""Team model - a participating unit (school, club) enrolling athletes."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meet.models.base import Base


class TeamStatus:
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    WITHDRAWN = "WITHDRAWN"


class Team(Base):
    """Team belonging to one group and one organization."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    org_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    group_id: Mapped[Optional[int]] = mapped_column(ForeignKey("groups.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TeamStatus.ACTIVE)

    athletes = relationship("Athlete", back_populates="team")
