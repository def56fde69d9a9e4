"""Group model - the rule-bearing competition cohort that owns every quota limit."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from meet.models.base import Base


class GroupStatus:
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Group(Base):
    """Competition group (e.g. grade 10 boys) with its registration limits.

    ``max_participants_per_event`` uses 0 as a sentinel for "no cap", not for
    "nobody may enter". Every other limit is a real bound, 0 included.
    """

    __tablename__ = "groups"
    __table_args__ = (
        CheckConstraint("max_leaders_per_team >= 0", name="ck_groups_max_leaders"),
        CheckConstraint("max_athletes_per_team >= 0", name="ck_groups_max_athletes"),
        CheckConstraint("max_events_per_athlete >= 0", name="ck_groups_max_events"),
        CheckConstraint("max_participants_per_event >= 0", name="ck_groups_max_participants"),
        CheckConstraint("max_relays_per_team >= 0", name="ck_groups_max_relays"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # MALE, FEMALE, MIXED
    grade: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    max_leaders_per_team: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    max_athletes_per_team: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    max_events_per_athlete: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    max_participants_per_event: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 = unlimited
    max_relays_per_team: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    allow_mixed_events: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=GroupStatus.ACTIVE)

    @property
    def is_active(self) -> bool:
        return self.status == GroupStatus.ACTIVE

    @property
    def has_event_cap(self) -> bool:
        """False when ``max_participants_per_event`` is the 0 (unlimited) sentinel."""
        return self.max_participants_per_event > 0
