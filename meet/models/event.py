"""Event model and the group/event eligibility mapping."""
from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meet.models.base import Base


class EventType:
    INDIVIDUAL = "INDIVIDUAL"
    RELAY = "RELAY"
    TEAM = "TEAM"


class Event(Base):
    """Competition item. Groups reach it only through GroupEventMapping."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False, default=EventType.INDIVIDUAL)
    gender: Mapped[str] = mapped_column(String(10), nullable=False, default="MIXED")  # MALE, FEMALE, MIXED

    group_mappings = relationship(
        "GroupEventMapping", back_populates="event", cascade="all, delete-orphan"
    )


class GroupEventMapping(Base):
    """Which events a group may enter, and whether the event is mandatory for it."""

    __tablename__ = "group_event_mappings"
    __table_args__ = (UniqueConstraint("group_id", "event_id", name="uq_group_event"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    event: Mapped["Event"] = relationship("Event", back_populates="group_mappings")
