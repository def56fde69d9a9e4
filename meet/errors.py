"""Typed errors raised by the registration engine."""
from __future__ import annotations

from typing import Optional


class RegistrationError(Exception):
    """Base class for every error the engine raises to its caller."""

    code = "registration_error"

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": str(self)}


class NotFoundError(RegistrationError):
    """A referenced team, group, athlete, event or registration does not exist."""

    code = "not_found"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class AuthorizationError(RegistrationError):
    """The record belongs to a different team than the caller's."""

    code = "forbidden"


class IneligibleEventError(RegistrationError):
    """The event is not mapped to the athlete's group."""

    code = "ineligible_event"

    def __init__(self, event_id: int, group_id: Optional[int] = None):
        self.event_id = event_id
        self.group_id = group_id
        super().__init__(f"Event {event_id} is not open to group {group_id}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "event_id": self.event_id, "group_id": self.group_id}


class QuotaExceeded(RegistrationError):
    """A quota would be exceeded. Always surfaced verbatim so UIs can explain why."""

    code = "quota_exceeded"

    def __init__(self, dimension: str, current: int, limit: int, event_id: Optional[int] = None):
        self.dimension = dimension
        self.current = current
        self.limit = limit
        self.event_id = event_id
        where = f" for event {event_id}" if event_id is not None else ""
        super().__init__(f"Quota '{dimension}' exceeded{where}: {current} > limit {limit}")

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "dimension": self.dimension,
            "current": self.current,
            "limit": self.limit,
            "event_id": self.event_id,
        }


class RegistrationConflictError(RegistrationError):
    """The change conflicts with existing records (duplicate id number, live registrations)."""

    code = "conflict"


class PersistenceError(RegistrationError):
    """The store failed to commit. Nothing was applied; the caller may retry."""

    code = "persistence_error"
