"""Pydantic models describing analytics events and their shared context."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, constr

from .errors import ValidationFailure

NonEmptyStr = constr(min_length=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    anonymous_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class Group(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: NonEmptyStr
    name: Optional[str] = None


class Page(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: NonEmptyStr
    title: Optional[str] = None
    referrer: Optional[str] = None
    path: Optional[str] = None


class Action(BaseModel):
    model_config = ConfigDict(extra="allow")

    category: NonEmptyStr
    action: NonEmptyStr
    label: Optional[str] = None
    value: Optional[float] = None


class Session(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: NonEmptyStr
    started_at: Optional[datetime] = None
    duration_ms: Optional[int] = None


class EventContext(BaseModel):
    """Context merged into every event a client produces."""

    model_config = ConfigDict(frozen=True)

    user: Optional[User] = None
    group: Optional[Group] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    def merge(self, other: "EventContext") -> "EventContext":
        """Layer ``other`` on top of this context; set fields in ``other`` win."""
        return EventContext(
            user=other.user or self.user,
            group=other.group or self.group,
            extra={**self.extra, **other.extra},
        )


class Event(BaseModel):
    event_type: NonEmptyStr
    event_id: NonEmptyStr = Field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = Field(default_factory=_utcnow)
    properties: Dict[str, Any] = Field(default_factory=dict)
    context: EventContext = Field(default_factory=EventContext)

    def with_context(self, context: EventContext) -> "Event":
        # The event's own context is applied last so per-call values win.
        return self.model_copy(update={"context": context.merge(self.context)})

    def to_bytes(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")


def parse_event(payload: bytes) -> Event:
    try:
        return Event.model_validate_json(payload)
    except ValidationError as exc:
        raise ValidationFailure(str(exc)) from exc


def validate_payload(payload: bytes) -> bool:
    """Default strict-mode validator: payload must decode to a valid Event."""
    try:
        parse_event(payload)
    except ValidationFailure:
        return False
    return True


__all__ = [
    "User",
    "Group",
    "Page",
    "Action",
    "Session",
    "EventContext",
    "Event",
    "parse_event",
    "validate_payload",
]
