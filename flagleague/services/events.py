"""
Outbound notifications. The engine only emits; delivery belongs to the surrounding system.
Emission is fire-and-forget: callers wrap emit() with emit_safely() so a failing sink
never fails the operation that produced the event.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from flagleague.logging_config import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    GAME_ASSIGNED = "GAME_ASSIGNED"
    STATS_SUBMITTED = "STATS_SUBMITTED"
    STATS_APPROVED = "STATS_APPROVED"
    STATS_REJECTED = "STATS_REJECTED"
    TEAM_ACCEPTED = "TEAM_ACCEPTED"


@dataclass
class Event:
    kind: EventKind
    receiver_id: str
    sender_id: str | None = None
    match_id: str | None = None
    league_id: str | None = None
    message: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "receiver_id": self.receiver_id,
            "sender_id": self.sender_id,
            "match_id": self.match_id,
            "league_id": self.league_id,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class EventSink(Protocol):
    def emit(self, event: Event) -> None: ...


class LoggingEventSink:
    """Default sink: writes each event to the log stream for a downstream shipper."""

    def emit(self, event: Event) -> None:
        logger.info("event_emitted", **event.to_dict())


class InMemoryEventSink:
    """Keeps events in a list. Used by tests and local tooling."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> list[Event]:
        return [e for e in self.events if e.kind == kind]


def emit_safely(sink: EventSink, event: Event) -> bool:
    """Emit and swallow sink failures after logging them. Returns False on failure."""
    try:
        sink.emit(event)
        return True
    except Exception:
        logger.exception(
            "event_emit_failed",
            kind=event.kind.value,
            receiver_id=event.receiver_id,
            match_id=event.match_id,
            league_id=event.league_id,
        )
        return False
