"""
Service layer: domain logic and state machines.
Repositories do the reads and writes; services own validation and transactions.
"""
from .career_service import CareerService
from .errors import (
    AlreadyFinalizedError,
    ConcurrentUpdateError,
    InvalidStateError,
    LeagueEngineError,
    NotFoundError,
    ValidationError,
)
from .events import Event, EventKind, EventSink, InMemoryEventSink, LoggingEventSink
from .leaderboard_service import LeaderboardService
from .league_service import LeagueService
from .match_service import MatchService
from .outcome_service import FinalizeResult, OutcomeService
from .stats_service import StatsService

__all__ = [
    "CareerService",
    "AlreadyFinalizedError",
    "ConcurrentUpdateError",
    "InvalidStateError",
    "LeagueEngineError",
    "NotFoundError",
    "ValidationError",
    "Event",
    "EventKind",
    "EventSink",
    "InMemoryEventSink",
    "LoggingEventSink",
    "LeaderboardService",
    "LeagueService",
    "MatchService",
    "FinalizeResult",
    "OutcomeService",
    "StatsService",
]
