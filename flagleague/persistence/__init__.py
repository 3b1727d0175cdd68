"""
Persistence layer for league data.
No business logic, only read/write interfaces.
"""
from .db import get_connection, init_db, set_db_path, transaction
from .repositories import (
    CareerStatsRepository,
    LeagueRepository,
    MatchRepository,
    PlayerRepository,
    StandingsRepository,
    StatLineRepository,
    StatReviewRepository,
    StatSubmissionRepository,
    TeamRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "set_db_path",
    "transaction",
    "CareerStatsRepository",
    "LeagueRepository",
    "MatchRepository",
    "PlayerRepository",
    "StandingsRepository",
    "StatLineRepository",
    "StatReviewRepository",
    "StatSubmissionRepository",
    "TeamRepository",
]
