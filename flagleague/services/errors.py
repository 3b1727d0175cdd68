"""
Error taxonomy for the engine. Services raise these; the API maps them to status codes.
"""
from __future__ import annotations


class LeagueEngineError(Exception):
    """Base for every error a service raises on purpose."""


class NotFoundError(LeagueEngineError, LookupError):
    """Match, team, player, league or review does not exist."""


class InvalidStateError(LeagueEngineError, ValueError):
    """Operation attempted outside its legal lifecycle state (e.g. side swap after completion)."""


class ValidationError(LeagueEngineError, ValueError):
    """Unknown action type, malformed stat payload, team not part of the match."""


class AlreadyFinalizedError(InvalidStateError):
    """Duplicate finalize or duplicate league-winner assignment."""


class ConcurrentUpdateError(InvalidStateError):
    """Match changed between read and write (version mismatch)."""
