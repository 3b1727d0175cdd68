"""
Outcome resolver: the only writer of winning_team_id / completed_at.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from flagleague.logging_config import get_logger
from flagleague.models import Match, MatchStatus, TeamSide
from flagleague.persistence.db import transaction
from flagleague.persistence.repositories import MatchRepository, TeamRepository
from flagleague.services.career_service import CareerService
from flagleague.services.errors import AlreadyFinalizedError, InvalidStateError
from flagleague.services.leaderboard_service import LeaderboardService
from flagleague.services.match_service import load_match

logger = get_logger(__name__)


def decide_winner(side_a: TeamSide, side_b: TeamSide) -> str | None:
    """Team id with the strictly higher ledger score, or None for a draw."""
    if side_a.score > side_b.score:
        return side_a.team_id
    if side_b.score > side_a.score:
        return side_b.team_id
    return None


@dataclass
class FinalizeResult:
    """
    The completed match plus the follow-up writes that did not go through.
    failed_effects is non-empty when standings or career totals need an
    out-of-band repair (see LeaderboardService.rebuild_standings).
    """
    match: Match
    failed_effects: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"match": self.match.to_dict(), "failed_effects": list(self.failed_effects)}


class OutcomeService:
    def __init__(
        self,
        leaderboard: LeaderboardService | None = None,
        career: CareerService | None = None,
    ) -> None:
        self._leaderboard = leaderboard or LeaderboardService()
        self._career = career or CareerService()
        self._match_repo = MatchRepository()
        self._team_repo = TeamRepository()

    def finalize(self, conn: sqlite3.Connection, match_id: str) -> FinalizeResult:
        """
        live → completed, exactly once. The winner comes from the ledger scores only;
        box-score totals never decide it. Standings and games_won counters move only
        on the call that performs the transition.
        """
        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id)
            if match.status == MatchStatus.COMPLETED:
                raise AlreadyFinalizedError(f"Match {match_id} was already finalized at {match.completed_at}")
            if match.status != MatchStatus.LIVE:
                raise InvalidStateError(f"Cannot finalize: match must be live (current: {match.status.value})")
            winner = decide_winner(match.side_a, match.side_b)
            completed_at = datetime.now(timezone.utc).isoformat()
            if not self._match_repo.mark_completed(conn, match_id, winner, completed_at):
                raise AlreadyFinalizedError(f"Match {match_id} was finalized concurrently")
            for side in match.sides():
                win = None if winner is None else side.team_id == winner
                self._match_repo.set_side_win(conn, match_id, side.team_id, win)

        logger.info(
            "match_finalized",
            match_id=match_id,
            winning_team_id=winner,
            score_a=match.side_a.score,
            score_b=match.side_b.score,
        )
        result = FinalizeResult(match=self._match_repo.get(conn, match_id))

        try:
            with transaction(conn):
                self._leaderboard.apply_match_result(
                    conn,
                    match.league_id,
                    match.side_a.team_id,
                    match.side_b.team_id,
                    match.side_a.score,
                    match.side_b.score,
                )
        except Exception:
            logger.exception("leaderboard_update_failed", match_id=match_id, league_id=match.league_id)
            result.failed_effects.append("leaderboard")

        if winner is not None:
            try:
                with transaction(conn):
                    roster = self._team_repo.get_player_ids(conn, winner)
                    self._career.record_game_win(conn, winner, roster, match.format)
            except Exception:
                logger.exception("career_game_win_failed", match_id=match_id, team_id=winner)
                result.failed_effects.append("career")
        return result
