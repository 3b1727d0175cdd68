"""
Leaderboard ranking engine.
Folds completed match results into per-league standings and ranks them.
ensure_entry/apply_match_result write through the caller's transaction;
rebuild_standings owns its own.
"""
from __future__ import annotations

import sqlite3
from dataclasses import replace

from flagleague.config import Settings, get_settings
from flagleague.logging_config import get_logger
from flagleague.models import StandingEntry
from flagleague.persistence.db import transaction
from flagleague.persistence.repositories import MatchRepository, StandingsRepository
from flagleague.services.errors import NotFoundError, ValidationError

logger = get_logger(__name__)


def standings_sort_key(entry: StandingEntry) -> tuple[int, int, int]:
    """League points, then point difference, then points scored; all descending."""
    return (-entry.league_points, -entry.point_difference, -entry.points_scored)


def rank_standings(entries: list[StandingEntry]) -> list[StandingEntry]:
    # sorted() is stable: full ties keep input order.
    return sorted(entries, key=standings_sort_key)


def fold_result(entry: StandingEntry, scored: int, against: int, settings: Settings) -> StandingEntry:
    """Return entry with one match result added. point_difference is recomputed from totals."""
    updated = replace(
        entry,
        points_scored=entry.points_scored + scored,
        points_against=entry.points_against + against,
    )
    if scored > against:
        updated.wins += 1
        updated.league_points += settings.win_league_points
    elif scored < against:
        updated.losses += 1
        updated.league_points += settings.loss_league_points
    else:
        updated.draws += 1
        updated.league_points += settings.draw_league_points
    updated.point_difference = updated.points_scored - updated.points_against
    return updated


class LeaderboardService:
    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._standings_repo = StandingsRepository()
        self._match_repo = MatchRepository()

    def ensure_entry(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> StandingEntry:
        """Create a zeroed row for (league, team) if absent; return the current row."""
        if self._standings_repo.create_if_absent(conn, league_id, team_id):
            logger.info("standing_entry_created", league_id=league_id, team_id=team_id)
        entry = self._standings_repo.get(conn, league_id, team_id)
        if entry is None:
            raise NotFoundError(f"No standings entry for team {team_id} in league {league_id}")
        return entry

    def apply_match_result(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        team_a_id: str,
        team_b_id: str,
        score_a: int,
        score_b: int,
    ) -> tuple[StandingEntry, StandingEntry]:
        if team_a_id == team_b_id:
            raise ValidationError("A match result needs two different teams")
        if score_a < 0 or score_b < 0:
            raise ValidationError(f"Scores cannot be negative: {score_a}-{score_b}")
        entry_a = fold_result(self.ensure_entry(conn, league_id, team_a_id), score_a, score_b, self._settings)
        entry_b = fold_result(self.ensure_entry(conn, league_id, team_b_id), score_b, score_a, self._settings)
        self._standings_repo.save(conn, entry_a)
        self._standings_repo.save(conn, entry_b)
        logger.info(
            "match_result_applied",
            league_id=league_id,
            team_a_id=team_a_id,
            team_b_id=team_b_id,
            score_a=score_a,
            score_b=score_b,
        )
        return entry_a, entry_b

    def compute_standings(self, conn: sqlite3.Connection, league_id: str) -> list[StandingEntry]:
        return rank_standings(self._standings_repo.list_by_league(conn, league_id))

    def rebuild_standings(self, conn: sqlite3.Connection, league_id: str) -> list[StandingEntry]:
        """
        Reconcile standings with match history: zero every row of the league and
        re-apply all completed matches in completion order. Repairs a leaderboard
        update that failed after a finalize.
        """
        with transaction(conn):
            self._standings_repo.reset_league(conn, league_id)
            matches = self._match_repo.list_by_league(conn, league_id, completed_only=True)
            for m in matches:
                self.apply_match_result(
                    conn, league_id, m.side_a.team_id, m.side_b.team_id, m.side_a.score, m.side_b.score
                )
        logger.info("standings_rebuilt", league_id=league_id, matches=len(matches))
        return self.compute_standings(conn, league_id)
