"""
Career stat accumulator: lifetime player and team totals.
Totals only move by deltas. Methods write through the caller's connection and
never open a transaction of their own; wrap calls in persistence.db.transaction().
"""
from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Mapping

from flagleague.logging_config import get_logger
from flagleague.models import CareerStats, MatchFormat
from flagleague.persistence.repositories import CareerStatsRepository
from flagleague.services.errors import ValidationError

logger = get_logger(__name__)


def _format_suffix(format: str) -> str:
    try:
        return MatchFormat(format).value
    except ValueError:
        raise ValidationError(f"Unknown match format: {format}") from None


def delta_increments(
    stat_delta: Mapping[str, int],
    points_delta: int,
    is_first_line: bool,
    is_first_league_line: bool,
) -> dict[str, int]:
    """Column increments for one stat submission. First-line flags gate the appearance counters."""
    increments = {k: v for k, v in stat_delta.items() if v}
    if points_delta:
        increments["total_points"] = points_delta
    if is_first_line:
        increments["matches_played"] = 1
        if is_first_league_line:
            increments["leagues_played"] = 1
    return increments


class CareerService:
    def __init__(self) -> None:
        self._players = CareerStatsRepository.for_players()
        self._teams = CareerStatsRepository.for_teams()

    def apply_player_delta(
        self,
        conn: sqlite3.Connection,
        player_id: str,
        stat_delta: Mapping[str, int],
        points_delta: int,
        is_first_line_for_player: bool,
        is_first_league_line: bool = False,
    ) -> None:
        """
        Add a per-match stat delta to the player's lifetime totals.
        is_first_line_for_player: the player had no line in this match before the submission.
        is_first_league_line: ... nor in any other match of the same league.
        """
        increments = delta_increments(stat_delta, points_delta, is_first_line_for_player, is_first_league_line)
        self._players.increment(conn, player_id, increments)
        logger.debug("player_career_delta_applied", player_id=player_id, increments=increments)

    def apply_team_delta(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        stat_delta: Mapping[str, int],
        points_delta: int,
        is_first_line_for_team: bool,
        is_first_league_line: bool = False,
    ) -> None:
        """Team counterpart of apply_player_delta; first-line means the first player line for the team."""
        increments = delta_increments(stat_delta, points_delta, is_first_line_for_team, is_first_league_line)
        self._teams.increment(conn, team_id, increments)
        logger.debug("team_career_delta_applied", team_id=team_id, increments=increments)

    def record_game_win(
        self, conn: sqlite3.Connection, team_id: str, player_ids: Iterable[str], format: str
    ) -> None:
        """+1 games_won_<format> for the winning team and every player on its roster."""
        column = f"games_won_{_format_suffix(format)}"
        self._teams.increment(conn, team_id, {column: 1})
        for pid in player_ids:
            self._players.increment(conn, pid, {column: 1})
        logger.info("game_win_recorded", team_id=team_id, format=format)

    def award_league_title(
        self, conn: sqlite3.Connection, team_id: str, player_ids: Iterable[str], format: str
    ) -> None:
        """+1 leagues_won_<format> for the champion team and every player on its roster."""
        column = f"leagues_won_{_format_suffix(format)}"
        self._teams.increment(conn, team_id, {column: 1})
        for pid in player_ids:
            self._players.increment(conn, pid, {column: 1})
        logger.info("league_title_awarded", team_id=team_id, format=format)

    def get_player_career(self, conn: sqlite3.Connection, player_id: str) -> CareerStats:
        return self._players.get(conn, player_id) or CareerStats(owner_id=player_id)

    def get_team_career(self, conn: sqlite3.Connection, team_id: str) -> CareerStats:
        return self._teams.get(conn, team_id) or CareerStats(owner_id=team_id)
