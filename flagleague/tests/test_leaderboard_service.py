"""
Tests for the leaderboard ranking engine.
"""
from __future__ import annotations

from datetime import date

import pytest

from flagleague.config import Settings
from flagleague.models import StandingEntry
from flagleague.persistence import StandingsRepository
from flagleague.persistence.db import transaction
from flagleague.services import (
    LeaderboardService,
    MatchService,
    NotFoundError,
    OutcomeService,
    ValidationError,
)
from flagleague.services.leaderboard_service import fold_result, rank_standings


@pytest.fixture
def board():
    return LeaderboardService()


def _apply(conn, board, league_id, a, b, score_a, score_b):
    with transaction(conn):
        return board.apply_match_result(conn, league_id, a, b, score_a, score_b)


class TestRanking:
    def test_point_difference_breaks_league_point_tie(self):
        wide = StandingEntry("L", "wide", wins=1, points_scored=10, points_against=5, point_difference=5,
                             league_points=3)
        narrow = StandingEntry("L", "narrow", wins=1, points_scored=30, points_against=28, point_difference=2,
                               league_points=3)
        assert [e.team_id for e in rank_standings([narrow, wide])] == ["wide", "narrow"]

    def test_points_scored_is_last_tiebreak(self):
        a = StandingEntry("L", "a", points_scored=10, points_against=10)
        b = StandingEntry("L", "b", points_scored=20, points_against=20)
        assert [e.team_id for e in rank_standings([a, b])] == ["b", "a"]

    def test_full_ties_keep_input_order(self):
        entries = [StandingEntry("L", t, league_points=3) for t in ("x", "y", "z")]
        assert [e.team_id for e in rank_standings(entries)] == ["x", "y", "z"]

    def test_fold_result_recomputes_difference(self):
        settings = Settings()
        entry = fold_result(StandingEntry("L", "t"), 7, 12, settings)
        entry = fold_result(entry, 20, 6, settings)
        assert (entry.wins, entry.losses, entry.draws) == (1, 1, 0)
        assert entry.point_difference == entry.points_scored - entry.points_against == 9
        assert entry.league_points == 3


def test_apply_match_result_win_and_loss(db_conn, board):
    a, b = _apply(db_conn, board, "L1", "A", "B", 21, 14)
    assert (a.wins, a.losses, a.league_points, a.points_scored, a.points_against) == (1, 0, 3, 21, 14)
    assert (b.wins, b.losses, b.league_points, b.points_scored, b.points_against) == (0, 1, 0, 14, 21)
    assert a.point_difference == 7
    assert b.point_difference == -7


def test_draw_awards_no_league_points_by_default(db_conn, board):
    a, b = _apply(db_conn, board, "L1", "A", "B", 14, 14)
    assert a.draws == b.draws == 1
    assert a.league_points == b.league_points == 0


def test_draw_points_follow_configuration(db_conn):
    board = LeaderboardService(settings=Settings(DRAW_LEAGUE_POINTS=1))
    a, b = _apply(db_conn, board, "L1", "A", "B", 7, 7)
    assert a.league_points == b.league_points == 1


def test_apply_match_result_rejects_bad_input(db_conn, board):
    with pytest.raises(ValidationError):
        _apply(db_conn, board, "L1", "A", "A", 7, 0)
    with pytest.raises(ValidationError):
        _apply(db_conn, board, "L1", "A", "B", -1, 0)


def test_ensure_entry_is_idempotent(db_conn, board):
    with transaction(db_conn):
        board.ensure_entry(db_conn, "L1", "A")
        board.ensure_entry(db_conn, "L1", "A")
    assert len(board.compute_standings(db_conn, "L1")) == 1


def test_ensure_entry_unreadable_row_is_not_found(db_conn, board, monkeypatch):
    monkeypatch.setattr(StandingsRepository, "get", lambda self, *args: None)
    with pytest.raises(NotFoundError):
        with transaction(db_conn):
            board.ensure_entry(db_conn, "L1", "A")


def test_compute_standings_orders_league(db_conn, board):
    _apply(db_conn, board, "L1", "X", "Y", 10, 5)    # X: lp3 pd+5
    _apply(db_conn, board, "L1", "Z", "W", 30, 28)   # Z: lp3 pd+2
    _apply(db_conn, board, "L2", "Q", "R", 50, 0)    # other league
    order = [e.team_id for e in board.compute_standings(db_conn, "L1")]
    assert order == ["X", "Z", "W", "Y"]
    for e in board.compute_standings(db_conn, "L1"):
        assert e.point_difference == e.points_scored - e.points_against


def test_rebuild_matches_incremental(db_conn, seeded, board):
    matches = MatchService()
    results = [("Touchdown", "Safety"), ("Safety", "Touchdown"), ("Touchdown", "Touchdown")]
    for day, (a_play, b_play) in enumerate(results, start=1):
        m = matches.create_match(
            db_conn, seeded.league_id, "5v5", date(2026, 7, day), "18:00", seeded.team_a_id, seeded.team_b_id
        )
        matches.record_action(db_conn, m.id, seeded.team_a_id, seeded.a_players[0], a_play)
        matches.record_action(db_conn, m.id, seeded.team_b_id, seeded.b_players[0], b_play)
        OutcomeService(leaderboard=board).finalize(db_conn, m.id)

    incremental = board.compute_standings(db_conn, seeded.league_id)
    rebuilt = board.rebuild_standings(db_conn, seeded.league_id)
    assert [e.to_dict() for e in rebuilt] == [e.to_dict() for e in incremental]
    for e in rebuilt:
        assert (e.wins, e.losses, e.draws) == (1, 1, 1)
