"""
Tests for the outcome resolver: one-shot finalize, winner decision, follow-up effects.
"""
from __future__ import annotations

import threading
from datetime import date

import pytest

from flagleague.models import MatchStatus
from flagleague.persistence import MatchRepository, get_connection
from flagleague.services import (
    AlreadyFinalizedError,
    CareerService,
    InvalidStateError,
    LeaderboardService,
    MatchService,
    NotFoundError,
    OutcomeService,
    StatsService,
)


@pytest.fixture
def match_service():
    return MatchService()


@pytest.fixture
def match(db_conn, seeded, match_service):
    return match_service.create_match(
        db_conn, seeded.league_id, "5v5", date(2026, 6, 1), "18:30", seeded.team_a_id, seeded.team_b_id
    )


def test_touchdown_and_extra_point_wins(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    match_service.record_action(
        db_conn, match.id, seeded.team_a_id, seeded.a_players[1], "Extra Point from 5-yard line"
    )
    result = OutcomeService().finalize(db_conn, match.id)
    final = result.match
    assert final.side_a.score == 7
    assert final.side_b.score == 0
    assert final.side_a.win is True
    assert final.side_b.win is False
    assert final.winning_team_id == seeded.team_a_id
    assert final.status == MatchStatus.COMPLETED
    assert final.completed_at is not None
    assert result.failed_effects == []


def test_draw_leaves_no_winner(db_conn, seeded, match, match_service):
    for _ in range(2):
        match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
        match_service.record_action(
            db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Extra Point from 5-yard line"
        )
        match_service.record_action(db_conn, match.id, seeded.team_b_id, seeded.b_players[0], "Touchdown")
        match_service.record_action(
            db_conn, match.id, seeded.team_b_id, seeded.b_players[0], "Extra Point from 5-yard line"
        )
    final = OutcomeService().finalize(db_conn, match.id).match
    assert (final.side_a.score, final.side_b.score) == (14, 14)
    assert final.winning_team_id is None
    assert final.side_a.win is None
    assert final.side_b.win is None

    standings = {e.team_id: e for e in LeaderboardService().compute_standings(db_conn, seeded.league_id)}
    for team_id in (seeded.team_a_id, seeded.team_b_id):
        assert standings[team_id].draws == 1
        assert standings[team_id].league_points == 0
        assert standings[team_id].point_difference == 0


def test_second_finalize_is_rejected_and_changes_nothing(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_b_id, seeded.b_players[0], "Safety")
    outcome = OutcomeService()
    first = outcome.finalize(db_conn, match.id).match
    with pytest.raises(AlreadyFinalizedError):
        outcome.finalize(db_conn, match.id)
    again = match_service.get_match(db_conn, match.id)
    assert again.winning_team_id == first.winning_team_id == seeded.team_b_id
    assert again.completed_at == first.completed_at

    [entry_b] = [e for e in LeaderboardService().compute_standings(db_conn, seeded.league_id)
                 if e.team_id == seeded.team_b_id]
    assert entry_b.wins == 1
    assert entry_b.league_points == 3
    assert CareerService().get_team_career(db_conn, seeded.team_b_id).games_won_5v5 == 1


def test_finalize_requires_live(db_conn, seeded, match):
    with pytest.raises(InvalidStateError):
        OutcomeService().finalize(db_conn, match.id)
    with pytest.raises(NotFoundError):
        OutcomeService().finalize(db_conn, "missing")


def test_box_score_never_decides_winner(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Safety")
    StatsService().submit_player_stats(
        db_conn, match.id, seeded.team_b_id, seeded.b_players[0], {"touchdowns": 4}
    )
    final = OutcomeService().finalize(db_conn, match.id).match
    assert final.winning_team_id == seeded.team_a_id
    assert final.side_b.team_stats.total_points == 24


def test_games_won_for_winning_roster(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    OutcomeService().finalize(db_conn, match.id)
    careers = CareerService()
    assert careers.get_team_career(db_conn, seeded.team_a_id).games_won_5v5 == 1
    for pid in seeded.a_players:
        career = careers.get_player_career(db_conn, pid)
        assert career.games_won_5v5 == 1
        assert career.games_won_7v7 == 0
    for pid in seeded.b_players:
        assert careers.get_player_career(db_conn, pid).games_won_5v5 == 0


def test_leaderboard_failure_is_reported_not_raised(db_conn, seeded, match, match_service):
    class BrokenLeaderboard(LeaderboardService):
        def apply_match_result(self, *args, **kwargs):
            raise RuntimeError("standings store down")

    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    result = OutcomeService(leaderboard=BrokenLeaderboard()).finalize(db_conn, match.id)
    assert result.failed_effects == ["leaderboard"]
    assert result.match.status == MatchStatus.COMPLETED
    assert CareerService().get_team_career(db_conn, seeded.team_a_id).games_won_5v5 == 1

    # Out-of-band repair brings standings back in line with match history.
    rebuilt = LeaderboardService().rebuild_standings(db_conn, seeded.league_id)
    assert rebuilt[0].team_id == seeded.team_a_id
    assert rebuilt[0].wins == 1


# ---------- concurrent finalize ----------


def test_concurrent_finalize_succeeds_once(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    workers = 4
    barrier = threading.Barrier(workers)
    outcomes: list[str] = []
    lock = threading.Lock()

    def finalize_on_own_connection() -> None:
        conn = get_connection()
        try:
            barrier.wait(timeout=10)
            try:
                OutcomeService().finalize(conn, match.id)
                outcome = "ok"
            except AlreadyFinalizedError:
                outcome = "already"
        finally:
            conn.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=finalize_on_own_connection) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["already"] * (workers - 1) + ["ok"]
    standings = {e.team_id: e for e in LeaderboardService().compute_standings(db_conn, seeded.league_id)}
    assert standings[seeded.team_a_id].wins == 1
    assert standings[seeded.team_a_id].league_points == 3
    assert standings[seeded.team_b_id].losses == 1
    assert CareerService().get_team_career(db_conn, seeded.team_a_id).games_won_5v5 == 1


def test_lost_completion_race_applies_no_effects(db_conn, seeded, match, match_service, monkeypatch):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    monkeypatch.setattr(MatchRepository, "mark_completed", lambda self, *args: False)
    with pytest.raises(AlreadyFinalizedError):
        OutcomeService().finalize(db_conn, match.id)
    standings = LeaderboardService().compute_standings(db_conn, seeded.league_id)
    assert all(e.wins == 0 and e.league_points == 0 for e in standings)
    assert CareerService().get_team_career(db_conn, seeded.team_a_id).games_won_5v5 == 0
