"""
Tests for the match state machine and the action ledger.
"""
from __future__ import annotations

from datetime import date

import pytest

from flagleague.models import MatchStatus
from flagleague.scoring import ledger_score
from flagleague.services import (
    ConcurrentUpdateError,
    EventKind,
    InvalidStateError,
    LeagueService,
    MatchService,
    NotFoundError,
    OutcomeService,
    ValidationError,
)


@pytest.fixture
def match_service(events):
    return MatchService(events=events)


@pytest.fixture
def match(db_conn, seeded, match_service):
    return match_service.create_match(
        db_conn,
        league_id=seeded.league_id,
        format="5v5",
        game_date=date(2026, 6, 1),
        game_time="18:30",
        team_a_id=seeded.team_a_id,
        team_b_id=seeded.team_b_id,
        referee_id="ref-1",
        stat_keeper_id="keeper-1",
        created_by="admin-1",
    )


# ---------- create_match ----------


def test_create_match_starts_upcoming(match, seeded):
    assert match.status == MatchStatus.UPCOMING
    assert match.side_a.team_id == seeded.team_a_id
    assert match.side_a.side == "offense"
    assert match.side_b.side == "defense"
    assert match.times_switched == "none"
    assert match.round_name == "Group Stage"
    assert match.version == 0


def test_create_match_notifies_referee_and_stat_keeper(match, events):
    assigned = events.of_kind(EventKind.GAME_ASSIGNED)
    assert sorted(e.receiver_id for e in assigned) == ["keeper-1", "ref-1"]
    assert all(e.match_id == match.id and e.sender_id == "admin-1" for e in assigned)


def test_create_match_outside_league_window(db_conn, seeded, match_service):
    with pytest.raises(ValidationError):
        match_service.create_match(
            db_conn, seeded.league_id, "5v5", date(2027, 1, 2), "10:00", seeded.team_a_id, seeded.team_b_id
        )


def test_create_match_wrong_format(db_conn, seeded, match_service):
    with pytest.raises(ValidationError):
        match_service.create_match(
            db_conn, seeded.league_id, "7v7", date(2026, 6, 1), "10:00", seeded.team_a_id, seeded.team_b_id
        )
    with pytest.raises(ValidationError):
        match_service.create_match(
            db_conn, seeded.league_id, "9v9", date(2026, 6, 1), "10:00", seeded.team_a_id, seeded.team_b_id
        )


def test_create_match_unknown_league(db_conn, seeded, match_service):
    with pytest.raises(NotFoundError):
        match_service.create_match(
            db_conn, "nope", "5v5", date(2026, 6, 1), "10:00", seeded.team_a_id, seeded.team_b_id
        )


def test_create_match_team_outside_league(db_conn, seeded, match_service):
    outsider = LeagueService().create_team(db_conn, "Strays")
    with pytest.raises(ValidationError):
        match_service.create_match(
            db_conn, seeded.league_id, "5v5", date(2026, 6, 1), "10:00", seeded.team_a_id, outsider.id
        )


def test_create_match_requires_opposite_sides(db_conn, seeded, match_service):
    with pytest.raises(ValidationError):
        match_service.create_match(
            db_conn, seeded.league_id, "5v5", date(2026, 6, 1), "10:00", seeded.team_a_id, seeded.team_b_id,
            side_a="offense", side_b="offense",
        )


# ---------- listing and rescheduling ----------


def test_list_matches_filters_by_league_and_status(db_conn, seeded, match, match_service):
    early = match_service.create_match(
        db_conn, seeded.league_id, "5v5", date(2026, 3, 1), "09:00", seeded.team_b_id, seeded.team_a_id
    )
    other = LeagueService().create_league(db_conn, "Winter", "5v5", date(2026, 1, 1), date(2026, 2, 28))
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Safety")

    assert [m.id for m in match_service.list_matches(db_conn, seeded.league_id)] == [early.id, match.id]
    assert [m.id for m in match_service.list_matches(db_conn, status="live")] == [match.id]
    assert [m.id for m in match_service.list_matches(db_conn, seeded.league_id, "upcoming")] == [early.id]
    assert match_service.list_matches(db_conn, seeded.league_id, "completed") == []
    assert match_service.list_matches(db_conn, other.id) == []


def test_list_matches_rejects_bad_filters(db_conn, seeded, match_service):
    with pytest.raises(ValidationError):
        match_service.list_matches(db_conn, seeded.league_id, status="continue")
    with pytest.raises(NotFoundError):
        match_service.list_matches(db_conn, "no-such-league")


def test_update_match_reschedules(db_conn, seeded, match, match_service):
    updated = match_service.update_match(
        db_conn, match.id, game_date=date(2026, 7, 4), game_time=" 20:00 ", venue="Field 2", round_name="Final"
    )
    assert updated.game_date == date(2026, 7, 4)
    assert updated.game_time == "20:00"
    assert updated.venue == "Field 2"
    assert updated.round_name == "Final"
    assert updated.referee_id == "ref-1"
    assert updated.version == match.version + 1
    assert updated.status == MatchStatus.UPCOMING


def test_update_match_date_must_stay_in_league_window(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.update_match(db_conn, match.id, game_date=date(2027, 1, 2))
    assert match_service.get_match(db_conn, match.id).game_date == date(2026, 6, 1)


def test_update_match_notifies_new_officials_only(db_conn, seeded, match, match_service, events):
    before = len(events.of_kind(EventKind.GAME_ASSIGNED))
    match_service.update_match(db_conn, match.id, referee_id="ref-2", stat_keeper_id="keeper-1", updated_by="admin-1")
    assigned = events.of_kind(EventKind.GAME_ASSIGNED)[before:]
    assert [e.receiver_id for e in assigned] == ["ref-2"]
    assert assigned[0].sender_id == "admin-1"
    assert match_service.get_match(db_conn, match.id).referee_id == "ref-2"


def test_update_match_only_while_upcoming(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    with pytest.raises(InvalidStateError):
        match_service.update_match(db_conn, match.id, venue="Field 9")
    with pytest.raises(NotFoundError):
        match_service.update_match(db_conn, "nope", venue="Field 9")


# ---------- record_action ----------


def test_first_action_makes_match_live(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    updated = match_service.get_match(db_conn, match.id)
    assert updated.status == MatchStatus.LIVE
    assert updated.side_a.score == 6
    assert updated.version == 1


def test_score_equals_ledger_after_every_action(db_conn, seeded, match, match_service):
    plays = [
        (seeded.team_a_id, seeded.a_players[0], "Touchdown"),
        (seeded.team_a_id, seeded.a_players[1], "Extra Point from 5-yard line"),
        (seeded.team_b_id, seeded.b_players[0], "Safety"),
        (seeded.team_b_id, seeded.b_players[1], "Extra Point Return only"),
        (seeded.team_a_id, seeded.a_players[2], "Extra Point from 20-yard line"),
    ]
    for team_id, player_id, action in plays:
        match_service.record_action(db_conn, match.id, team_id, player_id, action)
        current = match_service.get_match(db_conn, match.id)
        for side in current.sides():
            assert side.score == ledger_score(side.actions)
    final = match_service.get_match(db_conn, match.id)
    assert final.side_a.score == 9
    assert final.side_b.score == 6
    assert [a.seq for a in final.side_a.actions] == sorted(a.seq for a in final.side_a.actions)


def test_action_does_not_touch_stat_lines(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    current = match_service.get_match(db_conn, match.id)
    assert current.side_a.player_stats == []
    assert current.side_a.team_stats.total_points == 0


def test_action_records_period(db_conn, seeded, match, match_service):
    record = match_service.record_action(
        db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Safety", period="halfTime"
    )
    assert record.period == "halfTime"
    assert record.points == 2


def test_unknown_action_type_rejected(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Field Goal")


def test_unknown_period_rejected(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.record_action(
            db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown", period="thirdQuarter"
        )


def test_team_not_in_match_rejected(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.record_action(db_conn, match.id, "other-team", seeded.a_players[0], "Touchdown")


def test_player_not_on_roster_rejected(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.b_players[0], "Touchdown")


def test_unknown_player_and_match(db_conn, seeded, match, match_service):
    with pytest.raises(NotFoundError):
        match_service.record_action(db_conn, match.id, seeded.team_a_id, "ghost", "Touchdown")
    with pytest.raises(NotFoundError):
        match_service.record_action(db_conn, "no-match", seeded.team_a_id, seeded.a_players[0], "Touchdown")


def test_stale_version_rejected(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    with pytest.raises(ConcurrentUpdateError):
        match_service.record_action(
            db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown", expected_version=0
        )
    assert match_service.get_match(db_conn, match.id).side_a.score == 6


def test_failed_action_leaves_no_trace(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.b_players[0], "Touchdown")
    current = match_service.get_match(db_conn, match.id)
    assert current.status == MatchStatus.UPCOMING
    assert current.version == 0


def test_action_after_completion_rejected(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    OutcomeService().finalize(db_conn, match.id)
    with pytest.raises(InvalidStateError):
        match_service.record_action(db_conn, match.id, seeded.team_b_id, seeded.b_players[0], "Touchdown")


# ---------- side swaps ----------


def _go_live(db_conn, seeded, match, match_service):
    match_service.record_action(db_conn, match.id, seeded.team_a_id, seeded.a_players[0], "Touchdown")
    match_service.record_action(db_conn, match.id, seeded.team_b_id, seeded.b_players[0], "Safety")


def test_half_time_swaps_sides_only(db_conn, seeded, match, match_service):
    _go_live(db_conn, seeded, match, match_service)
    before = match_service.get_match(db_conn, match.id)
    after = match_service.switch_half_time(db_conn, match.id)
    assert after.times_switched == "halfTime"
    assert after.side_a.side == "defense"
    assert after.side_b.side == "offense"
    assert after.status == before.status
    assert (after.side_a.score, after.side_b.score) == (before.side_a.score, before.side_b.score)
    assert after.side_a.team_stats == before.side_a.team_stats


def test_full_time_swaps_back(db_conn, seeded, match, match_service):
    _go_live(db_conn, seeded, match, match_service)
    match_service.switch_half_time(db_conn, match.id)
    after = match_service.switch_full_time(db_conn, match.id)
    assert after.times_switched == "fullTime"
    assert after.side_a.side == "offense"


def test_overtime_sets_marker_without_swap(db_conn, seeded, match, match_service):
    _go_live(db_conn, seeded, match, match_service)
    after = match_service.switch_overtime(db_conn, match.id)
    assert after.times_switched == "overtime"
    assert after.side_a.side == "offense"


def test_switch_requires_live(db_conn, seeded, match, match_service):
    with pytest.raises(InvalidStateError):
        match_service.switch_half_time(db_conn, match.id)
    _go_live(db_conn, seeded, match, match_service)
    OutcomeService().finalize(db_conn, match.id)
    with pytest.raises(InvalidStateError):
        match_service.switch_full_time(db_conn, match.id)


def test_switch_marker_only_moves_forward(db_conn, seeded, match, match_service):
    _go_live(db_conn, seeded, match, match_service)
    match_service.switch_full_time(db_conn, match.id)
    with pytest.raises(InvalidStateError):
        match_service.switch_half_time(db_conn, match.id)
    with pytest.raises(InvalidStateError):
        match_service.switch_full_time(db_conn, match.id)


# ---------- coin toss ----------


def test_coin_toss_while_upcoming(db_conn, seeded, match, match_service):
    after = match_service.apply_coin_toss(db_conn, match.id, seeded.team_b_id, "offense")
    assert after.toss_winner_team_id == seeded.team_b_id
    assert after.side_b.side == "offense"
    assert after.side_a.side == "defense"
    assert after.status == MatchStatus.UPCOMING


def test_coin_toss_allowed_early_live(db_conn, seeded, match, match_service):
    _go_live(db_conn, seeded, match, match_service)
    after = match_service.apply_coin_toss(db_conn, match.id, seeded.team_a_id, "defense")
    assert after.side_a.side == "defense"
    assert after.side_a.score == 6


def test_coin_toss_rejected_after_half_time(db_conn, seeded, match, match_service):
    _go_live(db_conn, seeded, match, match_service)
    match_service.switch_half_time(db_conn, match.id)
    with pytest.raises(InvalidStateError):
        match_service.apply_coin_toss(db_conn, match.id, seeded.team_a_id, "offense")


def test_coin_toss_validation(db_conn, seeded, match, match_service):
    with pytest.raises(ValidationError):
        match_service.apply_coin_toss(db_conn, match.id, seeded.team_a_id, "kickoff")
    with pytest.raises(ValidationError):
        match_service.apply_coin_toss(db_conn, match.id, "other-team", "offense")
