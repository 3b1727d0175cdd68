"""
Match state machine and action ledger.

upcoming → live happens implicitly on the first recorded action (status is
derived from the ledger, never stored). live → completed belongs to the
OutcomeService. Every mutation runs in one transaction and bumps the match
version.
"""
from __future__ import annotations

import sqlite3
from datetime import date

from flagleague.logging_config import get_logger
from flagleague.models import (
    ActionRecord,
    Match,
    MatchFormat,
    MatchStatus,
    Side,
    TeamSide,
    TimesSwitched,
)
from flagleague.persistence.db import transaction
from flagleague.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    PlayerRepository,
    TeamRepository,
)
from flagleague.scoring import action_points, parse_action_type
from flagleague.services.errors import (
    ConcurrentUpdateError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from flagleague.services.events import Event, EventKind, EventSink, LoggingEventSink, emit_safely

logger = get_logger(__name__)


# ---------- Side-swap ordering ----------

_SWITCH_ORDER: dict[str, int] = {
    TimesSwitched.NONE.value: 0,
    TimesSwitched.HALF_TIME.value: 1,
    TimesSwitched.FULL_TIME.value: 2,
    TimesSwitched.OVERTIME.value: 3,
}


def _parse_side(value: str) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise ValidationError(f"Side must be 'offense' or 'defense', got {value!r}") from None


def _parse_format(value: str) -> MatchFormat:
    try:
        return MatchFormat(value)
    except ValueError:
        raise ValidationError(f"Format must be '5v5' or '7v7', got {value!r}") from None


# ---------- Shared guards (also used by the stats and outcome services) ----------


def load_match(
    match_repo: MatchRepository,
    conn: sqlite3.Connection,
    match_id: str,
    expected_version: int | None = None,
) -> Match:
    """Fetch a match or raise NotFound. expected_version, when given, must match the stored one."""
    match = match_repo.get(conn, match_id)
    if match is None:
        raise NotFoundError(f"Match not found: {match_id}")
    if expected_version is not None and expected_version != match.version:
        raise ConcurrentUpdateError(
            f"Match {match_id} is at version {match.version}, expected {expected_version}"
        )
    return match


def bump_version(match_repo: MatchRepository, conn: sqlite3.Connection, match: Match) -> None:
    if not match_repo.bump_version(conn, match.id, match.version):
        raise ConcurrentUpdateError(f"Match {match.id} changed during update")


def resolve_side(match: Match, team_id: str) -> TeamSide:
    side = match.side_for_team(team_id)
    if side is None:
        raise ValidationError(f"Team {team_id} is not playing in match {match.id}")
    return side


def check_player_on_team(
    player_repo: PlayerRepository,
    team_repo: TeamRepository,
    conn: sqlite3.Connection,
    team_id: str,
    player_id: str,
) -> None:
    """Player must exist; when the team has a registered roster the player must be on it."""
    if player_repo.get(conn, player_id) is None:
        raise NotFoundError(f"Player not found: {player_id}")
    roster = team_repo.get_player_ids(conn, team_id)
    if roster and player_id not in roster:
        raise ValidationError(f"Player {player_id} is not on the roster of team {team_id}")


# ---------- MatchService ----------


class MatchService:
    """
    Domain logic for a single match: creation, the referee ledger, side swaps
    and the coin toss. Persistence is delegated to repositories.
    """

    def __init__(self, events: EventSink | None = None) -> None:
        self._events = events or LoggingEventSink()
        self._match_repo = MatchRepository()
        self._league_repo = LeagueRepository()
        self._team_repo = TeamRepository()
        self._player_repo = PlayerRepository()

    # ---------- Creation ----------

    def create_match(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        format: str,
        game_date: date,
        game_time: str,
        team_a_id: str,
        team_b_id: str,
        venue: str = "",
        round_name: str = "Group Stage",
        game_number: str = "",
        side_a: str = Side.OFFENSE,
        side_b: str = Side.DEFENSE,
        created_by: str | None = None,
        referee_id: str | None = None,
        stat_keeper_id: str | None = None,
    ) -> Match:
        """
        Schedule a match. The league must exist, share the format and contain both teams,
        and game_date must fall inside the league window. Starts upcoming.
        """
        match_format = _parse_format(format)
        first, second = _parse_side(side_a), _parse_side(side_b)
        if first == second:
            raise ValidationError("The two sides must start on opposite sides of the ball")
        if team_a_id == team_b_id:
            raise ValidationError("A match needs two different teams")

        with transaction(conn):
            league = self._league_repo.get(conn, league_id)
            if league is None:
                raise NotFoundError(f"League not found: {league_id}")
            if league.format != match_format:
                raise ValidationError(
                    f"Match format {match_format.value} does not match league format {league.format}"
                )
            if not (league.start_date <= game_date <= league.end_date):
                raise ValidationError(
                    f"Game date {game_date} is outside the league window "
                    f"{league.start_date}..{league.end_date}"
                )
            for tid in (team_a_id, team_b_id):
                if self._team_repo.get(conn, tid) is None:
                    raise NotFoundError(f"Team not found: {tid}")
                if not self._league_repo.has_team(conn, league_id, tid):
                    raise ValidationError(f"Team {tid} is not part of league {league_id}")
            match = self._match_repo.create(
                conn,
                league_id=league_id,
                format=match_format.value,
                game_date=game_date,
                game_time=game_time,
                team_a_id=team_a_id,
                side_a=first.value,
                team_b_id=team_b_id,
                side_b=second.value,
                venue=venue,
                round_name=round_name,
                game_number=game_number,
                created_by=created_by,
                referee_id=referee_id,
                stat_keeper_id=stat_keeper_id,
            )

        logger.info("match_created", match_id=match.id, league_id=league_id, game_date=game_date.isoformat())
        for receiver in (referee_id, stat_keeper_id):
            if receiver:
                emit_safely(self._events, Event(
                    kind=EventKind.GAME_ASSIGNED,
                    receiver_id=receiver,
                    sender_id=created_by,
                    match_id=match.id,
                    league_id=league_id,
                    message=f"You have been assigned to a game on {game_date.isoformat()} at {game_time}",
                ))
        return match

    def get_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return load_match(self._match_repo, conn, match_id)

    def list_matches(
        self, conn: sqlite3.Connection, league_id: str | None = None, status: str | None = None
    ) -> list[Match]:
        """Matches in kickoff order, filtered by league and/or derived status."""
        wanted = None
        if status is not None:
            try:
                wanted = MatchStatus(status)
            except ValueError:
                raise ValidationError(
                    f"Status filter must be upcoming, live or completed, got {status!r}"
                ) from None
        if league_id is not None and self._league_repo.get(conn, league_id) is None:
            raise NotFoundError(f"League not found: {league_id}")
        matches = self._match_repo.list_scheduled(conn, league_id)
        if wanted is not None:
            matches = [m for m in matches if m.status == wanted]
        return matches

    def update_match(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        game_date: date | None = None,
        game_time: str | None = None,
        venue: str | None = None,
        round_name: str | None = None,
        game_number: str | None = None,
        referee_id: str | None = None,
        stat_keeper_id: str | None = None,
        updated_by: str | None = None,
        expected_version: int | None = None,
    ) -> Match:
        """
        Reschedule an upcoming match or reassign its officials. Arguments left as None
        keep their current value. A new referee or stat keeper gets GAME_ASSIGNED.
        """
        changes: dict[str, object] = {}
        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id, expected_version)
            if match.status != MatchStatus.UPCOMING:
                raise InvalidStateError(
                    f"Match {match_id} is {match.status.value}; only upcoming matches can be rescheduled"
                )
            if game_date is not None:
                league = self._league_repo.get(conn, match.league_id)
                if league is None:
                    raise NotFoundError(f"League not found: {match.league_id}")
                if not (league.start_date <= game_date <= league.end_date):
                    raise ValidationError(
                        f"Game date {game_date} is outside the league window "
                        f"{league.start_date}..{league.end_date}"
                    )
                changes["game_date"] = game_date
            if game_time is not None:
                if not game_time.strip():
                    raise ValidationError("Game time cannot be blank")
                changes["game_time"] = game_time.strip()
            for column, value in (
                ("venue", venue),
                ("round_name", round_name),
                ("game_number", game_number),
                ("referee_id", referee_id),
                ("stat_keeper_id", stat_keeper_id),
            ):
                if value is not None:
                    changes[column] = value
            if changes:
                self._match_repo.update_schedule(conn, match_id, changes)
                bump_version(self._match_repo, conn, match)

        updated = self.get_match(conn, match_id)
        logger.info("match_updated", match_id=match_id, fields=sorted(changes))
        for receiver, previous in (
            (referee_id, match.referee_id),
            (stat_keeper_id, match.stat_keeper_id),
        ):
            if receiver and receiver != previous:
                emit_safely(self._events, Event(
                    kind=EventKind.GAME_ASSIGNED,
                    receiver_id=receiver,
                    sender_id=updated_by,
                    match_id=match_id,
                    league_id=match.league_id,
                    message=(
                        f"You have been assigned to a game on {updated.game_date.isoformat()} "
                        f"at {updated.game_time}"
                    ),
                ))
        return updated

    # ---------- Ledger ----------

    def record_action(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        team_id: str,
        player_id: str,
        action_type: str,
        period: str | None = None,
        expected_version: int | None = None,
    ) -> ActionRecord:
        """
        Append a scoring play to the team's ledger and add its points to the side score.
        The first accepted action makes an upcoming match live. Stat lines are untouched.
        """
        parsed = parse_action_type(action_type)
        if parsed is None:
            raise ValidationError(f"Unknown action type: {action_type!r}")
        if period is not None and period not in _SWITCH_ORDER:
            raise ValidationError(f"Unknown period marker: {period!r}")

        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id, expected_version)
            if match.status == MatchStatus.COMPLETED:
                raise InvalidStateError(f"Match {match_id} is completed; no more actions")
            resolve_side(match, team_id)
            check_player_on_team(self._player_repo, self._team_repo, conn, team_id, player_id)
            points = action_points(parsed)
            record = self._match_repo.append_action(
                conn, match_id, team_id, player_id, parsed.value, points, period
            )
            self._match_repo.add_to_score(conn, match_id, team_id, points)
            bump_version(self._match_repo, conn, match)

        logger.info(
            "action_recorded",
            match_id=match_id,
            team_id=team_id,
            player_id=player_id,
            action_type=parsed.value,
            points=points,
            went_live=match.status == MatchStatus.UPCOMING,
        )
        return record

    # ---------- Side swaps ----------

    def switch_half_time(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return self._switch(conn, match_id, TimesSwitched.HALF_TIME, swap=True)

    def switch_full_time(self, conn: sqlite3.Connection, match_id: str) -> Match:
        return self._switch(conn, match_id, TimesSwitched.FULL_TIME, swap=True)

    def switch_overtime(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Overtime sets the marker only; sides stay where they are."""
        return self._switch(conn, match_id, TimesSwitched.OVERTIME, swap=False)

    def _switch(self, conn: sqlite3.Connection, match_id: str, marker: TimesSwitched, swap: bool) -> Match:
        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id)
            if match.status != MatchStatus.LIVE:
                raise InvalidStateError(
                    f"Cannot switch to {marker.value}: match must be live (current: {match.status.value})"
                )
            if _SWITCH_ORDER[marker.value] <= _SWITCH_ORDER[match.times_switched]:
                raise InvalidStateError(
                    f"Cannot switch to {marker.value}: already at {match.times_switched}"
                )
            if swap:
                self._match_repo.swap_sides(conn, match_id)
            self._match_repo.update_times_switched(conn, match_id, marker.value)
            bump_version(self._match_repo, conn, match)
        logger.info("sides_switched", match_id=match_id, marker=marker.value, swapped=swap)
        return self.get_match(conn, match_id)

    # ---------- Coin toss ----------

    def apply_coin_toss(
        self, conn: sqlite3.Connection, match_id: str, winner_team_id: str, choice: str
    ) -> Match:
        """
        Toss winner takes `choice`; the other team gets the opposite side.
        Allowed while upcoming, or while live before the first side swap.
        """
        chosen = _parse_side(choice)
        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id)
            status = match.status
            early_live = status == MatchStatus.LIVE and match.times_switched == TimesSwitched.NONE
            if status != MatchStatus.UPCOMING and not early_live:
                raise InvalidStateError(
                    f"Coin toss not allowed: match is {status.value}, times_switched={match.times_switched}"
                )
            resolve_side(match, winner_team_id)
            for side in match.sides():
                value = chosen if side.team_id == winner_team_id else chosen.opposite()
                self._match_repo.set_side(conn, match_id, side.team_id, value.value)
            self._match_repo.update_toss_winner(conn, match_id, winner_team_id)
            bump_version(self._match_repo, conn, match)
        logger.info("coin_toss_applied", match_id=match_id, winner_team_id=winner_team_id, choice=chosen.value)
        return self.get_match(conn, match_id)
