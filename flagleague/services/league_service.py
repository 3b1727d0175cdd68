"""
League-centric service: league/team/player registry, team acceptance and the
one-shot league winner.
"""
from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from datetime import date

from flagleague.logging_config import get_logger
from flagleague.models import League, MatchFormat, Player, Team
from flagleague.persistence.db import transaction
from flagleague.persistence.repositories import LeagueRepository, PlayerRepository, TeamRepository
from flagleague.services.career_service import CareerService
from flagleague.services.errors import AlreadyFinalizedError, NotFoundError, ValidationError
from flagleague.services.events import Event, EventKind, EventSink, LoggingEventSink, emit_safely
from flagleague.services.leaderboard_service import LeaderboardService

logger = get_logger(__name__)


class LeagueService:
    """
    Domain logic for leagues and their teams. Persistence is delegated to repositories.
    """

    def __init__(
        self,
        events: EventSink | None = None,
        leaderboard: LeaderboardService | None = None,
        career: CareerService | None = None,
    ) -> None:
        self._events = events or LoggingEventSink()
        self._leaderboard = leaderboard or LeaderboardService()
        self._career = career or CareerService()
        self._league_repo = LeagueRepository()
        self._team_repo = TeamRepository()
        self._player_repo = PlayerRepository()

    # ---------- Registry ----------

    def create_league(
        self, conn: sqlite3.Connection, name: str, format: str, start_date: date, end_date: date
    ) -> League:
        try:
            league_format = MatchFormat(format)
        except ValueError:
            raise ValidationError(f"Format must be '5v5' or '7v7', got {format!r}") from None
        if end_date < start_date:
            raise ValidationError(f"League ends ({end_date}) before it starts ({start_date})")
        with transaction(conn):
            league = self._league_repo.create(conn, name, league_format.value, start_date, end_date)
        logger.info("league_created", league_id=league.id, format=league.format)
        return league

    def get_league(self, conn: sqlite3.Connection, league_id: str) -> League:
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        return league

    def create_player(self, conn: sqlite3.Connection, name: str) -> Player:
        with transaction(conn):
            return self._player_repo.create(conn, name)

    def get_player(self, conn: sqlite3.Connection, player_id: str) -> Player:
        player = self._player_repo.get(conn, player_id)
        if player is None:
            raise NotFoundError(f"Player not found: {player_id}")
        return player

    def create_team(self, conn: sqlite3.Connection, name: str, player_ids: Iterable[str] = ()) -> Team:
        """Create a team with an optional initial roster (players must already exist)."""
        with transaction(conn):
            team = self._team_repo.create(conn, name)
            for pid in player_ids:
                if self._player_repo.get(conn, pid) is None:
                    raise NotFoundError(f"Player not found: {pid}")
                self._team_repo.add_player(conn, team.id, pid)
        logger.info("team_created", team_id=team.id)
        return self.get_team(conn, team.id)

    def get_team(self, conn: sqlite3.Connection, team_id: str) -> Team:
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        return team

    def add_player_to_team(self, conn: sqlite3.Connection, team_id: str, player_id: str) -> Team:
        with transaction(conn):
            if self._team_repo.get(conn, team_id) is None:
                raise NotFoundError(f"Team not found: {team_id}")
            if self._player_repo.get(conn, player_id) is None:
                raise NotFoundError(f"Player not found: {player_id}")
            self._team_repo.add_player(conn, team_id, player_id)
        return self.get_team(conn, team_id)

    # ---------- Membership ----------

    def accept_team(
        self, conn: sqlite3.Connection, league_id: str, team_id: str, actor_id: str | None = None
    ) -> bool:
        """
        Admit team into league. The standings row and the TEAM_ACCEPTED event follow
        as best-effort steps. Returns False if the team was already a member.
        """
        with transaction(conn):
            self.get_league(conn, league_id)
            self.get_team(conn, team_id)
            added = self._league_repo.add_team(conn, league_id, team_id)
        if not added:
            return False
        logger.info("team_accepted", league_id=league_id, team_id=team_id)
        try:
            with transaction(conn):
                self._leaderboard.ensure_entry(conn, league_id, team_id)
        except Exception:
            logger.exception("standing_entry_create_failed", league_id=league_id, team_id=team_id)
        emit_safely(self._events, Event(
            kind=EventKind.TEAM_ACCEPTED,
            receiver_id=team_id,
            sender_id=actor_id,
            league_id=league_id,
            message=f"Your team has been accepted into league {league_id}",
        ))
        return True

    def list_team_ids(self, conn: sqlite3.Connection, league_id: str) -> list[str]:
        self.get_league(conn, league_id)
        return self._league_repo.list_team_ids(conn, league_id)

    # ---------- Champion ----------

    def set_league_winner(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> League:
        """
        Designate the league champion once. The team and every rostered player get
        +1 leagues_won for the league format in the same transaction.
        """
        with transaction(conn):
            league = self.get_league(conn, league_id)
            self.get_team(conn, team_id)
            if not self._league_repo.has_team(conn, league_id, team_id):
                raise ValidationError(f"Team {team_id} is not part of league {league_id}")
            if not self._league_repo.set_winner(conn, league_id, team_id):
                raise AlreadyFinalizedError(
                    f"League {league_id} already has a winner: {league.winner_team_id}"
                )
            roster = self._team_repo.get_player_ids(conn, team_id)
            self._career.award_league_title(conn, team_id, roster, league.format)
        logger.info("league_winner_set", league_id=league_id, team_id=team_id)
        return self.get_league(conn, league_id)
