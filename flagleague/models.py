"""
Data models for the flag league engine.
Domain objects only: no persistence or API logic.

A league owns teams; teams play matches; each match has two embedded sides
(ledger, box score, score). Standings and career totals are derived from
completed matches.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """Match lifecycle: upcoming → live → completed."""
    UPCOMING = "upcoming"    # Scheduled, no action recorded yet
    LIVE = "live"            # At least one action on a ledger
    COMPLETED = "completed"  # Finalized exactly once


class MatchFormat(str, Enum):
    FIVE_V_FIVE = "5v5"
    SEVEN_V_SEVEN = "7v7"


class Side(str, Enum):
    OFFENSE = "offense"
    DEFENSE = "defense"

    def opposite(self) -> Side:
        return Side.DEFENSE if self is Side.OFFENSE else Side.OFFENSE


class TimesSwitched(str, Enum):
    """Timeout marker. Ordered: none < halfTime < fullTime < overtime."""
    NONE = "none"
    HALF_TIME = "halfTime"
    FULL_TIME = "fullTime"
    OVERTIME = "overtime"


class ActionType(str, Enum):
    """Referee-recorded scoring plays. Point values live in scoring.ACTION_POINTS."""
    TOUCHDOWN = "Touchdown"
    EXTRA_POINT_5 = "Extra Point from 5-yard line"
    EXTRA_POINT_12 = "Extra Point from 12-yard line"
    EXTRA_POINT_20 = "Extra Point from 20-yard line"
    DEFENSIVE_TOUCHDOWN = "Defensive Touchdown"
    EXTRA_POINT_RETURN = "Extra Point Return only"
    SAFETY = "Safety"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ---------- League / Team / Player (registry snapshots) ----------
@dataclass
class League:
    """
    Competition container. format decides which games_won/leagues_won counter moves.
    Matches must be scheduled inside [start_date, end_date].
    """
    id: str
    name: str
    format: str  # MatchFormat value
    start_date: date
    end_date: date
    created_at: datetime
    winner_team_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "format": self.format,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "created_at": self.created_at.isoformat(),
        }
        if self.winner_team_id is not None:
            d["winner_team_id"] = self.winner_team_id
        return d


@dataclass
class Team:
    id: str
    name: str
    created_at: datetime
    player_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "player_ids": list(self.player_ids),
        }


@dataclass
class Player:
    id: str
    name: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "created_at": self.created_at.isoformat()}


# ---------- Box score ----------
@dataclass
class StatLine:
    """
    Per-match counters shared by player and team lines.
    total_points is derived (scoring.stat_total_points); never set it by hand.
    """
    catches: int = 0
    catch_yards: int = 0
    rushes: int = 0
    rush_yards: int = 0
    pass_attempts: int = 0
    pass_yards: int = 0
    completions: int = 0
    touchdowns: int = 0
    defensive_touchdowns: int = 0
    conversion_points: int = 0
    safeties: int = 0
    flag_pulls: int = 0
    sacks: int = 0
    interceptions: int = 0
    total_points: int = 0

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class PlayerStatLine:
    """One player's box score for one side of one match. Keyed by (match_id, team_id, player_id)."""
    match_id: str
    team_id: str
    player_id: str
    stats: StatLine = field(default_factory=StatLine)

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "team_id": self.team_id,
            "player_id": self.player_id,
            **self.stats.to_dict(),
        }


# ---------- Ledger ----------
@dataclass
class ActionRecord:
    """Immutable scoring event. seq is insertion order and the primary ledger order."""
    seq: int
    match_id: str
    team_id: str
    player_id: str
    action_type: str  # ActionType value
    points: int
    timestamp: datetime
    period: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "seq": self.seq,
            "team_id": self.team_id,
            "player_id": self.player_id,
            "action_type": self.action_type,
            "points": self.points,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.period is not None:
            d["period"] = self.period
        return d


# ---------- Match ----------
@dataclass
class TeamSide:
    """
    One team's half of a match.
    score == sum of ledger points; team_stats == fieldwise sum of player_stats.
    win: True/False once decided, None for draws and unfinished matches.
    """
    team_id: str
    side: str  # Side value
    score: int = 0
    win: bool | None = None
    actions: list[ActionRecord] = field(default_factory=list)
    player_stats: list[PlayerStatLine] = field(default_factory=list)
    team_stats: StatLine = field(default_factory=StatLine)

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "side": self.side,
            "score": self.score,
            "win": self.win,
            "actions": [a.to_dict() for a in self.actions],
            "player_stats": [p.to_dict() for p in self.player_stats],
            "team_stats": self.team_stats.to_dict(),
        }


@dataclass
class Match:
    """
    One fixture. status is derived from completed_at and the ledgers, never stored
    as a separate flag: completed once completed_at is set, live once any action
    exists, upcoming otherwise.
    """
    id: str
    league_id: str
    format: str  # MatchFormat value
    game_date: date
    game_time: str
    venue: str
    round_name: str
    game_number: str
    created_by: str | None
    referee_id: str | None
    stat_keeper_id: str | None
    side_a: TeamSide
    side_b: TeamSide
    times_switched: str  # TimesSwitched value
    version: int
    created_at: datetime
    toss_winner_team_id: str | None = None
    winning_team_id: str | None = None
    completed_at: datetime | None = None

    @property
    def status(self) -> MatchStatus:
        if self.completed_at is not None:
            return MatchStatus.COMPLETED
        if self.side_a.actions or self.side_b.actions:
            return MatchStatus.LIVE
        return MatchStatus.UPCOMING

    def sides(self) -> tuple[TeamSide, TeamSide]:
        return self.side_a, self.side_b

    def side_for_team(self, team_id: str) -> TeamSide | None:
        for s in self.sides():
            if s.team_id == team_id:
                return s
        return None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "league_id": self.league_id,
            "format": self.format,
            "game_date": self.game_date.isoformat(),
            "game_time": self.game_time,
            "venue": self.venue,
            "round_name": self.round_name,
            "game_number": self.game_number,
            "status": self.status.value,
            "times_switched": self.times_switched,
            "side_a": self.side_a.to_dict(),
            "side_b": self.side_b.to_dict(),
            "winning_team_id": self.winning_team_id,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
        }
        if self.created_by is not None:
            d["created_by"] = self.created_by
        if self.referee_id is not None:
            d["referee_id"] = self.referee_id
        if self.stat_keeper_id is not None:
            d["stat_keeper_id"] = self.stat_keeper_id
        if self.toss_winner_team_id is not None:
            d["toss_winner_team_id"] = self.toss_winner_team_id
        if self.completed_at is not None:
            d["completed_at"] = self.completed_at.isoformat()
        return d


# ---------- Leaderboard ----------
@dataclass
class StandingEntry:
    """One leaderboard row. point_difference is always points_scored - points_against."""
    league_id: str
    team_id: str
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points_scored: int = 0
    points_against: int = 0
    point_difference: int = 0
    league_points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "points_scored": self.points_scored,
            "points_against": self.points_against,
            "point_difference": self.point_difference,
            "league_points": self.league_points,
        }


# ---------- Career ----------
@dataclass
class CareerStats:
    """Lifetime totals for a player or a team. Only ever incremented."""
    owner_id: str
    stats: StatLine = field(default_factory=StatLine)
    matches_played: int = 0
    leagues_played: int = 0
    games_won_5v5: int = 0
    games_won_7v7: int = 0
    leagues_won_5v5: int = 0
    leagues_won_7v7: int = 0
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            **self.stats.to_dict(),
            "matches_played": self.matches_played,
            "leagues_played": self.leagues_played,
            "games_won_5v5": self.games_won_5v5,
            "games_won_7v7": self.games_won_7v7,
            "leagues_won_5v5": self.leagues_won_5v5,
            "leagues_won_7v7": self.leagues_won_7v7,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


# ---------- Stat review ----------
@dataclass
class StatReview:
    """A stat keeper's request for an admin to sign off on a match box score."""
    id: str
    match_id: str
    submitted_by: str
    status: str  # ReviewStatus value
    created_at: datetime
    reason: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "match_id": self.match_id,
            "submitted_by": self.submitted_by,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }
        if self.reason is not None:
            d["reason"] = self.reason
        if self.resolved_by is not None:
            d["resolved_by"] = self.resolved_by
        if self.resolved_at is not None:
            d["resolved_at"] = self.resolved_at.isoformat()
        return d
