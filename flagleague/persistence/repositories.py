"""
Repository interfaces for league data.
No business logic, only read/write operations. Repositories never commit;
callers wrap writes in persistence.db.transaction().
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime, timezone
from typing import Any

from flagleague.models import (
    ActionRecord,
    CareerStats,
    League,
    Match,
    Player,
    PlayerStatLine,
    StandingEntry,
    StatLine,
    StatReview,
    Team,
    TeamSide,
)
from flagleague.scoring import STAT_FIELDS

_STAT_COLUMNS = STAT_FIELDS + ("total_points",)
_CAREER_EXTRA_COLUMNS = (
    "matches_played",
    "leagues_played",
    "games_won_5v5",
    "games_won_7v7",
    "leagues_won_5v5",
    "leagues_won_7v7",
)
_SCHEDULE_COLUMNS = frozenset({
    "game_date", "game_time", "venue", "round_name", "game_number", "referee_id", "stat_keeper_id",
})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_optional_datetime(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


def _stat_line_from_row(r: sqlite3.Row) -> StatLine:
    return StatLine(**{c: r[c] for c in _STAT_COLUMNS})


def _win_from_db(value: int | None) -> bool | None:
    return None if value is None else bool(value)


def _win_to_db(value: bool | None) -> int | None:
    return None if value is None else int(value)


# ---------- LeagueRepository ----------


class LeagueRepository:
    """CRUD for leagues and league membership."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        format: str,
        start_date: date,
        end_date: date,
        id: str | None = None,
    ) -> League:
        lid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO leagues (id, name, format, start_date, end_date, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (lid, name, format, start_date.isoformat(), end_date.isoformat(), now),
        )
        return League(
            id=lid, name=name, format=format, start_date=start_date, end_date=end_date,
            created_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute(
            "SELECT id, name, format, start_date, end_date, winner_team_id, created_at FROM leagues WHERE id = ?",
            (league_id,),
        ).fetchone()
        if row is None:
            return None
        return League(
            id=row["id"],
            name=row["name"],
            format=row["format"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            created_at=_parse_datetime(row["created_at"]),
            winner_team_id=row["winner_team_id"],
        )

    def set_winner(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        """Compare-and-swap: only succeeds while no winner is recorded."""
        cur = conn.execute(
            "UPDATE leagues SET winner_team_id = ? WHERE id = ? AND winner_team_id IS NULL",
            (team_id, league_id),
        )
        return cur.rowcount == 1

    def add_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        """Returns False if the team was already in the league."""
        cur = conn.execute(
            "INSERT OR IGNORE INTO league_teams (league_id, team_id, joined_at) VALUES (?, ?, ?)",
            (league_id, team_id, _now_iso()),
        )
        return cur.rowcount == 1

    def has_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM league_teams WHERE league_id = ? AND team_id = ?",
            (league_id, team_id),
        ).fetchone()
        return row is not None

    def list_team_ids(self, conn: sqlite3.Connection, league_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT team_id FROM league_teams WHERE league_id = ? ORDER BY joined_at, rowid",
            (league_id,),
        ).fetchall()
        return [r["team_id"] for r in rows]


# ---------- PlayerRepository ----------


class PlayerRepository:
    def create(self, conn: sqlite3.Connection, name: str, id: str | None = None) -> Player:
        pid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute("INSERT INTO players (id, name, created_at) VALUES (?, ?, ?)", (pid, name, now))
        return Player(id=pid, name=name, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute("SELECT id, name, created_at FROM players WHERE id = ?", (player_id,)).fetchone()
        if row is None:
            return None
        return Player(id=row["id"], name=row["name"], created_at=_parse_datetime(row["created_at"]))


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD for teams and their rosters."""

    def create(self, conn: sqlite3.Connection, name: str, id: str | None = None) -> Team:
        tid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute("INSERT INTO teams (id, name, created_at) VALUES (?, ?, ?)", (tid, name, now))
        return Team(id=tid, name=name, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute("SELECT id, name, created_at FROM teams WHERE id = ?", (team_id,)).fetchone()
        if row is None:
            return None
        return Team(
            id=row["id"],
            name=row["name"],
            created_at=_parse_datetime(row["created_at"]),
            player_ids=self.get_player_ids(conn, team_id),
        )

    def add_player(self, conn: sqlite3.Connection, team_id: str, player_id: str) -> bool:
        """Append player to the roster. Returns False if already on it."""
        row = conn.execute(
            "SELECT COALESCE(MAX(position), 0) AS pos FROM team_players WHERE team_id = ?", (team_id,)
        ).fetchone()
        cur = conn.execute(
            "INSERT OR IGNORE INTO team_players (team_id, player_id, position) VALUES (?, ?, ?)",
            (team_id, player_id, row["pos"] + 1),
        )
        return cur.rowcount == 1

    def get_player_ids(self, conn: sqlite3.Connection, team_id: str) -> list[str]:
        """Return player_ids for team, ordered by position."""
        rows = conn.execute(
            "SELECT player_id FROM team_players WHERE team_id = ? ORDER BY position",
            (team_id,),
        ).fetchall()
        return [r["player_id"] for r in rows]

    def has_player(self, conn: sqlite3.Connection, team_id: str, player_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM team_players WHERE team_id = ? AND player_id = ?", (team_id, player_id)
        ).fetchone()
        return row is not None


# ---------- MatchRepository ----------


class MatchRepository:
    """Match header, the two sides and the append-only ledger."""

    def create(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        format: str,
        game_date: date,
        game_time: str,
        team_a_id: str,
        side_a: str,
        team_b_id: str,
        side_b: str,
        venue: str = "",
        round_name: str = "Group Stage",
        game_number: str = "",
        created_by: str | None = None,
        referee_id: str | None = None,
        stat_keeper_id: str | None = None,
        id: str | None = None,
    ) -> Match:
        mid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            """INSERT INTO matches (
                id, league_id, format, game_date, game_time, venue, round_name, game_number,
                created_by, referee_id, stat_keeper_id, times_switched, version, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'none', 0, ?)""",
            (
                mid, league_id, format, game_date.isoformat(), game_time, venue, round_name,
                game_number, created_by, referee_id, stat_keeper_id, now,
            ),
        )
        for slot, team_id, side in (("a", team_a_id, side_a), ("b", team_b_id, side_b)):
            conn.execute(
                "INSERT INTO match_sides (match_id, slot, team_id, side) VALUES (?, ?, ?, ?)",
                (mid, slot, team_id, side),
            )
        row = conn.execute("SELECT * FROM matches WHERE id = ?", (mid,)).fetchone()
        return self._assemble(conn, row)

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute("SELECT * FROM matches WHERE id = ?", (match_id,)).fetchone()
        if row is None:
            return None
        return self._assemble(conn, row)

    def list_by_league(
        self, conn: sqlite3.Connection, league_id: str, completed_only: bool = False
    ) -> list[Match]:
        sql = "SELECT * FROM matches WHERE league_id = ?"
        if completed_only:
            sql += " AND completed_at IS NOT NULL"
        sql += " ORDER BY completed_at, game_date, game_time, rowid"
        rows = conn.execute(sql, (league_id,)).fetchall()
        return [self._assemble(conn, r) for r in rows]

    def list_scheduled(self, conn: sqlite3.Connection, league_id: str | None = None) -> list[Match]:
        """Matches in kickoff order, optionally for one league."""
        sql = "SELECT * FROM matches"
        params: tuple[str, ...] = ()
        if league_id is not None:
            sql += " WHERE league_id = ?"
            params = (league_id,)
        sql += " ORDER BY game_date, game_time, rowid"
        return [self._assemble(conn, r) for r in conn.execute(sql, params).fetchall()]

    def _assemble(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Match:
        mid = row["id"]
        side_rows = conn.execute(
            "SELECT * FROM match_sides WHERE match_id = ? ORDER BY slot", (mid,)
        ).fetchall()
        sides: list[TeamSide] = []
        for s in side_rows:
            sides.append(TeamSide(
                team_id=s["team_id"],
                side=s["side"],
                score=s["score"],
                win=_win_from_db(s["win"]),
                actions=self.list_actions(conn, mid, s["team_id"]),
                player_stats=StatLineRepository().list_for_side(conn, mid, s["team_id"]),
                team_stats=_stat_line_from_row(s),
            ))
        return Match(
            id=mid,
            league_id=row["league_id"],
            format=row["format"],
            game_date=date.fromisoformat(row["game_date"]),
            game_time=row["game_time"],
            venue=row["venue"],
            round_name=row["round_name"],
            game_number=row["game_number"],
            created_by=row["created_by"],
            referee_id=row["referee_id"],
            stat_keeper_id=row["stat_keeper_id"],
            side_a=sides[0],
            side_b=sides[1],
            times_switched=row["times_switched"],
            version=row["version"],
            created_at=_parse_datetime(row["created_at"]),
            toss_winner_team_id=row["toss_winner_team_id"],
            winning_team_id=row["winning_team_id"],
            completed_at=_parse_optional_datetime(row["completed_at"]),
        )

    def list_actions(self, conn: sqlite3.Connection, match_id: str, team_id: str) -> list[ActionRecord]:
        rows = conn.execute(
            """SELECT seq, match_id, team_id, player_id, action_type, points, period, created_at
               FROM match_actions WHERE match_id = ? AND team_id = ? ORDER BY seq""",
            (match_id, team_id),
        ).fetchall()
        return [
            ActionRecord(
                seq=r["seq"],
                match_id=r["match_id"],
                team_id=r["team_id"],
                player_id=r["player_id"],
                action_type=r["action_type"],
                points=r["points"],
                timestamp=_parse_datetime(r["created_at"]),
                period=r["period"],
            )
            for r in rows
        ]

    def bump_version(self, conn: sqlite3.Connection, match_id: str, expected_version: int) -> bool:
        """Optimistic concurrency check-and-increment. False means someone else wrote first."""
        cur = conn.execute(
            "UPDATE matches SET version = version + 1 WHERE id = ? AND version = ?",
            (match_id, expected_version),
        )
        return cur.rowcount == 1

    def append_action(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        team_id: str,
        player_id: str,
        action_type: str,
        points: int,
        period: str | None,
    ) -> ActionRecord:
        now = _now_iso()
        cur = conn.execute(
            """INSERT INTO match_actions (match_id, team_id, player_id, action_type, points, period, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (match_id, team_id, player_id, action_type, points, period, now),
        )
        return ActionRecord(
            seq=cur.lastrowid,
            match_id=match_id,
            team_id=team_id,
            player_id=player_id,
            action_type=action_type,
            points=points,
            timestamp=_parse_datetime(now),
            period=period,
        )

    def add_to_score(self, conn: sqlite3.Connection, match_id: str, team_id: str, points: int) -> None:
        conn.execute(
            "UPDATE match_sides SET score = score + ? WHERE match_id = ? AND team_id = ?",
            (points, match_id, team_id),
        )

    def swap_sides(self, conn: sqlite3.Connection, match_id: str) -> None:
        conn.execute(
            """UPDATE match_sides
               SET side = CASE side WHEN 'offense' THEN 'defense' ELSE 'offense' END
               WHERE match_id = ?""",
            (match_id,),
        )

    def set_side(self, conn: sqlite3.Connection, match_id: str, team_id: str, side: str) -> None:
        conn.execute(
            "UPDATE match_sides SET side = ? WHERE match_id = ? AND team_id = ?",
            (side, match_id, team_id),
        )

    def update_times_switched(self, conn: sqlite3.Connection, match_id: str, value: str) -> None:
        conn.execute("UPDATE matches SET times_switched = ? WHERE id = ?", (value, match_id))

    def update_toss_winner(self, conn: sqlite3.Connection, match_id: str, team_id: str) -> None:
        conn.execute("UPDATE matches SET toss_winner_team_id = ? WHERE id = ?", (team_id, match_id))

    def update_schedule(self, conn: sqlite3.Connection, match_id: str, changes: dict[str, Any]) -> None:
        """Rewrite scheduling columns (date, time, venue, round, officials)."""
        unknown = set(changes) - _SCHEDULE_COLUMNS
        if unknown:
            raise ValueError(f"Not a schedule column: {sorted(unknown)}")
        if not changes:
            return
        values = [v.isoformat() if isinstance(v, date) else v for v in changes.values()]
        assignments = ", ".join(f"{c} = ?" for c in changes)
        conn.execute(f"UPDATE matches SET {assignments} WHERE id = ?", (*values, match_id))

    def mark_completed(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        winning_team_id: str | None,
        completed_at_iso: str,
    ) -> bool:
        """
        Compare-and-swap on completed_at: succeeds at most once per match, and only
        while the match is live (at least one ledger entry).
        """
        cur = conn.execute(
            """UPDATE matches SET completed_at = ?, winning_team_id = ?, version = version + 1
               WHERE id = ? AND completed_at IS NULL
                 AND EXISTS (SELECT 1 FROM match_actions WHERE match_id = ?)""",
            (completed_at_iso, winning_team_id, match_id, match_id),
        )
        return cur.rowcount == 1

    def set_side_win(self, conn: sqlite3.Connection, match_id: str, team_id: str, win: bool | None) -> None:
        conn.execute(
            "UPDATE match_sides SET win = ? WHERE match_id = ? AND team_id = ?",
            (_win_to_db(win), match_id, team_id),
        )

    def update_team_stats(self, conn: sqlite3.Connection, match_id: str, team_id: str, stats: StatLine) -> None:
        assignments = ", ".join(f"{c} = ?" for c in _STAT_COLUMNS)
        conn.execute(
            f"UPDATE match_sides SET {assignments} WHERE match_id = ? AND team_id = ?",
            tuple(getattr(stats, c) for c in _STAT_COLUMNS) + (match_id, team_id),
        )


# ---------- StatLineRepository ----------


class StatLineRepository:
    """Per-player box-score lines. At most one per (match_id, team_id, player_id)."""

    def get(
        self, conn: sqlite3.Connection, match_id: str, team_id: str, player_id: str
    ) -> PlayerStatLine | None:
        row = conn.execute(
            "SELECT * FROM player_stat_lines WHERE match_id = ? AND team_id = ? AND player_id = ?",
            (match_id, team_id, player_id),
        ).fetchone()
        if row is None:
            return None
        return PlayerStatLine(
            match_id=row["match_id"], team_id=row["team_id"], player_id=row["player_id"],
            stats=_stat_line_from_row(row),
        )

    def upsert(self, conn: sqlite3.Connection, line: PlayerStatLine) -> None:
        now = _now_iso()
        cols = ", ".join(_STAT_COLUMNS)
        placeholders = ", ".join("?" for _ in _STAT_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _STAT_COLUMNS)
        conn.execute(
            f"""INSERT INTO player_stat_lines (match_id, team_id, player_id, {cols}, created_at, updated_at)
                VALUES (?, ?, ?, {placeholders}, ?, ?)
                ON CONFLICT (match_id, team_id, player_id)
                DO UPDATE SET {updates}, updated_at = excluded.updated_at""",
            (line.match_id, line.team_id, line.player_id)
            + tuple(getattr(line.stats, c) for c in _STAT_COLUMNS)
            + (now, now),
        )

    def list_for_side(self, conn: sqlite3.Connection, match_id: str, team_id: str) -> list[PlayerStatLine]:
        rows = conn.execute(
            "SELECT * FROM player_stat_lines WHERE match_id = ? AND team_id = ? ORDER BY rowid",
            (match_id, team_id),
        ).fetchall()
        return [
            PlayerStatLine(
                match_id=r["match_id"], team_id=r["team_id"], player_id=r["player_id"],
                stats=_stat_line_from_row(r),
            )
            for r in rows
        ]

    def count_matches_for_player_in_league(self, conn: sqlite3.Connection, player_id: str, league_id: str) -> int:
        """Distinct matches in league where player has a stat line."""
        row = conn.execute(
            """SELECT COUNT(DISTINCT l.match_id) AS n FROM player_stat_lines l
               JOIN matches m ON m.id = l.match_id
               WHERE l.player_id = ? AND m.league_id = ?""",
            (player_id, league_id),
        ).fetchone()
        return row["n"]

    def count_matches_for_team_in_league(self, conn: sqlite3.Connection, team_id: str, league_id: str) -> int:
        """Distinct matches in league where any player line exists for team."""
        row = conn.execute(
            """SELECT COUNT(DISTINCT l.match_id) AS n FROM player_stat_lines l
               JOIN matches m ON m.id = l.match_id
               WHERE l.team_id = ? AND m.league_id = ?""",
            (team_id, league_id),
        ).fetchone()
        return row["n"]


# ---------- StatSubmissionRepository ----------


class StatSubmissionRepository:
    """Idempotency keys for stat submissions."""

    def get_owner(
        self, conn: sqlite3.Connection, match_id: str, submission_id: str
    ) -> tuple[str, str] | None:
        """(team_id, player_id) the submission_id was first used for, or None."""
        row = conn.execute(
            "SELECT team_id, player_id FROM stat_submissions WHERE match_id = ? AND submission_id = ?",
            (match_id, submission_id),
        ).fetchone()
        if row is None:
            return None
        return row["team_id"], row["player_id"]

    def record(
        self, conn: sqlite3.Connection, match_id: str, submission_id: str, team_id: str, player_id: str
    ) -> None:
        conn.execute(
            """INSERT INTO stat_submissions (match_id, submission_id, team_id, player_id, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (match_id, submission_id, team_id, player_id, _now_iso()),
        )


# ---------- StatReviewRepository ----------


class StatReviewRepository:
    def create(self, conn: sqlite3.Connection, match_id: str, submitted_by: str) -> StatReview:
        rid = str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO stat_reviews (id, match_id, submitted_by, status, created_at) VALUES (?, ?, ?, 'pending', ?)",
            (rid, match_id, submitted_by, now),
        )
        return StatReview(
            id=rid, match_id=match_id, submitted_by=submitted_by, status="pending",
            created_at=_parse_datetime(now),
        )

    def get(self, conn: sqlite3.Connection, review_id: str) -> StatReview | None:
        row = conn.execute("SELECT * FROM stat_reviews WHERE id = ?", (review_id,)).fetchone()
        if row is None:
            return None
        return StatReview(
            id=row["id"],
            match_id=row["match_id"],
            submitted_by=row["submitted_by"],
            status=row["status"],
            created_at=_parse_datetime(row["created_at"]),
            reason=row["reason"],
            resolved_by=row["resolved_by"],
            resolved_at=_parse_optional_datetime(row["resolved_at"]),
        )

    def resolve(
        self,
        conn: sqlite3.Connection,
        review_id: str,
        status: str,
        resolved_by: str,
        reason: str | None = None,
    ) -> bool:
        """Pending → approved/rejected. False if it was already resolved."""
        cur = conn.execute(
            """UPDATE stat_reviews SET status = ?, resolved_by = ?, reason = ?, resolved_at = ?
               WHERE id = ? AND status = 'pending'""",
            (status, resolved_by, reason, _now_iso(), review_id),
        )
        return cur.rowcount == 1


# ---------- StandingsRepository ----------


class StandingsRepository:
    """Leaderboard rows keyed by (league_id, team_id)."""

    _COLUMNS = (
        "wins", "losses", "draws", "points_scored", "points_against", "point_difference", "league_points",
    )

    def _from_row(self, r: sqlite3.Row) -> StandingEntry:
        return StandingEntry(league_id=r["league_id"], team_id=r["team_id"], **{c: r[c] for c in self._COLUMNS})

    def get(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> StandingEntry | None:
        row = conn.execute(
            "SELECT * FROM standings WHERE league_id = ? AND team_id = ?", (league_id, team_id)
        ).fetchone()
        return self._from_row(row) if row is not None else None

    def create_if_absent(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        cur = conn.execute(
            "INSERT OR IGNORE INTO standings (league_id, team_id, created_at) VALUES (?, ?, ?)",
            (league_id, team_id, _now_iso()),
        )
        return cur.rowcount == 1

    def save(self, conn: sqlite3.Connection, entry: StandingEntry) -> None:
        assignments = ", ".join(f"{c} = ?" for c in self._COLUMNS)
        conn.execute(
            f"UPDATE standings SET {assignments} WHERE league_id = ? AND team_id = ?",
            tuple(getattr(entry, c) for c in self._COLUMNS) + (entry.league_id, entry.team_id),
        )

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[StandingEntry]:
        """Creation order (rowid); ranking is the service's job."""
        rows = conn.execute(
            "SELECT * FROM standings WHERE league_id = ? ORDER BY rowid", (league_id,)
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def reset_league(self, conn: sqlite3.Connection, league_id: str) -> None:
        assignments = ", ".join(f"{c} = 0" for c in self._COLUMNS)
        conn.execute(f"UPDATE standings SET {assignments} WHERE league_id = ?", (league_id,))


# ---------- CareerStatsRepository ----------


class CareerStatsRepository:
    """Lifetime totals for players (player_career_stats) or teams (team_career_stats)."""

    _INCREMENTABLE = frozenset(_STAT_COLUMNS + _CAREER_EXTRA_COLUMNS)

    def __init__(self, table: str, key: str) -> None:
        self._table = table
        self._key = key

    @classmethod
    def for_players(cls) -> CareerStatsRepository:
        return cls("player_career_stats", "player_id")

    @classmethod
    def for_teams(cls) -> CareerStatsRepository:
        return cls("team_career_stats", "team_id")

    def get(self, conn: sqlite3.Connection, owner_id: str) -> CareerStats | None:
        row = conn.execute(
            f"SELECT * FROM {self._table} WHERE {self._key} = ?", (owner_id,)
        ).fetchone()
        if row is None:
            return None
        return CareerStats(
            owner_id=owner_id,
            stats=_stat_line_from_row(row),
            last_updated=_parse_optional_datetime(row["last_updated"]),
            **{c: row[c] for c in _CAREER_EXTRA_COLUMNS},
        )

    def increment(self, conn: sqlite3.Connection, owner_id: str, increments: dict[str, int]) -> None:
        """Add each value to its column (creating the row at zero first). Never overwrites."""
        unknown = set(increments) - self._INCREMENTABLE
        if unknown:
            raise ValueError(f"Not a career counter: {sorted(unknown)}")
        now = _now_iso()
        conn.execute(
            f"INSERT OR IGNORE INTO {self._table} ({self._key}, last_updated) VALUES (?, ?)",
            (owner_id, now),
        )
        if not increments:
            return
        assignments = ", ".join(f"{c} = {c} + ?" for c in increments)
        conn.execute(
            f"UPDATE {self._table} SET {assignments}, last_updated = ? WHERE {self._key} = ?",
            tuple(increments.values()) + (now, owner_id),
        )
