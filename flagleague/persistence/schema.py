"""
SQLite schema for league, match, standings and career entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations

from flagleague.scoring import STAT_FIELDS


def _stat_columns() -> str:
    """Box-score counters shared by side, player-line and career tables."""
    cols = [f"{name} INTEGER NOT NULL DEFAULT 0" for name in STAT_FIELDS]
    cols.append("total_points INTEGER NOT NULL DEFAULT 0")
    return ",\n        ".join(cols)


def leagues_schema() -> str:
    """League registry. winner_team_id is set once by set_league_winner."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        format TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        winner_team_id TEXT,
        created_at TEXT NOT NULL
    );
    """


def players_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """


def teams_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS team_players (
        team_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        PRIMARY KEY (team_id, player_id),
        FOREIGN KEY (team_id) REFERENCES teams(id),
        FOREIGN KEY (player_id) REFERENCES players(id)
    );
    CREATE INDEX IF NOT EXISTS ix_team_players_player_id ON team_players(player_id);
    """


def league_teams_schema() -> str:
    """Teams accepted into a league."""
    return """
    CREATE TABLE IF NOT EXISTS league_teams (
        league_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        joined_at TEXT NOT NULL,
        PRIMARY KEY (league_id, team_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    """


def matches_schema() -> str:
    """
    Match header. No status column: status is derived from completed_at and the ledger.
    version increments on every mutation (optimistic concurrency).
    """
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        format TEXT NOT NULL,
        game_date TEXT NOT NULL,
        game_time TEXT NOT NULL,
        venue TEXT NOT NULL DEFAULT '',
        round_name TEXT NOT NULL DEFAULT 'Group Stage',
        game_number TEXT NOT NULL DEFAULT '',
        created_by TEXT,
        referee_id TEXT,
        stat_keeper_id TEXT,
        times_switched TEXT NOT NULL DEFAULT 'none',
        toss_winner_team_id TEXT,
        winning_team_id TEXT,
        completed_at TEXT,
        version INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_league ON matches(league_id);
    """


def match_sides_schema() -> str:
    """Two rows per match (slot a/b). Stat columns hold the TeamStatLine."""
    return f"""
    CREATE TABLE IF NOT EXISTS match_sides (
        match_id TEXT NOT NULL,
        slot TEXT NOT NULL,
        team_id TEXT NOT NULL,
        side TEXT NOT NULL,
        score INTEGER NOT NULL DEFAULT 0,
        win INTEGER,
        {_stat_columns()},
        PRIMARY KEY (match_id, slot),
        UNIQUE (match_id, team_id),
        FOREIGN KEY (match_id) REFERENCES matches(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_match_sides_team ON match_sides(team_id);
    """


def match_actions_schema() -> str:
    """Append-only ledger. seq is the insertion order."""
    return """
    CREATE TABLE IF NOT EXISTS match_actions (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        match_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        action_type TEXT NOT NULL,
        points INTEGER NOT NULL,
        period TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_match_actions_match ON match_actions(match_id);
    """


def player_stat_lines_schema() -> str:
    return f"""
    CREATE TABLE IF NOT EXISTS player_stat_lines (
        match_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        {_stat_columns()},
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (match_id, team_id, player_id),
        FOREIGN KEY (match_id) REFERENCES matches(id),
        FOREIGN KEY (player_id) REFERENCES players(id)
    );
    CREATE INDEX IF NOT EXISTS ix_player_stat_lines_player ON player_stat_lines(player_id);
    """


def stat_submissions_schema() -> str:
    """Idempotency log: one row per accepted submission_id per match."""
    return """
    CREATE TABLE IF NOT EXISTS stat_submissions (
        match_id TEXT NOT NULL,
        submission_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        player_id TEXT NOT NULL,
        created_at TEXT NOT NULL,
        PRIMARY KEY (match_id, submission_id)
    );
    """


def stat_reviews_schema() -> str:
    """Approval workflow. status: pending | approved | rejected."""
    return """
    CREATE TABLE IF NOT EXISTS stat_reviews (
        id TEXT PRIMARY KEY,
        match_id TEXT NOT NULL,
        submitted_by TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        reason TEXT,
        resolved_by TEXT,
        created_at TEXT NOT NULL,
        resolved_at TEXT,
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_stat_reviews_match ON stat_reviews(match_id);
    """


def standings_schema() -> str:
    """Leaderboard rows keyed by (league_id, team_id). rowid keeps creation order for stable ties."""
    return """
    CREATE TABLE IF NOT EXISTS standings (
        league_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        wins INTEGER NOT NULL DEFAULT 0,
        losses INTEGER NOT NULL DEFAULT 0,
        draws INTEGER NOT NULL DEFAULT 0,
        points_scored INTEGER NOT NULL DEFAULT 0,
        points_against INTEGER NOT NULL DEFAULT 0,
        point_difference INTEGER NOT NULL DEFAULT 0,
        league_points INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        PRIMARY KEY (league_id, team_id)
    );
    """


def career_stats_schema(table: str, key: str) -> str:
    """Lifetime totals; same shape for players and teams."""
    return f"""
    CREATE TABLE IF NOT EXISTS {table} (
        {key} TEXT PRIMARY KEY,
        {_stat_columns()},
        matches_played INTEGER NOT NULL DEFAULT 0,
        leagues_played INTEGER NOT NULL DEFAULT 0,
        games_won_5v5 INTEGER NOT NULL DEFAULT 0,
        games_won_7v7 INTEGER NOT NULL DEFAULT 0,
        leagues_won_5v5 INTEGER NOT NULL DEFAULT 0,
        leagues_won_7v7 INTEGER NOT NULL DEFAULT 0,
        last_updated TEXT
    );
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution."""
    return "\n".join([
        leagues_schema(),
        players_schema(),
        teams_schema(),
        league_teams_schema(),
        matches_schema(),
        match_sides_schema(),
        match_actions_schema(),
        player_stat_lines_schema(),
        stat_submissions_schema(),
        stat_reviews_schema(),
        standings_schema(),
        career_stats_schema("player_career_stats", "player_id"),
        career_stats_schema("team_career_stats", "team_id"),
    ])
