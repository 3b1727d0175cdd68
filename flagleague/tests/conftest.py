"""
Shared fixtures: a fresh SQLite database per test and a small seeded league.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import pytest

from flagleague.persistence.db import get_connection, init_db, set_db_path
from flagleague.services import InMemoryEventSink, LeagueService


@pytest.fixture
def db_conn(tmp_path):
    """Temporary DB with the full schema."""
    db_path = tmp_path / "flagleague_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def events():
    return InMemoryEventSink()


@dataclass
class SeededLeague:
    league_id: str
    team_a_id: str
    team_b_id: str
    a_players: list[str]
    b_players: list[str]


@pytest.fixture
def seeded(db_conn, events) -> SeededLeague:
    """One 5v5 league for 2026, two accepted teams with three players each."""
    svc = LeagueService(events=events)
    league = svc.create_league(db_conn, "Summer League", "5v5", date(2026, 1, 1), date(2026, 12, 31))
    a_players = [svc.create_player(db_conn, f"A{i}").id for i in range(3)]
    b_players = [svc.create_player(db_conn, f"B{i}").id for i in range(3)]
    team_a = svc.create_team(db_conn, "Hawks", a_players)
    team_b = svc.create_team(db_conn, "Owls", b_players)
    svc.accept_team(db_conn, league.id, team_a.id)
    svc.accept_team(db_conn, league.id, team_b.id)
    return SeededLeague(league.id, team_a.id, team_b.id, a_players, b_players)
