#!/usr/bin/env python3
"""
Vertical slice: League → Teams → Match → Actions + Stats → Finalize → Standings.
Run from project root: python3 scripts/vertical_slice.py
"""
from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from flagleague.logging_config import configure_logging
from flagleague.persistence import get_connection, init_db, set_db_path
from flagleague.services import (
    CareerService,
    LeaderboardService,
    LeagueService,
    MatchService,
    OutcomeService,
    StatsService,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def main() -> None:
    configure_logging()
    # Use data/vertical_slice.db for demo (distinct from flagleague.db)
    db_path = PROJECT_ROOT / "data" / "vertical_slice.db"
    db_path.unlink(missing_ok=True)
    set_db_path(db_path)
    init_db(db_path=db_path)

    conn = get_connection()
    try:
        leagues = LeagueService()
        matches = MatchService()
        stats = StatsService()

        # 1. League with two teams
        league = leagues.create_league(conn, "Slice League", "5v5", date(2026, 1, 1), date(2026, 12, 31))
        rosters = {}
        for name in ("Champions", "Underdogs"):
            players = [leagues.create_player(conn, f"{name} #{n}").id for n in range(1, 6)]
            team = leagues.create_team(conn, name, players)
            leagues.accept_team(conn, league.id, team.id)
            rosters[team.id] = players
        team_a, team_b = list(rosters)

        # 2. Schedule and play
        match = matches.create_match(
            conn, league.id, "5v5", date(2026, 6, 1), "18:30", team_a, team_b, venue="Field 1"
        )
        matches.apply_coin_toss(conn, match.id, team_b, "defense")
        plays = [
            (team_a, "Touchdown"),
            (team_a, "Extra Point from 5-yard line"),
            (team_b, "Safety"),
        ]
        for team_id, action in plays:
            matches.record_action(conn, match.id, team_id, rosters[team_id][0], action)
        matches.switch_half_time(conn, match.id)
        stats.submit_player_stats(
            conn, match.id, team_a, rosters[team_a][0], {"touchdowns": 1, "catches": 4, "catch_yards": 52}
        )
        stats.submit_player_stats(conn, match.id, team_a, rosters[team_a][1], {"conversion_points": 1})
        stats.submit_player_stats(conn, match.id, team_b, rosters[team_b][0], {"safeties": 1, "flag_pulls": 3})

        # 3. Finalize
        result = OutcomeService().finalize(conn, match.id)
        print("Match:")
        print(json.dumps(result.to_dict(), indent=2))

        # 4. Retrieve standings and a career line
        standings = LeaderboardService().compute_standings(conn, league.id)
        print("Standings:")
        print(json.dumps([e.to_dict() for e in standings], indent=2))
        career = CareerService().get_player_career(conn, rosters[team_a][0])
        print("Career (Champions #1):")
        print(json.dumps(career.to_dict(), indent=2))
    finally:
        conn.close()


if __name__ == "__main__":
    main()
