"""
REST API for the flag league engine.
Thin wrappers around the services; engine errors become HTTP status codes here and nowhere else.
"""
from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from flagleague.config import get_settings
from flagleague.logging_config import configure_logging, get_logger
from flagleague.persistence import get_connection, init_db
from flagleague.persistence.db import get_db_path
from flagleague.schemas import (
    AcceptTeamRequest,
    AddPlayerRequest,
    ApproveStatsRequest,
    CoinTossRequest,
    CreateLeagueRequest,
    CreateMatchRequest,
    CreatePlayerRequest,
    CreateTeamRequest,
    RecordActionRequest,
    RejectStatsRequest,
    SetLeagueWinnerRequest,
    SubmitForApprovalRequest,
    SubmitStatsRequest,
    UpdateMatchRequest,
)
from flagleague.services import (
    AlreadyFinalizedError,
    CareerService,
    EventSink,
    InvalidStateError,
    LeaderboardService,
    LeagueEngineError,
    LeagueService,
    LoggingEventSink,
    MatchService,
    NotFoundError,
    OutcomeService,
    StatsService,
    ValidationError,
)

logger = get_logger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def engine_errors() -> Generator:
    """Translate engine errors into HTTP responses."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (AlreadyFinalizedError, InvalidStateError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LeagueEngineError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---------- Event sink (overridable in tests) ----------

_event_sink: EventSink = LoggingEventSink()


def get_event_sink() -> EventSink:
    return _event_sink


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    init_db(db_path=get_db_path())
    logger.info("api_started", db_path=str(get_db_path()))
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Flag League API",
    description="Match scoring, stat aggregation and standings for flag football leagues",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Endpoints ----------


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "service": get_settings().service_name}


# ---------- Leagues ----------


@app.post("/leagues")
def create_league(req: CreateLeagueRequest) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        league = LeagueService().create_league(conn, req.name, req.format.value, req.start_date, req.end_date)
        return league.to_dict()


@app.get("/leagues/{league_id}")
def get_league(league_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        svc = LeagueService()
        league = svc.get_league(conn, league_id)
        return {**league.to_dict(), "team_ids": svc.list_team_ids(conn, league_id)}


@app.post("/leagues/{league_id}/teams")
def accept_team(
    league_id: str,
    req: AcceptTeamRequest,
    sink: EventSink = Depends(get_event_sink),
) -> dict[str, Any]:
    """Admit a team into the league; creates its standings row."""
    with db_conn() as conn, engine_errors():
        added = LeagueService(events=sink).accept_team(conn, league_id, req.team_id, actor_id=req.actor_id)
        return {"league_id": league_id, "team_id": req.team_id, "added": added}


@app.post("/leagues/{league_id}/set-winner")
def set_league_winner(league_id: str, req: SetLeagueWinnerRequest) -> dict[str, Any]:
    """One-shot: a second call answers 409."""
    with db_conn() as conn, engine_errors():
        return LeagueService().set_league_winner(conn, league_id, req.team_id).to_dict()


# ---------- Teams & players ----------


@app.post("/teams")
def create_team(req: CreateTeamRequest) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return LeagueService().create_team(conn, req.name, req.player_ids).to_dict()


@app.post("/teams/{team_id}/players")
def add_player_to_team(team_id: str, req: AddPlayerRequest) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return LeagueService().add_player_to_team(conn, team_id, req.player_id).to_dict()


@app.get("/teams/{team_id}/career")
def get_team_career(team_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        LeagueService().get_team(conn, team_id)
        return CareerService().get_team_career(conn, team_id).to_dict()


@app.post("/players")
def create_player(req: CreatePlayerRequest) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return LeagueService().create_player(conn, req.name).to_dict()


@app.get("/players/{player_id}/career")
def get_player_career(player_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        LeagueService().get_player(conn, player_id)
        return CareerService().get_player_career(conn, player_id).to_dict()


# ---------- Matches ----------


@app.post("/matches")
def create_match(req: CreateMatchRequest, sink: EventSink = Depends(get_event_sink)) -> dict[str, Any]:
    """Schedule a match (upcoming). Referee and stat keeper are notified."""
    with db_conn() as conn, engine_errors():
        match = MatchService(events=sink).create_match(
            conn,
            league_id=req.league_id,
            format=req.format.value,
            game_date=req.game_date,
            game_time=req.game_time,
            team_a_id=req.team_a_id,
            team_b_id=req.team_b_id,
            venue=req.venue,
            round_name=req.round_name,
            game_number=req.game_number,
            side_a=req.side_a.value,
            side_b=req.side_b.value,
            created_by=req.created_by,
            referee_id=req.referee_id,
            stat_keeper_id=req.stat_keeper_id,
        )
        return match.to_dict()


@app.get("/matches")
def list_matches(league_id: str | None = None, status: str | None = None) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        matches = MatchService().list_matches(conn, league_id=league_id, status=status)
        return {"matches": [m.to_dict() for m in matches]}


@app.get("/matches/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return MatchService().get_match(conn, match_id).to_dict()


@app.patch("/matches/{match_id}")
def update_match(
    match_id: str, req: UpdateMatchRequest, sink: EventSink = Depends(get_event_sink)
) -> dict[str, Any]:
    """Reschedule an upcoming match or reassign its referee / stat keeper."""
    with db_conn() as conn, engine_errors():
        return MatchService(events=sink).update_match(conn, match_id, **req.model_dump()).to_dict()


@app.post("/matches/{match_id}/action")
def record_action(match_id: str, req: RecordActionRequest) -> dict[str, Any]:
    """Referee scoring play. Returns the ledger entry and the updated match."""
    with db_conn() as conn, engine_errors():
        svc = MatchService()
        record = svc.record_action(
            conn,
            match_id,
            req.team_id,
            req.player_id,
            req.action_type,
            period=req.period.value if req.period else None,
            expected_version=req.expected_version,
        )
        return {"action": record.to_dict(), "match": svc.get_match(conn, match_id).to_dict()}


@app.post("/matches/{match_id}/toss")
def apply_coin_toss(match_id: str, req: CoinTossRequest) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return MatchService().apply_coin_toss(conn, match_id, req.winner_team_id, req.choice.value).to_dict()


@app.post("/matches/{match_id}/halftime")
def switch_half_time(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return MatchService().switch_half_time(conn, match_id).to_dict()


@app.post("/matches/{match_id}/fulltime")
def switch_full_time(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return MatchService().switch_full_time(conn, match_id).to_dict()


@app.post("/matches/{match_id}/overtime")
def switch_overtime(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return MatchService().switch_overtime(conn, match_id).to_dict()


@app.post("/matches/{match_id}/finalize")
def finalize_match(match_id: str) -> dict[str, Any]:
    """live → completed. A second call answers 409."""
    with db_conn() as conn, engine_errors():
        return OutcomeService().finalize(conn, match_id).to_dict()


# ---------- Stats ----------


@app.get("/stats")
def get_match_stats(match_id: str) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return StatsService().get_match_stats(conn, match_id)


@app.post("/stats")
def submit_player_stats(req: SubmitStatsRequest) -> dict[str, Any]:
    """Additive stat merge for one player line."""
    with db_conn() as conn, engine_errors():
        result = StatsService().submit_player_stats(
            conn,
            req.match_id,
            req.team_id,
            req.player_id,
            req.stats.counters(),
            submission_id=req.submission_id,
            expected_version=req.expected_version,
        )
        return result.to_dict()


@app.post("/stats/submit")
def submit_for_approval(req: SubmitForApprovalRequest, sink: EventSink = Depends(get_event_sink)) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        review = StatsService(events=sink).submit_for_approval(conn, req.match_id, req.submitted_by, req.admin_ids)
        return review.to_dict()


@app.post("/stats/approve")
def approve_stats(req: ApproveStatsRequest, sink: EventSink = Depends(get_event_sink)) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        return StatsService(events=sink).approve_stats(conn, req.review_id, req.approved_by).to_dict()


@app.post("/stats/reject")
def reject_stats(req: RejectStatsRequest, sink: EventSink = Depends(get_event_sink)) -> dict[str, Any]:
    with db_conn() as conn, engine_errors():
        review = StatsService(events=sink).reject_stats(conn, req.review_id, req.rejected_by, req.reason)
        return review.to_dict()


# ---------- Leaderboard ----------


@app.get("/leaderboard/{league_id}")
def get_leaderboard(league_id: str) -> dict[str, Any]:
    """Ranked standings: league points, then point difference, then points scored."""
    with db_conn() as conn, engine_errors():
        LeagueService().get_league(conn, league_id)
        standings = LeaderboardService().compute_standings(conn, league_id)
        return {
            "league_id": league_id,
            "standings": [{"rank": i, **e.to_dict()} for i, e in enumerate(standings, start=1)],
        }


@app.post("/leaderboard/{league_id}/rebuild")
def rebuild_leaderboard(league_id: str) -> dict[str, Any]:
    """Recompute standings from completed matches (repair after a failed update)."""
    with db_conn() as conn, engine_errors():
        LeagueService().get_league(conn, league_id)
        standings = LeaderboardService().rebuild_standings(conn, league_id)
        return {
            "league_id": league_id,
            "standings": [{"rank": i, **e.to_dict()} for i, e in enumerate(standings, start=1)],
        }


# ---------- Run with: uvicorn flagleague.api:app --reload ----------
