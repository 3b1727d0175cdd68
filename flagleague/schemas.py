"""
Request models for the flag league API.
One model per operation; unknown fields are rejected before any service runs.
"""
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from flagleague.models import ActionType, MatchFormat, Side, TimesSwitched


class _Command(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------- Registry ----------


class CreateLeagueRequest(_Command):
    name: str = Field(..., min_length=1, max_length=200)
    format: MatchFormat
    start_date: date
    end_date: date


class CreateTeamRequest(_Command):
    name: str = Field(..., min_length=1, max_length=200)
    player_ids: list[str] = Field(default_factory=list, description="Initial roster, in order")


class CreatePlayerRequest(_Command):
    name: str = Field(..., min_length=1, max_length=200)


class AddPlayerRequest(_Command):
    player_id: str


class AcceptTeamRequest(_Command):
    team_id: str
    actor_id: str | None = Field(None, description="Admin accepting the team; event sender")


class SetLeagueWinnerRequest(_Command):
    team_id: str


# ---------- Match lifecycle ----------


class CreateMatchRequest(_Command):
    league_id: str
    format: MatchFormat
    game_date: date
    game_time: str = Field(..., min_length=1, max_length=20, description="e.g. '18:30'")
    team_a_id: str
    team_b_id: str
    venue: str = ""
    round_name: str = "Group Stage"
    game_number: str = ""
    side_a: Side = Side.OFFENSE
    side_b: Side = Side.DEFENSE
    created_by: str | None = None
    referee_id: str | None = None
    stat_keeper_id: str | None = None


class UpdateMatchRequest(_Command):
    """Reschedule or reassign officials; omitted fields keep their value."""
    game_date: date | None = None
    game_time: str | None = Field(None, min_length=1, max_length=20)
    venue: str | None = None
    round_name: str | None = None
    game_number: str | None = None
    referee_id: str | None = None
    stat_keeper_id: str | None = None
    updated_by: str | None = None
    expected_version: int | None = Field(None, ge=0)


class RecordActionRequest(_Command):
    team_id: str
    player_id: str
    # Plain string so an unknown play surfaces as a validation error from the ledger.
    action_type: str = Field(..., description=f"One of: {', '.join(a.value for a in ActionType)}")
    period: TimesSwitched | None = None
    expected_version: int | None = Field(None, ge=0, description="Reject with 409 if the match moved on")


class CoinTossRequest(_Command):
    winner_team_id: str
    choice: Side


# ---------- Stats ----------


class StatDelta(_Command):
    """Additive box-score increment. Omitted counters add nothing."""
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

    def counters(self) -> dict[str, int]:
        """Non-zero counters only."""
        return {k: v for k, v in self.model_dump().items() if v != 0}


class SubmitStatsRequest(_Command):
    match_id: str
    team_id: str
    player_id: str
    stats: StatDelta = Field(default_factory=StatDelta)
    submission_id: str | None = Field(
        None, max_length=100, description="Client token; a repeat for the same match is ignored"
    )
    expected_version: int | None = Field(None, ge=0)


class SubmitForApprovalRequest(_Command):
    match_id: str
    submitted_by: str
    admin_ids: list[str] = Field(default_factory=list)


class ApproveStatsRequest(_Command):
    review_id: str
    approved_by: str


class RejectStatsRequest(_Command):
    review_id: str
    rejected_by: str
    reason: str = Field(..., min_length=1, max_length=1000)
