"""
Stat aggregator and the stat review workflow.

Player lines are merged additively; the team line is always recomputed from
every player line of the side. Career totals receive the signed difference
between the old and new line after the match write has committed.
"""
from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from flagleague.logging_config import get_logger
from flagleague.models import MatchStatus, PlayerStatLine, ReviewStatus, StatLine, StatReview
from flagleague.persistence.db import transaction
from flagleague.persistence.repositories import (
    MatchRepository,
    PlayerRepository,
    StatLineRepository,
    StatReviewRepository,
    StatSubmissionRepository,
    TeamRepository,
)
from flagleague.scoring import (
    STAT_FIELDS,
    merge_stat_delta,
    negative_counters,
    stat_line_delta,
    sum_stat_lines,
)
from flagleague.services.career_service import CareerService
from flagleague.services.errors import (
    AlreadyFinalizedError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from flagleague.services.events import Event, EventKind, EventSink, LoggingEventSink, emit_safely
from flagleague.services.match_service import (
    bump_version,
    check_player_on_team,
    load_match,
    resolve_side,
)
from flagleague.services.outcome_service import FinalizeResult, OutcomeService

logger = get_logger(__name__)


def validate_stat_delta(stat_delta: Mapping[str, Any]) -> dict[str, int]:
    """Known counters with integer values only."""
    unknown = set(stat_delta) - set(STAT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown stat fields: {sorted(unknown)}")
    out: dict[str, int] = {}
    for name, value in stat_delta.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Stat {name} must be an integer, got {value!r}")
        out[name] = value
    return out


@dataclass
class StatSubmissionResult:
    line: PlayerStatLine
    team_stats: StatLine
    duplicate: bool = False
    career_updated: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line.to_dict(),
            "team_stats": self.team_stats.to_dict(),
            "duplicate": self.duplicate,
            "career_updated": self.career_updated,
        }


@dataclass
class ApprovalResult:
    review: StatReview
    finalize: FinalizeResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "review": self.review.to_dict(),
            "finalize": self.finalize.to_dict() if self.finalize else None,
        }


class StatsService:
    def __init__(
        self,
        events: EventSink | None = None,
        career: CareerService | None = None,
        outcome: OutcomeService | None = None,
    ) -> None:
        self._events = events or LoggingEventSink()
        self._career = career or CareerService()
        self._outcome = outcome or OutcomeService(career=self._career)
        self._match_repo = MatchRepository()
        self._team_repo = TeamRepository()
        self._player_repo = PlayerRepository()
        self._line_repo = StatLineRepository()
        self._submission_repo = StatSubmissionRepository()
        self._review_repo = StatReviewRepository()

    # ---------- Aggregation ----------

    def submit_player_stats(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        team_id: str,
        player_id: str,
        stat_delta: Mapping[str, int],
        submission_id: str | None = None,
        expected_version: int | None = None,
    ) -> StatSubmissionResult:
        """
        Add stat_delta to the player's line for this match side (creating it if needed),
        then recompute the side's team line. A repeated submission_id is a no-op.
        """
        delta = validate_stat_delta(stat_delta)

        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id, expected_version)
            side = resolve_side(match, team_id)
            check_player_on_team(self._player_repo, self._team_repo, conn, team_id, player_id)
            if match.status == MatchStatus.UPCOMING:
                raise InvalidStateError(f"Match {match_id} has not started; stats are not accepted yet")

            owner = self._submission_repo.get_owner(conn, match_id, submission_id) if submission_id else None
            if owner is not None and owner != (team_id, player_id):
                raise ValidationError(
                    f"submission_id {submission_id!r} was already used for player {owner[1]} of team {owner[0]}"
                )
            if owner is not None:
                current = self._line_repo.get(conn, match_id, team_id, player_id)
                logger.info("stat_submission_duplicate", match_id=match_id, submission_id=submission_id)
                return StatSubmissionResult(
                    line=current or PlayerStatLine(match_id, team_id, player_id),
                    team_stats=side.team_stats,
                    duplicate=True,
                    career_updated=False,
                )

            old = self._line_repo.get(conn, match_id, team_id, player_id)
            first_player_line = old is None
            first_team_line = not side.player_stats
            first_player_league = first_player_line and (
                self._line_repo.count_matches_for_player_in_league(conn, player_id, match.league_id) == 0
            )
            first_team_league = first_team_line and (
                self._line_repo.count_matches_for_team_in_league(conn, team_id, match.league_id) == 0
            )
            old_stats = old.stats if old is not None else StatLine()
            new_stats = merge_stat_delta(old_stats, delta)
            negative = negative_counters(new_stats)
            if negative:
                raise ValidationError(f"Counters cannot go below zero: {negative}")

            line = PlayerStatLine(match_id=match_id, team_id=team_id, player_id=player_id, stats=new_stats)
            self._line_repo.upsert(conn, line)
            team_stats = sum_stat_lines(
                pl.stats for pl in self._line_repo.list_for_side(conn, match_id, team_id)
            )
            self._match_repo.update_team_stats(conn, match_id, team_id, team_stats)
            if submission_id:
                self._submission_repo.record(conn, match_id, submission_id, team_id, player_id)
            bump_version(self._match_repo, conn, match)

        logger.info(
            "player_stats_merged",
            match_id=match_id,
            team_id=team_id,
            player_id=player_id,
            total_points=new_stats.total_points,
            team_total_points=team_stats.total_points,
        )
        result = StatSubmissionResult(line=line, team_stats=team_stats)

        counters = stat_line_delta(old_stats, new_stats)
        points_delta = new_stats.total_points - old_stats.total_points
        try:
            with transaction(conn):
                self._career.apply_player_delta(
                    conn, player_id, counters, points_delta, first_player_line, first_player_league
                )
                self._career.apply_team_delta(
                    conn, team_id, counters, points_delta, first_team_line, first_team_league
                )
        except Exception:
            logger.exception("career_delta_failed", match_id=match_id, team_id=team_id, player_id=player_id)
            result.career_updated = False
        return result

    def get_match_stats(self, conn: sqlite3.Connection, match_id: str) -> dict[str, Any]:
        match = load_match(self._match_repo, conn, match_id)
        return {
            "match_id": match.id,
            "status": match.status.value,
            "sides": [
                {
                    "team_id": s.team_id,
                    "player_stats": [p.to_dict() for p in s.player_stats],
                    "team_stats": s.team_stats.to_dict(),
                }
                for s in match.sides()
            ],
        }

    # ---------- Review workflow ----------

    def submit_for_approval(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        submitted_by: str,
        admin_ids: Iterable[str] = (),
    ) -> StatReview:
        """Open a pending review of the match box score and notify every admin."""
        with transaction(conn):
            match = load_match(self._match_repo, conn, match_id)
            if match.status == MatchStatus.UPCOMING:
                raise InvalidStateError(f"Match {match_id} has not started; nothing to approve")
            review = self._review_repo.create(conn, match_id, submitted_by)
        logger.info("stats_submitted_for_approval", match_id=match_id, review_id=review.id)
        for admin_id in admin_ids:
            emit_safely(self._events, Event(
                kind=EventKind.STATS_SUBMITTED,
                receiver_id=admin_id,
                sender_id=submitted_by,
                match_id=match_id,
                league_id=match.league_id,
                message=f"Stats for match {match_id} are waiting for approval",
            ))
        return review

    def approve_stats(self, conn: sqlite3.Connection, review_id: str, approved_by: str) -> ApprovalResult:
        """
        Approve a pending review. A still-live match is finalized; a completed one is
        left as is so standings are never applied twice.
        """
        review = self._resolve(conn, review_id, ReviewStatus.APPROVED, approved_by)
        result = ApprovalResult(review=review)
        match = load_match(self._match_repo, conn, review.match_id)
        if match.status == MatchStatus.LIVE:
            try:
                result.finalize = self._outcome.finalize(conn, match.id)
            except AlreadyFinalizedError:
                logger.info("approval_match_already_final", match_id=match.id, review_id=review_id)
        emit_safely(self._events, Event(
            kind=EventKind.STATS_APPROVED,
            receiver_id=review.submitted_by,
            sender_id=approved_by,
            match_id=match.id,
            league_id=match.league_id,
            message=f"Stats for match {match.id} were approved",
        ))
        return result

    def reject_stats(
        self, conn: sqlite3.Connection, review_id: str, rejected_by: str, reason: str
    ) -> StatReview:
        review = self._resolve(conn, review_id, ReviewStatus.REJECTED, rejected_by, reason)
        match = load_match(self._match_repo, conn, review.match_id)
        emit_safely(self._events, Event(
            kind=EventKind.STATS_REJECTED,
            receiver_id=review.submitted_by,
            sender_id=rejected_by,
            match_id=match.id,
            league_id=match.league_id,
            message=reason,
        ))
        return review

    def _resolve(
        self,
        conn: sqlite3.Connection,
        review_id: str,
        status: ReviewStatus,
        resolved_by: str,
        reason: str | None = None,
    ) -> StatReview:
        with transaction(conn):
            review = self._review_repo.get(conn, review_id)
            if review is None:
                raise NotFoundError(f"Stat review not found: {review_id}")
            if not self._review_repo.resolve(conn, review_id, status.value, resolved_by, reason):
                raise InvalidStateError(f"Stat review {review_id} is already {review.status}")
        logger.info("stat_review_resolved", review_id=review_id, status=status.value, resolved_by=resolved_by)
        resolved = self._review_repo.get(conn, review_id)
        if resolved is None:
            raise NotFoundError(f"Stat review not found: {review_id}")
        return resolved
