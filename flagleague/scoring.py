"""
Scoring rules for flag football matches.
Single home for the point table and every recompute used by the services:
ledger score, player-line points, team-line sums and per-submission deltas.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace

from flagleague.models import ActionRecord, ActionType, StatLine


# ---------- Ledger (referee) point table ----------
ACTION_POINTS: dict[ActionType, int] = {
    ActionType.TOUCHDOWN: 6,
    ActionType.EXTRA_POINT_5: 1,
    ActionType.EXTRA_POINT_12: 2,
    ActionType.EXTRA_POINT_20: 2,
    ActionType.DEFENSIVE_TOUCHDOWN: 6,
    ActionType.EXTRA_POINT_RETURN: 4,
    ActionType.SAFETY: 2,
}

# ---------- Box score (stat keeper) point weights ----------
TOUCHDOWN_POINTS = 6
DEFENSIVE_TOUCHDOWN_POINTS = 6
CONVERSION_POINTS = 1
SAFETY_POINTS = 2

# Counters carried on every StatLine, in display order. total_points is derived.
STAT_FIELDS: tuple[str, ...] = (
    "catches",
    "catch_yards",
    "rushes",
    "rush_yards",
    "pass_attempts",
    "pass_yards",
    "completions",
    "touchdowns",
    "defensive_touchdowns",
    "conversion_points",
    "safeties",
    "flag_pulls",
    "sacks",
    "interceptions",
)

# A run or catch can lose yards; every other counter is a count of events.
YARDAGE_FIELDS: frozenset[str] = frozenset({"catch_yards", "rush_yards", "pass_yards"})


def parse_action_type(value: str) -> ActionType | None:
    """Return the ActionType for value, or None if it is not a recognized play."""
    try:
        return ActionType(value)
    except ValueError:
        return None


def action_points(action_type: ActionType) -> int:
    return ACTION_POINTS[action_type]


def ledger_score(actions: Iterable[ActionRecord]) -> int:
    """Score of a side: sum of its ledger. Used to verify the stored running total."""
    return sum(a.points for a in actions)


def stat_total_points(line: StatLine) -> int:
    """touchdowns×6 + defensive touchdowns×6 + conversions×1 + safeties×2. Yardage scores nothing."""
    return (
        line.touchdowns * TOUCHDOWN_POINTS
        + line.defensive_touchdowns * DEFENSIVE_TOUCHDOWN_POINTS
        + line.conversion_points * CONVERSION_POINTS
        + line.safeties * SAFETY_POINTS
    )


def merge_stat_delta(line: StatLine, delta: Mapping[str, int]) -> StatLine:
    """
    Additive merge: every counter in delta is added to the existing value, never replaced.
    Returns a new StatLine with total_points recomputed.
    """
    unknown = set(delta) - set(STAT_FIELDS)
    if unknown:
        raise KeyError(f"Unknown stat fields: {sorted(unknown)}")
    merged = replace(line, **{k: getattr(line, k) + int(v) for k, v in delta.items()})
    merged.total_points = stat_total_points(merged)
    return merged


def negative_counters(line: StatLine) -> list[str]:
    """Counters that dropped below zero. Yardage is allowed to be negative."""
    return [f for f in STAT_FIELDS if f not in YARDAGE_FIELDS and getattr(line, f) < 0]


def sum_stat_lines(lines: Iterable[StatLine]) -> StatLine:
    """Fieldwise sum, including total_points. Full recompute, never incremental."""
    total = StatLine()
    for line in lines:
        for f in STAT_FIELDS:
            setattr(total, f, getattr(total, f) + getattr(line, f))
        total.total_points += line.total_points
    return total


def stat_line_delta(old: StatLine, new: StatLine) -> dict[str, int]:
    """Signed per-counter change between two versions of the same line. Zero entries are dropped."""
    out: dict[str, int] = {}
    for f in STAT_FIELDS:
        d = getattr(new, f) - getattr(old, f)
        if d != 0:
            out[f] = d
    return out
