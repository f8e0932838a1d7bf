"""
backend/goalradar/services/match_normalizer_service.py

Purpose:
    Assemble one frozen CanonicalMatch from a captured payload bundle:
    raw fixture, statistics, events, live odds and optional pre-match odds.
    Attaches the validator verdict and the parsed odds snapshots, derives
    event aggregates, shot timing, scenario tags and a quick rating, and
    flags matches whose statistics cannot be trusted for scoring.

Dependencies:
    - goalradar.models.match
    - goalradar.services.data_validation_service
    - goalradar.services.odds_parser_service
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from goalradar.models.match import (
    EVENT_TYPE_LABELS,
    STATUS_MAP,
    CanonicalMatch,
    EventSummary,
    EventType,
    HalfIntensity,
    MatchEvent,
    MatchStatistics,
    MatchStatus,
    Side,
    SideCount,
    SidePair,
    StatType,
    TeamInfo,
    stat_type_for_label,
)
from goalradar.models.odds import OddsSnapshot
from goalradar.models.validation import ValidationResult
from goalradar.services.data_validation_service import locate_team_stats, validate_all
from goalradar.services.odds_parser_service import parse_odds
from goalradar.utils import dig, parse_utc, safe_float, safe_int, utcnow

logger = logging.getLogger("goalradar.match_normalizer")

MAX_SUBSTITUTIONS = 5
RECENT_SUB_WINDOW = 5
RECENT_SHOTS_WINDOW = 20
LATE_EVENT_MINUTE = 70
ZERO_SHOTS_GRACE_MINUTE = 10

ATTACKING_POSITIONS = frozenset({"F", "FW", "ST", "CF", "LW", "RW", "AM", "CAM", "FORWARD", "ATTACKER"})
VAR_CANCELLED_MARKERS = ("cancelled", "disallowed", "no goal")

_STAT_FIELDS: dict[StatType, str] = {
    StatType.TOTAL_SHOTS: "shots",
    StatType.SHOTS_ON_TARGET: "shots_on_target",
    StatType.BALL_POSSESSION: "possession",
    StatType.CORNER_KICKS: "corners",
    StatType.DANGEROUS_ATTACKS: "dangerous_attacks",
    StatType.EXPECTED_GOALS: "expected_goals",
    StatType.FOULS: "fouls",
}


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def extract_team_stats(entry: dict[str, Any] | None) -> dict[StatType, float]:
    """Map one team's free-text statistic rows onto StatType. Unknown labels are dropped."""
    values: dict[StatType, float] = {}
    if not entry:
        return values
    for row in entry.get("statistics") or []:
        if not isinstance(row, dict):
            continue
        stat_type = stat_type_for_label(row.get("type"))
        number = safe_float(row.get("value"))
        if stat_type is None or number is None or stat_type in values:
            continue
        values[stat_type] = number
    return values


def _shot_timing(
    minute: int,
    shot_minutes: Sequence[int] | None,
    events: Sequence[MatchEvent],
) -> tuple[int, HalfIntensity]:
    if shot_minutes is not None:
        moments = [m for m in (safe_int(value) for value in shot_minutes) if m is not None]
    else:
        moments = [event.minute for event in events if event.type == EventType.GOAL]
    window_start = minute - RECENT_SHOTS_WINDOW
    recent = sum(1 for value in moments if window_start <= value <= minute)
    first_half = sum(1 for value in moments if value <= 45)
    second_half = sum(1 for value in moments if value > 45)
    return recent, HalfIntensity(first_half=first_half, second_half=second_half)


def build_statistics(
    statistics: Sequence[Any] | None,
    home_team_id: int | None,
    away_team_id: int | None,
    *,
    minute: int,
    events: Sequence[MatchEvent] = (),
    shot_minutes: Sequence[int] | None = None,
) -> MatchStatistics | None:
    if not statistics:
        return None
    home_entry = locate_team_stats(statistics, home_team_id, 0)
    away_entry = locate_team_stats(statistics, away_team_id, 1)
    home = extract_team_stats(home_entry)
    away = extract_team_stats(away_entry)

    pairs = {
        field_name: SidePair(home=home.get(stat_type), away=away.get(stat_type))
        for stat_type, field_name in _STAT_FIELDS.items()
    }
    recent, intensity = _shot_timing(minute, shot_minutes, events)
    return MatchStatistics(
        **pairs,
        authoritative=home_entry is not None and away_entry is not None,
        recent_shots_20min=recent,
        half_intensity=intensity,
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def _event_side(event: dict[str, Any], home_team_id: int | None, away_team_id: int | None) -> Side | None:
    team_id = safe_int(dig(event, "team", "id"))
    if team_id is None:
        return None
    if team_id == home_team_id:
        return "home"
    if team_id == away_team_id:
        return "away"
    return None


def parse_events(
    events: Sequence[Any] | None,
    home_team_id: int | None,
    away_team_id: int | None,
) -> list[MatchEvent]:
    parsed: list[MatchEvent] = []
    for event in events or []:
        if not isinstance(event, dict):
            continue
        label = str(event.get("type") or "").strip().lower()
        position = dig(event, "player", "pos") or event.get("position")
        parsed.append(
            MatchEvent(
                minute=safe_int(dig(event, "time", "elapsed")) or 0,
                extra=safe_int(dig(event, "time", "extra")),
                side=_event_side(event, home_team_id, away_team_id),
                team_id=safe_int(dig(event, "team", "id")),
                type=EVENT_TYPE_LABELS.get(label, EventType.OTHER),
                detail=str(event.get("detail") or ""),
                player=dig(event, "player", "name"),
                assist=dig(event, "assist", "name"),
                position=str(position) if position else None,
            )
        )
    return parsed


def _is_red_card(detail: str) -> bool:
    text = detail.lower()
    return text == "red card" or text == "second yellow card"


def _side_leading(side: Side, home_score: int, away_score: int) -> bool:
    if side == "home":
        return home_score > away_score
    return away_score > home_score


def _is_attacking_sub(event: MatchEvent, home_score: int, away_score: int) -> bool:
    if event.position:
        return event.position.strip().upper() in ATTACKING_POSITIONS
    return event.side is not None and not _side_leading(event.side, home_score, away_score)


def summarize_events(
    events: Sequence[MatchEvent],
    *,
    minute: int,
    home_score: int,
    away_score: int,
) -> EventSummary:
    yellow = {"home": 0, "away": 0}
    red = {"home": 0, "away": 0}
    subs = {"home": 0, "away": 0}
    recent_attack_subs = 0
    var_cancelled = False
    recent_event = None

    for event in events:
        if event.type == EventType.CARD and event.side is not None:
            if _is_red_card(event.detail):
                red[event.side] += 1
                if event.minute >= LATE_EVENT_MINUTE:
                    recent_event = "red_card"
            elif event.detail.lower() == "yellow card":
                yellow[event.side] += 1
        elif event.type == EventType.SUBSTITUTION and event.side is not None:
            subs[event.side] += 1
            if minute - RECENT_SUB_WINDOW <= event.minute <= minute and _is_attacking_sub(
                event, home_score, away_score
            ):
                recent_attack_subs += 1
        elif event.type == EventType.GOAL:
            if event.minute >= LATE_EVENT_MINUTE:
                recent_event = "goal"
        elif event.type == EventType.VAR:
            detail = event.detail.lower()
            if any(marker in detail for marker in VAR_CANCELLED_MARKERS):
                var_cancelled = True

    return EventSummary(
        yellow_cards=SideCount(**yellow),
        red_cards=SideCount(**red),
        substitutions_used=SideCount(**subs),
        subs_remaining=SideCount(
            home=max(0, MAX_SUBSTITUTIONS - subs["home"]),
            away=max(0, MAX_SUBSTITUTIONS - subs["away"]),
        ),
        recent_attack_subs=recent_attack_subs,
        var_cancelled=var_cancelled,
        recent_event=recent_event,
    )


# ---------------------------------------------------------------------------
# Derived flags
# ---------------------------------------------------------------------------


def no_stats_reason(statistics: MatchStatistics | None, minute: int) -> str | None:
    """Why statistics cannot be scored, or None when they can."""
    if statistics is None:
        return "MISSING_STATISTICS_DATA"
    if not statistics.authoritative:
        return "STATS_NOT_FROM_API"
    if minute > ZERO_SHOTS_GRACE_MINUTE and (statistics.shots.home or 0) == 0 and (statistics.shots.away or 0) == 0:
        return "SUSPICIOUS_ZERO_SHOTS"
    return None


def scenario_tags(
    *,
    minute: int,
    home_score: int,
    away_score: int,
    home_handicap: float | None,
    summary: EventSummary,
    statistics: MatchStatistics | None,
) -> list[str]:
    tags: list[str] = []
    goal_diff = home_score - away_score

    if minute >= 75:
        tags.append("critical_time")

    if summary.red_cards.home > 0 or summary.red_cards.away > 0:
        tags.append("red_card")
        if summary.red_cards.home > 0:
            tags.append("home_red")
        if summary.red_cards.away > 0:
            tags.append("away_red")

    if home_handicap is not None and minute >= 70:
        if (home_handicap < 0 and home_score < away_score) or (home_handicap > 0 and away_score < home_score):
            tags.append("strong_behind")

    if goal_diff == 0:
        tags.append("balanced")
        if home_score == 0 and minute >= 60:
            tags.append("deadlock")

    if abs(goal_diff) >= 3:
        tags.append("large_lead")

    if statistics is None or not statistics.authoritative:
        tags.append("no_stats")
    return tags


def quick_rating(minute: int, home_score: int, away_score: int, statistics: MatchStatistics | None) -> int:
    """Cheap 0..100 triage rating from clock, margin, shots and xG."""
    score = 30
    margin = abs(home_score - away_score)

    if minute >= 85:
        score += 15
    elif minute >= 75:
        score += 10
    elif minute >= 60:
        score += 5

    if margin == 0:
        score += 18
    elif margin == 1:
        score += 12
    elif margin == 2:
        score += 5
    else:
        score -= 10

    if statistics is not None and statistics.authoritative:
        total_shots = statistics.shots.total()
        if total_shots >= 25:
            score += 10
        elif total_shots >= 18:
            score += 6
        total_xg = statistics.expected_goals.total()
        if total_xg >= 3.0:
            score += 10
        elif total_xg >= 2.0:
            score += 5

    return max(0, min(100, score))


def _resolve_handicap(odds: OddsSnapshot, prematch: OddsSnapshot | None) -> float | None:
    if prematch is not None:
        return prematch.ah_line
    if not odds.is_live:
        return odds.ah_line
    return None


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def normalize_match(
    fixture: dict[str, Any] | None,
    statistics: Sequence[Any] | None,
    events: Sequence[Any] | None,
    odds: Any,
    prematch_odds: Any = None,
    *,
    validation: ValidationResult | None = None,
    shot_minutes: Sequence[int] | None = None,
    captured_at: datetime | None = None,
) -> CanonicalMatch:
    """Build the canonical match for one fixture from one captured bundle.

    ``validation`` should be the verdict computed on this same bundle; it is
    computed here when not supplied.
    """
    captured = captured_at or utcnow()
    fixture = fixture if isinstance(fixture, dict) else {}
    fixture_id = safe_int(dig(fixture, "fixture", "id")) or 0
    home_id = safe_int(dig(fixture, "teams", "home", "id"))
    away_id = safe_int(dig(fixture, "teams", "away", "id"))
    minute = safe_int(dig(fixture, "fixture", "status", "elapsed")) or 0
    home_score = safe_int(dig(fixture, "goals", "home")) or 0
    away_score = safe_int(dig(fixture, "goals", "away")) or 0
    status_short = str(dig(fixture, "fixture", "status", "short") or "NS").upper()

    if validation is None:
        validation = validate_all(fixture or None, statistics, events, odds, validated_at=captured)

    if odds is None:
        live_snapshot = OddsSnapshot.not_fetched(fixture_id, captured_at=captured)
    else:
        live_snapshot = parse_odds(odds, minute=minute, captured_at=captured, fixture_id=fixture_id)
    prematch_snapshot = None
    if prematch_odds is not None:
        prematch_snapshot = parse_odds(prematch_odds, captured_at=captured, fixture_id=fixture_id)
    home_handicap = _resolve_handicap(live_snapshot, prematch_snapshot)

    match_events = parse_events(events, home_id, away_id)
    summary = summarize_events(match_events, minute=minute, home_score=home_score, away_score=away_score)
    stats = build_statistics(
        statistics,
        home_id,
        away_id,
        minute=minute,
        events=match_events,
        shot_minutes=shot_minutes,
    )
    reason = no_stats_reason(stats, minute)
    if reason is not None:
        logger.info("Fixture %s not scoreable: %s", fixture_id, reason)

    return CanonicalMatch(
        fixture_id=fixture_id,
        league_id=safe_int(dig(fixture, "league", "id")),
        league_name=str(dig(fixture, "league", "name") or ""),
        kickoff=parse_utc(dig(fixture, "fixture", "date")),
        minute=minute,
        status=STATUS_MAP.get(status_short, MatchStatus.LIVE),
        status_short=status_short,
        home=TeamInfo(id=home_id, name=str(dig(fixture, "teams", "home", "name") or "Home"), score=home_score),
        away=TeamInfo(id=away_id, name=str(dig(fixture, "teams", "away", "name") or "Away"), score=away_score),
        statistics=stats,
        events=tuple(match_events),
        event_summary=summary,
        odds=live_snapshot,
        prematch_odds=prematch_snapshot,
        home_handicap=home_handicap,
        validation=validation,
        unscoreable=reason is not None,
        no_stats_reason=reason,
        scenario_tags=tuple(
            scenario_tags(
                minute=minute,
                home_score=home_score,
                away_score=away_score,
                home_handicap=home_handicap,
                summary=summary,
                statistics=stats,
            )
        ),
        quick_rating=quick_rating(minute, home_score, away_score, stats),
    )


def normalize_matches(
    fixtures: Sequence[dict[str, Any]],
    statistics_by_fixture: Mapping[int, Sequence[Any]] | None = None,
    events_by_fixture: Mapping[int, Sequence[Any]] | None = None,
    odds_by_fixture: Mapping[int, Any] | None = None,
    prematch_by_fixture: Mapping[int, Any] | None = None,
    *,
    captured_at: datetime | None = None,
) -> dict[int, CanonicalMatch]:
    """Normalize a batch keyed by fixture id. A failing fixture is logged and skipped."""
    captured = captured_at or utcnow()
    results: dict[int, CanonicalMatch] = {}
    for fixture in fixtures:
        fixture_id = safe_int(dig(fixture, "fixture", "id"))
        if not fixture_id:
            logger.warning("Skipping fixture record without id")
            continue
        try:
            results[fixture_id] = normalize_match(
                fixture,
                (statistics_by_fixture or {}).get(fixture_id),
                (events_by_fixture or {}).get(fixture_id),
                (odds_by_fixture or {}).get(fixture_id),
                (prematch_by_fixture or {}).get(fixture_id),
                captured_at=captured,
            )
        except Exception as e:
            logger.error("Normalization failed for fixture %s: %s", fixture_id, e, exc_info=True)
    return results
