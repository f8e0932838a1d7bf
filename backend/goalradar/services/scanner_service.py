"""
backend/goalradar/services/scanner_service.py

Purpose:
    Structural-imbalance scanner. Evaluates a CanonicalMatch against a
    declarative ScannerConfig; every rule reports pass/fail independently
    and the verdict is

        TIME_WINDOW and GOAL_DIFF and (XG_DIFF or SHOTS_DIFF)
        and REAL_DATA when the config requires it.

    The recommendation tier comes from the number of matched rules only.
    Also exposes the recent-activity estimate and the attack score used by
    the dashboard.

Dependencies:
    - goalradar.models.scanner
    - goalradar.models.match
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from goalradar.models.match import CanonicalMatch, EventType, MatchStatus
from goalradar.models.scanner import (
    AttackingTeam,
    AttackScore,
    ImbalanceMetrics,
    RecentActivity,
    ScannerConfig,
    ScannerRecommendation,
    ScannerResult,
    ScannerRule,
)

logger = logging.getLogger("goalradar.scanner")

RECENT_WINDOW_MINUTES = 10
LATE_GAME_MINUTE = 75
LATE_GAME_SHOT_MULTIPLIER = 1.3
SHOTS_PER_RECENT_GOAL = 4
ACTIVE_THRESHOLD = 30

# Matched-rule count -> tier, checked top-down.
TIER_THRESHOLDS: tuple[tuple[int, ScannerRecommendation], ...] = (
    (5, ScannerRecommendation.STRONG),
    (4, ScannerRecommendation.MODERATE),
    (3, ScannerRecommendation.WEAK),
)


def calculate_imbalance_metrics(match: CanonicalMatch) -> ImbalanceMetrics:
    stats = match.statistics
    if stats is None:
        return ImbalanceMetrics()

    shots_diff = stats.shots.diff()
    sot_diff = stats.shots_on_target.diff()
    xg_diff = stats.expected_goals.diff()
    corners_diff = stats.corners.diff()
    possession_diff = stats.possession.diff()

    raw = (
        abs(shots_diff) * 3
        + abs(sot_diff) * 5
        + abs(xg_diff) * 25
        + abs(corners_diff) * 2
        + abs(possession_diff) * 0.5
    )

    attacking: AttackingTeam = "balanced"
    if shots_diff >= 5 or xg_diff >= 0.5:
        attacking = "home"
    elif shots_diff <= -5 or xg_diff <= -0.5:
        attacking = "away"

    return ImbalanceMetrics(
        shots_diff=shots_diff,
        shots_on_target_diff=sot_diff,
        xg_diff=round(xg_diff, 2),
        corners_diff=corners_diff,
        possession_diff=possession_diff,
        imbalance_score=min(100, round(raw)),
        attacking_team=attacking,
    )


def _recent_goal_count(match: CanonicalMatch) -> int:
    window_start = match.minute - RECENT_WINDOW_MINUTES
    return sum(
        1
        for event in match.events
        if event.type == EventType.GOAL and window_start <= event.minute <= match.minute
    )


def estimate_recent_10min_shots(match: CanonicalMatch) -> int:
    """Rough shot count for the last ten minutes.

    The feed only reports cumulative statistics, so the estimate falls back
    in order: recent goals (about four shots each), half of the 20-minute
    shot count, then the full-match total scaled to a ten-minute share.
    """
    stats = match.statistics
    total_shots = int(stats.shots.total()) if stats is not None else 0
    if match.minute < RECENT_WINDOW_MINUTES:
        return total_shots

    recent_goals = _recent_goal_count(match)
    if recent_goals > 0:
        return recent_goals * SHOTS_PER_RECENT_GOAL

    if stats is not None and stats.recent_shots_20min:
        return round(stats.recent_shots_20min / 2)

    if total_shots == 0:
        return 0
    multiplier = LATE_GAME_SHOT_MULTIPLIER if match.minute >= LATE_GAME_MINUTE else 1.0
    return round(total_shots * RECENT_WINDOW_MINUTES / match.minute * multiplier)


def estimate_recent_10min_activity(match: CanonicalMatch) -> RecentActivity:
    estimated_shots = estimate_recent_10min_shots(match)
    recent_goals = _recent_goal_count(match)

    score = recent_goals * 30 + min(estimated_shots * 8, 40)
    if estimated_shots >= 6:
        score += 20
    elif estimated_shots >= 4:
        score += 10
    score = min(100, score)

    return RecentActivity(
        activity_score=score,
        estimated_shots=estimated_shots,
        recent_goals=recent_goals,
        is_active=score >= ACTIVE_THRESHOLD,
    )


def calculate_attack_score(match: CanonicalMatch) -> AttackScore:
    """xG x 30 + shots x 2 + shots on target x 3 + corners, per side."""
    stats = match.statistics
    if stats is None:
        return AttackScore()

    def _side(side: str) -> int:
        return round(
            (getattr(stats.expected_goals, side) or 0.0) * 30
            + (getattr(stats.shots, side) or 0.0) * 2
            + (getattr(stats.shots_on_target, side) or 0.0) * 3
            + (getattr(stats.corners, side) or 0.0)
        )

    home = _side("home")
    away = _side("away")
    return AttackScore(home=home, away=away, diff=home - away)


def _leader(diff: float) -> str:
    return "Home" if diff > 0 else "Away"


def _tier(matched_count: int) -> ScannerRecommendation:
    for minimum, tier in TIER_THRESHOLDS:
        if matched_count >= minimum:
            return tier
    return ScannerRecommendation.NONE


def scan_match(match: CanonicalMatch, config: ScannerConfig | None = None) -> ScannerResult:
    cfg = config or ScannerConfig.from_settings()
    matched: list[ScannerRule] = []
    failed: list[ScannerRule] = []
    reasons: list[str] = []
    metrics = calculate_imbalance_metrics(match)

    in_window = cfg.min_minute <= match.minute <= cfg.max_minute
    half_time = match.status == MatchStatus.HALF_TIME
    time_ok = in_window or (cfg.include_half_time and half_time)
    if time_ok:
        matched.append(ScannerRule.TIME_WINDOW)
        reasons.append(f"Minute {match.minute}' ({cfg.min_minute}'-{cfg.max_minute}')")
    else:
        failed.append(ScannerRule.TIME_WINDOW)

    home_score, away_score = match.home.score, match.away.score
    goal_diff = abs(home_score - away_score)
    is_draw = goal_diff == 0
    goal_ok = goal_diff <= cfg.max_goal_diff and (cfg.allow_draw or not is_draw)
    if goal_ok:
        matched.append(ScannerRule.GOAL_DIFF)
        if is_draw:
            reasons.append(f"Level at {home_score}-{away_score}")
        else:
            reasons.append(f"Only {goal_diff} goal apart ({home_score}-{away_score})")
    else:
        failed.append(ScannerRule.GOAL_DIFF)

    xg_ok = abs(metrics.xg_diff) >= cfg.min_xg_diff
    if xg_ok:
        matched.append(ScannerRule.XG_DIFF)
        reasons.append(f"{_leader(metrics.xg_diff)} xG edge +{abs(metrics.xg_diff):.2f}")
    else:
        failed.append(ScannerRule.XG_DIFF)

    shots_ok = abs(metrics.shots_diff) >= cfg.min_shots_diff
    if shots_ok:
        matched.append(ScannerRule.SHOTS_DIFF)
        reasons.append(f"{_leader(metrics.shots_diff)} shots edge +{abs(metrics.shots_diff):g}")
    else:
        failed.append(ScannerRule.SHOTS_DIFF)

    if abs(metrics.shots_on_target_diff) >= cfg.min_sot_diff:
        matched.append(ScannerRule.SOT_DIFF)
        reasons.append(
            f"{_leader(metrics.shots_on_target_diff)} shots on target edge +{abs(metrics.shots_on_target_diff):g}"
        )
    else:
        failed.append(ScannerRule.SOT_DIFF)

    has_real = match.statistics is not None and match.statistics.authoritative
    if has_real:
        matched.append(ScannerRule.REAL_DATA)
    elif cfg.require_real_data:
        failed.append(ScannerRule.REAL_DATA)

    activity = estimate_recent_10min_activity(match)
    if activity.estimated_shots >= cfg.min_recent_shots:
        reasons.append(f"Active: about {activity.estimated_shots} shots in the last 10 minutes")

    is_match = time_ok and goal_ok and (xg_ok or shots_ok) and (has_real or not cfg.require_real_data)
    recommendation = _tier(len(matched)) if is_match else ScannerRecommendation.NONE

    logger.debug(
        "Scan fixture=%s match=%s matched=%s failed=%s",
        match.fixture_id,
        is_match,
        [rule.value for rule in matched],
        [rule.value for rule in failed],
    )
    return ScannerResult(
        fixture_id=match.fixture_id,
        is_match=is_match,
        matched_rules=tuple(matched),
        failed_rules=tuple(failed),
        imbalance_score=metrics.imbalance_score,
        attacking_team=metrics.attacking_team,
        metrics=metrics,
        recommendation=recommendation,
        reasons=tuple(reasons),
        activity=activity,
    )


def scan_matches(
    matches: Iterable[CanonicalMatch],
    config: ScannerConfig | None = None,
) -> list[tuple[CanonicalMatch, ScannerResult]]:
    """Scan a batch; matching fixtures first, then by imbalance score descending."""
    cfg = config or ScannerConfig.from_settings()
    scanned: list[tuple[CanonicalMatch, ScannerResult]] = []
    for match in matches:
        try:
            scanned.append((match, scan_match(match, cfg)))
        except Exception as e:
            logger.error("Scan failed for fixture %s: %s", match.fixture_id, e, exc_info=True)
    scanned.sort(key=lambda item: (not item[1].is_match, -item[1].imbalance_score))
    return scanned


def get_matching_matches(
    matches: Iterable[CanonicalMatch],
    config: ScannerConfig | None = None,
) -> list[tuple[CanonicalMatch, ScannerResult]]:
    return [item for item in scan_matches(matches, config) if item[1].is_match]


def format_imbalance_metrics(metrics: ImbalanceMetrics) -> str:
    parts: list[str] = []
    if metrics.shots_diff:
        parts.append(f"Shots {metrics.shots_diff:+g}")
    if abs(metrics.xg_diff) > 0.1:
        parts.append(f"xG {metrics.xg_diff:+.2f}")
    if metrics.corners_diff:
        parts.append(f"Corners {metrics.corners_diff:+g}")
    return " | ".join(parts) or "No clear imbalance"
