"""
backend/goalradar/services/scoring_service.py

Purpose:
    Late-goal opportunity scoring. A fixed base of 30 plus five factors
    (score state, attack volume, momentum, history, special events) and, in
    the odds-augmented variant, an odds-movement factor. Totals are clamped
    to [0, 100] (base) or [0, 120] (odds variant).

    Matches whose statistics cannot be trusted never get a number: they get
    an UnscoreableResult carrying the reason.

Dependencies:
    - goalradar.models.match
    - goalradar.models.scoring
    - goalradar.services.odds_movement_service
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from goalradar.config import settings
from goalradar.models.match import CanonicalMatch, Side
from goalradar.models.odds import OddsMovement, OddsSnapshot
from goalradar.models.scoring import (
    AttackFactor,
    DataQualityLevel,
    HistoryFactor,
    HistoryInput,
    MomentumFactor,
    OddsFactor,
    Recommendation,
    ScoreFactors,
    ScoreResult,
    ScoreStateFactor,
    ScoringOutcome,
    SpecialFactor,
    UnscoreableResult,
)
from goalradar.services.match_normalizer_service import no_stats_reason
from goalradar.services.odds_movement_service import calculate_odds_factor
from goalradar.utils import dig, safe_float

logger = logging.getLogger("goalradar.scoring")

BASE_SCORE = 30
BASE_MAX_SCORE = 100
ODDS_MAX_SCORE = 120

# (min total, stars) checked top-down; anything lower is 1 star.
BASE_STAR_THRESHOLDS: tuple[tuple[int, int], ...] = ((90, 5), (80, 4), (70, 3), (60, 2))
ODDS_STAR_THRESHOLDS: tuple[tuple[int, int], ...] = ((100, 5), (85, 4), (75, 3), (65, 2))

BASE_RECOMMENDATION_THRESHOLDS: tuple[tuple[int, Recommendation], ...] = (
    (80, Recommendation.STRONG_BUY),
    (70, Recommendation.BUY),
    (50, Recommendation.HOLD),
)
ODDS_RECOMMENDATION_THRESHOLDS: tuple[tuple[int, Recommendation], ...] = (
    (90, Recommendation.STRONG_BUY),
    (75, Recommendation.BUY),
    (55, Recommendation.HOLD),
)

LATE_GOAL_BUCKET = "76-90"


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def favored_side(home_handicap: float | None) -> Side | None:
    """Side favored pre-match: a negative home handicap means the home side gives goals."""
    if home_handicap is None or home_handicap == 0:
        return None
    return "home" if home_handicap < 0 else "away"


# ---------------------------------------------------------------------------
# Scoreability
# ---------------------------------------------------------------------------


def check_scoreability(match: CanonicalMatch) -> str | None:
    """Return the reason a match cannot be scored, or None."""
    if match.unscoreable:
        return match.no_stats_reason or "MISSING_STATISTICS_DATA"
    if match.statistics is None:
        return "NO_STATS_OBJECT"
    return no_stats_reason(match.statistics, match.minute)


def _unscoreable(match: CanonicalMatch, reason: str) -> UnscoreableResult:
    return UnscoreableResult(reason=reason, match_id=match.fixture_id, match_info=match.match_info)


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------


def calculate_score_state_factor(match: CanonicalMatch) -> ScoreStateFactor:
    home, away = match.home.score, match.away.score
    margin = abs(home - away)
    favored = favored_side(match.home_handicap)
    strong_behind = (favored == "home" and home < away) or (favored == "away" and away < home)
    strong_lead_by_one = (favored == "home" and home - away == 1) or (favored == "away" and away - home == 1)

    score = 0
    if margin == 0:
        score += 18
    elif margin == 1:
        score += 12
    elif margin == 2:
        score += 5
    else:
        score -= 10
    if strong_behind:
        score += 15
    if strong_lead_by_one:
        score += 5

    return ScoreStateFactor(
        score=_clamp(score, -10, 25),
        is_draw=margin == 0,
        one_goal_diff=margin == 1,
        two_goal_diff=margin == 2,
        large_gap=margin >= 3,
        strong_behind=strong_behind,
        strong_lead_by_one=strong_lead_by_one,
    )


def calculate_attack_factor(match: CanonicalMatch) -> AttackFactor:
    stats = match.statistics
    if stats is None:
        return AttackFactor()
    total_shots = int(stats.shots.total())
    on_target = int(stats.shots_on_target.total())
    accuracy = on_target / total_shots * 100 if total_shots > 0 else 0.0
    corners = int(stats.corners.total())
    xg_total = stats.expected_goals.total()
    goals = match.total_goals

    score = 0
    if total_shots >= 25:
        score += 10
    elif total_shots >= 18:
        score += 6
    if accuracy >= 45:
        score += 8
    elif accuracy >= 35:
        score += 4
    if corners >= 12:
        score += 6
    elif corners >= 8:
        score += 3
    if xg_total >= 3.0:
        score += 10
    elif xg_total >= 2.0:
        score += 5
    if goals > 0 and xg_total > goals * 1.5:
        score += 8

    return AttackFactor(
        score=_clamp(score, 0, 30),
        total_shots=total_shots,
        shots_on_target=on_target,
        shot_accuracy=round(accuracy, 2),
        corners=corners,
        xg_total=round(xg_total, 2),
        xg_debt=round(xg_total - goals, 2),
    )


def calculate_momentum_factor(match: CanonicalMatch) -> MomentumFactor:
    stats = match.statistics
    if stats is None:
        return MomentumFactor()

    recent_shots = stats.recent_shots_20min or 0
    intensity = 1.0
    intensity_measured = False
    if stats.half_intensity is not None:
        first, second = stats.half_intensity.first_half, stats.half_intensity.second_half
        if first > 0:
            intensity = second / first
            intensity_measured = True
        elif second > 0:
            intensity = 2.0
            intensity_measured = True

    losing = match.losing_side()
    losing_possession = (stats.possession.for_side(losing) or 0.0) if losing else 0.0

    dangerous_total = stats.dangerous_attacks.total()
    density_rising = dangerous_total > 0 and match.minute > 0 and dangerous_total > match.minute * 0.3

    quality: DataQualityLevel
    if not stats.authoritative:
        quality = "unavailable"
    elif intensity_measured:
        quality = "real"
    else:
        quality = "partial"

    score = 0
    if stats.authoritative:
        if recent_shots >= 5:
            score += 15
        elif recent_shots >= 3:
            score += 8
        elif recent_shots >= 1:
            score += 4
        if intensity_measured and intensity > 1.5:
            score += 10
        if losing is not None:
            if losing_possession >= 60:
                score += 10
            elif losing_possession >= 55:
                score += 5
        if density_rising:
            score += 8

    return MomentumFactor(
        score=_clamp(score, 0, 35),
        recent_shots=recent_shots,
        second_half_intensity=round(intensity, 2),
        losing_team_possession=losing_possession,
        attack_density_rising=density_rising,
        data_quality=quality,
    )


def late_goal_rate(team_stats: dict | None) -> float | None:
    """Share of a team's goals scored in minutes 76-90, as a percentage."""
    return safe_float(dig(team_stats, "goals", "for", "minute", LATE_GOAL_BUCKET, "percentage"))


def calculate_history_factor(match: CanonicalMatch, history: HistoryInput | None) -> HistoryFactor:
    history = history or HistoryInput()
    home_rate = late_goal_rate(history.home_team_stats)
    away_rate = late_goal_rate(history.away_team_stats)
    h2h = history.h2h_late_goals
    league_avg = (
        history.league_late_goal_avg
        if history.league_late_goal_avg is not None
        else settings.LEAGUE_LATE_GOAL_AVG_FALLBACK
    )
    losing = match.losing_side()
    comeback = None
    if losing == "home":
        comeback = history.home_comeback_rate
    elif losing == "away":
        comeback = history.away_comeback_rate

    home_value = home_rate or 0.0
    away_value = away_rate or 0.0
    h2h_value = h2h or 0
    comeback_value = comeback or 0.0

    score = 0
    if home_value > 40 and away_value > 40:
        score += 12
    elif home_value > 30 and away_value > 30:
        score += 6
    if home_value > 50 or away_value > 50:
        score += 8
    if h2h_value >= 4:
        score += 10
    elif h2h_value >= 2:
        score += 5
    if league_avg > 0.6:
        score += 5
    if losing is not None and comeback_value > 40:
        score += 8

    return HistoryFactor(
        score=_clamp(score, 0, 25),
        home_late_goal_rate=home_value,
        away_late_goal_rate=away_value,
        h2h_late_goals=h2h_value,
        league_late_goal_avg=league_avg,
        losing_team_comeback_rate=comeback_value,
        data_available=home_rate is not None or away_rate is not None or h2h is not None,
    )


def calculate_special_factor(match: CanonicalMatch) -> SpecialFactor:
    summary = match.event_summary
    stats = match.statistics
    home_reds, away_reds = summary.red_cards.home, summary.red_cards.away
    home_subs, away_subs = summary.subs_remaining.home, summary.subs_remaining.away
    home_possession = stats.possession.home if stats is not None else None
    total_fouls = stats.fouls.total() if stats is not None else 0.0

    details = {
        "red_card_advantage": (home_reds > 0 and away_reds == 0) or (away_reds > 0 and home_reds == 0),
        "high_scoring_match": match.total_goals >= 3,
        "subs_remaining": home_subs > 0 and away_subs > 0,
        "recent_attack_sub": summary.recent_attack_subs > 0,
        "var_cancelled": summary.var_cancelled,
        "all_subs_used": home_subs == 0 and away_subs == 0,
        "too_many_fouls": total_fouls > 25,
        "possession_stalemate": home_possession is not None and abs(home_possession - 50) < 5,
    }
    weights = {
        "red_card_advantage": 12,
        "high_scoring_match": 8,
        "subs_remaining": 5,
        "recent_attack_sub": 6,
        "var_cancelled": 5,
        "all_subs_used": -8,
        "too_many_fouls": -5,
        "possession_stalemate": -3,
    }
    score = sum(weights[name] for name, hit in details.items() if hit)
    return SpecialFactor(score=_clamp(score, -20, 20), **details)


# ---------------------------------------------------------------------------
# Derived outputs
# ---------------------------------------------------------------------------


def score_to_stars(total: int, thresholds: Sequence[tuple[int, int]] = BASE_STAR_THRESHOLDS) -> int:
    for minimum, stars in thresholds:
        if total >= minimum:
            return stars
    return 1


def score_to_recommendation(
    total: int,
    thresholds: Sequence[tuple[int, Recommendation]] = BASE_RECOMMENDATION_THRESHOLDS,
) -> Recommendation:
    for minimum, recommendation in thresholds:
        if total >= minimum:
            return recommendation
    return Recommendation.AVOID


def calculate_confidence(match: CanonicalMatch, factors: ScoreFactors) -> int:
    """Evidential completeness of the inputs, not predicted correctness."""
    stats = match.statistics
    confidence = 30
    if stats is not None and stats.authoritative:
        confidence += 25
    if stats is not None and stats.shots.total() > 0:
        confidence += 10
    if stats is not None and stats.expected_goals.total() > 0:
        confidence += 10
    if factors.momentum.data_quality == "real":
        confidence += 10
    elif factors.momentum.data_quality == "partial":
        confidence += 5
    if factors.history.data_available:
        confidence += 10
    if match.minute >= 70:
        confidence += 5
    if factors.odds is not None and factors.odds.data_available:
        confidence += 10
    return min(100, confidence)


def generate_alerts(total: int, factors: ScoreFactors, match: CanonicalMatch) -> list[str]:
    alerts: list[str] = []
    if total >= 90:
        alerts.append("Very high probability: score above 90, watch closely")
    elif total >= 80:
        alerts.append("High goal probability: score above 80")
    elif total >= 70:
        alerts.append("Elevated probability: score 70+, worth watching")

    state = factors.score
    if state.strong_behind:
        alerts.append("Favored team behind: expect a push")
    if match.minute >= 80 and state.one_goal_diff:
        alerts.append("Critical period: 80+ minutes with a one-goal margin")
    if state.is_draw and match.minute >= 80:
        alerts.append("Level at 80+: both sides have reason to attack")
    if factors.attack.total_shots >= 25:
        alerts.append("Shot barrage: 25+ total shots")
    if factors.attack.xg_debt > 1.5:
        alerts.append("xG debt: expected goals well above actual goals")
    if factors.momentum.recent_shots >= 8:
        alerts.append("Attacking surge: 8+ shots in the last 20 minutes")
    if factors.special.red_card_advantage:
        alerts.append("Red card advantage: one side has an extra player")
    if factors.special.recent_attack_sub:
        alerts.append("Attacking substitution just made")
    if factors.special.var_cancelled:
        alerts.append("VAR impact: goal cancelled")

    odds = factors.odds
    if odds is not None and odds.data_available:
        if odds.handicap_tightening:
            alerts.append("Handicap tightening: market expects goals")
        if odds.over_odds_drop:
            alerts.append("Over price falling: market expects more goals")
        if odds.multi_bookmaker_movement:
            alerts.append("Bookmakers moving together: market consensus forming")
        if odds.live_odds_shift:
            alerts.append("In-play repricing: significant odds moves")
        if odds.odds_xg_divergence:
            alerts.append("Odds/xG divergence: market may underrate goals")
        if odds.handicap_widening:
            alerts.append("Handicap widening: market confidence falling")
        if odds.goal_expectation == "HIGH":
            alerts.append("Market expects a high-scoring finish")
    return alerts


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _build_result(
    match: CanonicalMatch,
    history: HistoryInput | None,
    odds_factor: OddsFactor | None,
) -> ScoreResult:
    factors = ScoreFactors(
        score=calculate_score_state_factor(match),
        attack=calculate_attack_factor(match),
        momentum=calculate_momentum_factor(match),
        history=calculate_history_factor(match, history),
        special=calculate_special_factor(match),
        odds=odds_factor,
    )
    raw_total = (
        BASE_SCORE
        + factors.score.score
        + factors.attack.score
        + factors.momentum.score
        + factors.history.score
        + factors.special.score
        + (odds_factor.score if odds_factor is not None else 0)
    )
    variant = "odds" if odds_factor is not None else "base"
    total = _clamp(raw_total, 0, ODDS_MAX_SCORE if variant == "odds" else BASE_MAX_SCORE)

    use_odds_tables = odds_factor is not None and odds_factor.data_available
    stars = score_to_stars(total, ODDS_STAR_THRESHOLDS if use_odds_tables else BASE_STAR_THRESHOLDS)
    recommendation = score_to_recommendation(
        total,
        ODDS_RECOMMENDATION_THRESHOLDS if use_odds_tables else BASE_RECOMMENDATION_THRESHOLDS,
    )

    return ScoreResult(
        match_id=match.fixture_id,
        match_info=match.match_info,
        total_score=total,
        base_score=BASE_SCORE,
        factors=factors,
        stars=stars,
        recommendation=recommendation,
        is_strong_team_behind=factors.score.strong_behind,
        alerts=tuple(generate_alerts(total, factors, match)),
        confidence=calculate_confidence(match, factors),
        tags=match.scenario_tags,
        variant=variant,
    )


def calculate_score(match: CanonicalMatch, *, history: HistoryInput | None = None) -> ScoringOutcome:
    reason = check_scoreability(match)
    if reason is not None:
        logger.info("Match %s (%s) unscoreable: %s", match.fixture_id, match.match_info, reason)
        return _unscoreable(match, reason)
    return _build_result(match, history, None)


def calculate_score_with_odds(
    match: CanonicalMatch,
    *,
    history: HistoryInput | None = None,
    previous_odds: OddsSnapshot | None = None,
    movements: Sequence[OddsMovement] = (),
) -> ScoringOutcome:
    """Odds-augmented variant. ``previous_odds`` is the prior capture for this fixture."""
    reason = check_scoreability(match)
    if reason is not None:
        logger.info("Match %s (%s) unscoreable: %s", match.fixture_id, match.match_info, reason)
        return _unscoreable(match, reason)
    odds_factor = calculate_odds_factor(match, match.odds, previous_odds, movements)
    return _build_result(match, history, odds_factor)


def score_matches(
    matches: Iterable[CanonicalMatch],
    *,
    history_by_fixture: dict[int, HistoryInput] | None = None,
) -> dict[int, ScoringOutcome]:
    """Score a batch. A match that raises is logged and recorded as CALCULATION_FAILED."""
    results: dict[int, ScoringOutcome] = {}
    for match in matches:
        try:
            results[match.fixture_id] = calculate_score(
                match,
                history=(history_by_fixture or {}).get(match.fixture_id),
            )
        except Exception as e:
            logger.error("Scoring failed for fixture %s: %s", match.fixture_id, e, exc_info=True)
            results[match.fixture_id] = _unscoreable(match, "CALCULATION_FAILED")
    return results


def filter_high_score_matches(matches: Iterable[CanonicalMatch], min_score: int = 70) -> list[CanonicalMatch]:
    selected: list[CanonicalMatch] = []
    for match in matches:
        result = calculate_score(match)
        if isinstance(result, ScoreResult) and result.total_score >= min_score:
            selected.append(match)
    return selected


def filter_strong_team_behind_matches(matches: Iterable[CanonicalMatch]) -> list[CanonicalMatch]:
    selected: list[CanonicalMatch] = []
    for match in matches:
        result = calculate_score(match)
        if isinstance(result, ScoreResult) and result.is_strong_team_behind:
            selected.append(match)
    return selected
