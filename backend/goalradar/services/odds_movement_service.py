"""
backend/goalradar/services/odds_movement_service.py

Purpose:
    Odds-movement factor for the odds-augmented scoring variant. Compares the
    current snapshot with a previously captured one (handicap shift, over
    price drop, in-play repricing) and folds in optional cross-bookmaker
    movement history supplied by collaborators. The snapshot diff only
    feeds the in-play repricing rule; bookmaker consensus needs moves from
    at least two distinct books.

    Without a usable previous snapshot the factor is skipped: score 0 and
    data_available False.

Dependencies:
    - goalradar.models.odds
    - goalradar.models.scoring
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from goalradar.config import settings
from goalradar.models.match import CanonicalMatch
from goalradar.models.odds import FetchStatus, OddsMovement, OddsSnapshot
from goalradar.models.scoring import GoalExpectation, OddsFactor

logger = logging.getLogger("goalradar.odds_movement")

ODDS_FACTOR_MIN = -10
ODDS_FACTOR_MAX = 20
LIVE_SHIFT_LAST_MINUTE = 80

_TRACKED_PRICES: tuple[tuple[str, str], ...] = (
    ("1x2_home", "home_win"),
    ("1x2_draw", "draw"),
    ("1x2_away", "away_win"),
    ("ou_over", "main_ou_over"),
    ("ou_under", "main_ou_under"),
    ("ah_home", "ah_home"),
    ("ah_away", "ah_away"),
)


def diff_snapshots(
    previous: OddsSnapshot,
    current: OddsSnapshot,
    *,
    observed_at: datetime | None = None,
) -> list[OddsMovement]:
    """Price moves between two snapshots of the same fixture.

    Over/under prices are only compared when both snapshots quote the same
    main line; handicap prices only on the same handicap line.
    """
    movements: list[OddsMovement] = []
    for market, field_name in _TRACKED_PRICES:
        if market.startswith("ou_") and previous.main_ou_line != current.main_ou_line:
            continue
        if market.startswith("ah_") and previous.ah_line != current.ah_line:
            continue
        old = getattr(previous, field_name)
        new = getattr(current, field_name)
        if old is None or new is None or old <= 0 or new == old:
            continue
        movements.append(
            OddsMovement(
                bookmaker=current.bookmaker,
                market=market,
                direction="UP" if new > old else "DOWN",
                old_price=old,
                new_price=new,
                change_percent=round((new - old) / old * 100, 2),
                observed_at=observed_at or current.captured_at,
            )
        )
    return movements


def goal_expectation(snapshot: OddsSnapshot) -> GoalExpectation:
    over = snapshot.main_ou_over
    if over is None:
        return "MEDIUM"
    if over < settings.ODDS_HIGH_GOAL_EXPECTATION_PRICE:
        return "HIGH"
    if over > settings.ODDS_LOW_GOAL_EXPECTATION_PRICE:
        return "LOW"
    return "MEDIUM"


def _comparable_over(previous: OddsSnapshot, current: OddsSnapshot) -> tuple[float, float] | None:
    if previous.main_ou_line is not None and previous.main_ou_line == current.main_ou_line:
        if previous.main_ou_over is not None and current.main_ou_over is not None:
            return previous.main_ou_over, current.main_ou_over
    if previous.over_2_5 is not None and current.over_2_5 is not None:
        return previous.over_2_5, current.over_2_5
    return None


def _bookmaker_consensus(movements: Sequence[OddsMovement]) -> bool:
    """Three or more moves in one direction reported by at least two books."""
    if len(movements) < 3:
        return False
    if len({m.bookmaker for m in movements if m.bookmaker and m.bookmaker != "N/A"}) < 2:
        return False
    downs = sum(1 for m in movements if m.direction == "DOWN")
    ups = sum(1 for m in movements if m.direction == "UP")
    return downs >= 3 or ups >= 3


def calculate_odds_factor(
    match: CanonicalMatch,
    current: OddsSnapshot,
    previous: OddsSnapshot | None,
    movements: Sequence[OddsMovement] = (),
) -> OddsFactor:
    if previous is None or previous.fetch_status != FetchStatus.SUCCESS:
        return OddsFactor(score=0, data_available=False)
    if current.fetch_status != FetchStatus.SUCCESS:
        return OddsFactor(score=0, data_available=False)

    all_movements = diff_snapshots(previous, current) + list(movements)
    score = 0
    details: dict[str, object] = {}

    expectation = goal_expectation(current)
    details["goal_expectation"] = expectation
    if expectation == "HIGH":
        score += 6
    elif expectation == "LOW":
        score -= 3

    band = settings.ODDS_HANDICAP_SHIFT_BAND
    if previous.ah_line is not None and current.ah_line is not None:
        if abs(current.ah_line) < abs(previous.ah_line) - band:
            details["handicap_tightening"] = True
            score += 10
        if abs(current.ah_line) > abs(previous.ah_line) + band:
            details["handicap_widening"] = True
            score -= 5

    over_pair = _comparable_over(previous, current)
    if over_pair is not None and over_pair[0] - over_pair[1] > settings.ODDS_OVER_DROP_THRESHOLD:
        details["over_odds_drop"] = True
        score += 8

    if 0 < match.minute < LIVE_SHIFT_LAST_MINUTE:
        significant = [m for m in all_movements if abs(m.change_percent) > settings.ODDS_SIGNIFICANT_MOVE_PCT]
        if len(significant) >= 2:
            details["live_odds_shift"] = True
            score += 8

    if _bookmaker_consensus(movements):
        details["multi_bookmaker_movement"] = True
        score += 12

    stats = match.statistics
    over_price = current.main_ou_over
    if over_price is not None and stats is not None:
        xg_total = stats.expected_goals.total()
        if xg_total > match.total_goals + 1.5 and over_price > 2.0:
            details["odds_xg_divergence"] = True
            score += 6

    clamped = max(ODDS_FACTOR_MIN, min(ODDS_FACTOR_MAX, score))
    logger.debug("Odds factor fixture=%s raw=%s clamped=%s movements=%s", match.fixture_id, score, clamped, len(all_movements))
    return OddsFactor(
        score=clamped,
        movement_count=len(all_movements),
        data_available=True,
        **details,
    )
