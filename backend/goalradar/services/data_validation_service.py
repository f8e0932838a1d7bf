"""
backend/goalradar/services/data_validation_service.py

Purpose:
    Data-quality gate for one fixture snapshot. Four independent checks
    (fixture, statistics, odds, events) each return a verdict plus reason
    codes; validate_all folds them into a ValidationResult tier:
      - REAL:    fixture, statistics and odds all real
      - INVALID: fixture not real
      - PARTIAL: otherwise
    Nothing here raises on malformed input.

Dependencies:
    - dataclasses
    - goalradar.models.validation
    - goalradar.services.odds_parser_service
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from goalradar.models.match import CRITICAL_STATS, StatType, stat_type_for_label
from goalradar.models.odds import LiveOddsPayload, RawMarket
from goalradar.models.validation import DataQuality, ValidationResult
from goalradar.services.odds_parser_service import (
    LIVE_ASIAN_HANDICAP,
    LIVE_BOOKMAKER_NAME,
    LIVE_FULLTIME_RESULT,
    PREMATCH_ASIAN_HANDICAP,
    PREMATCH_MATCH_WINNER,
    PREMATCH_OVER_UNDER,
    classify_odds_payload,
    find_live_over_under,
    find_market,
    select_bookmaker,
)
from goalradar.utils import dig, safe_int, utcnow
from goalradar.utils.odds_utils import to_price

logger = logging.getLogger("goalradar.data_validation")

_CRITICAL_LABELS: dict[StatType, str] = {
    StatType.TOTAL_SHOTS: "TOTAL_SHOTS",
    StatType.SHOTS_ON_TARGET: "SHOTS_ON_GOAL",
    StatType.BALL_POSSESSION: "BALL_POSSESSION",
    StatType.CORNER_KICKS: "CORNER_KICKS",
}


@dataclass
class FixtureCheck:
    is_real: bool
    reasons: list[str] = field(default_factory=list)
    fields_present: list[str] = field(default_factory=list)
    fields_missing: list[str] = field(default_factory=list)


@dataclass
class StatisticsCheck:
    is_real: bool
    reasons: list[str] = field(default_factory=list)
    home_stats_count: int = 0
    away_stats_count: int = 0
    critical_present: list[StatType] = field(default_factory=list)
    critical_missing: list[StatType] = field(default_factory=list)


@dataclass
class OddsCheck:
    is_real: bool
    reasons: list[str] = field(default_factory=list)
    has_1x2: bool = False
    has_over_under: bool = False
    has_asian_handicap: bool = False
    bookmaker: str | None = None
    is_live: bool = False


@dataclass
class EventsCheck:
    is_real: bool
    reasons: list[str] = field(default_factory=list)
    event_count: int = 0
    has_goals: bool = False
    has_cards: bool = False
    has_substitutions: bool = False


def check_fixture(fixture: dict[str, Any] | None) -> FixtureCheck:
    if not isinstance(fixture, dict) or not fixture:
        return FixtureCheck(
            is_real=False,
            reasons=["FIXTURE_NULL"],
            fields_missing=["fixture", "teams", "goals", "league"],
        )

    result = FixtureCheck(is_real=True)
    not_started = str(dig(fixture, "fixture", "status", "short") or "").upper() == "NS"

    def _mark(present: bool, name: str, reason: str, *, exempt: bool = False) -> None:
        if present:
            result.fields_present.append(name)
            return
        result.fields_missing.append(name)
        if not exempt:
            result.reasons.append(reason)

    _mark(bool(safe_int(dig(fixture, "fixture", "id"))), "fixture.id", "MISSING_FIXTURE_ID")
    _mark(
        dig(fixture, "fixture", "status", "elapsed") is not None,
        "fixture.status.elapsed",
        "MISSING_ELAPSED_TIME",
        exempt=not_started,
    )
    _mark(
        bool(safe_int(dig(fixture, "teams", "home", "id"))) and bool(safe_int(dig(fixture, "teams", "away", "id"))),
        "teams",
        "MISSING_TEAM_IDS",
    )
    _mark(
        dig(fixture, "goals", "home") is not None and dig(fixture, "goals", "away") is not None,
        "goals",
        "MISSING_GOALS",
        exempt=not_started,
    )
    _mark(bool(safe_int(dig(fixture, "league", "id"))), "league.id", "MISSING_LEAGUE_ID")

    result.is_real = not result.reasons
    return result


def locate_team_stats(
    statistics: Sequence[Any],
    team_id: int | None,
    position: int,
) -> dict[str, Any] | None:
    """Find a team's statistics entry by team id, or by list position without an id."""
    if team_id is not None:
        for entry in statistics:
            if isinstance(entry, dict) and safe_int(dig(entry, "team", "id")) == team_id:
                return entry
        return None
    if position < len(statistics) and isinstance(statistics[position], dict):
        return statistics[position]
    return None


def _reported_types(entry: dict[str, Any] | None) -> set[StatType]:
    if not entry:
        return set()
    reported: set[StatType] = set()
    for row in entry.get("statistics") or []:
        if not isinstance(row, dict) or row.get("value") is None:
            continue
        stat_type = stat_type_for_label(row.get("type"))
        if stat_type is not None:
            reported.add(stat_type)
    return reported


def check_statistics(
    statistics: Sequence[Any] | None,
    home_team_id: int | None = None,
    away_team_id: int | None = None,
) -> StatisticsCheck:
    if not statistics:
        return StatisticsCheck(
            is_real=False,
            reasons=["STATS_EMPTY"],
            critical_missing=list(CRITICAL_STATS),
        )

    home = locate_team_stats(statistics, home_team_id, 0)
    away = locate_team_stats(statistics, away_team_id, 1)
    reasons: list[str] = []
    if home is None:
        reasons.append("MISSING_HOME_STATS")
    if away is None:
        reasons.append("MISSING_AWAY_STATS")

    reported = _reported_types(home) | _reported_types(away)
    present = [stat for stat in CRITICAL_STATS if stat in reported]
    missing = [stat for stat in CRITICAL_STATS if stat not in reported]
    is_real = home is not None and away is not None and len(missing) <= len(CRITICAL_STATS) / 2

    if not is_real:
        reasons.extend(f"MISSING_{_CRITICAL_LABELS[stat]}" for stat in missing)

    return StatisticsCheck(
        is_real=is_real,
        reasons=reasons,
        home_stats_count=len((home or {}).get("statistics") or []),
        away_stats_count=len((away or {}).get("statistics") or []),
        critical_present=present,
        critical_missing=missing,
    )


def _market_priced(market: RawMarket | None) -> bool:
    if market is None:
        return False
    return any(not value.suspended and to_price(value.odd) is not None for value in market.values)


def check_odds(odds: Any) -> OddsCheck:
    payload = classify_odds_payload(odds)
    if payload is None:
        return OddsCheck(is_real=False, reasons=["ODDS_EMPTY"])

    if isinstance(payload, LiveOddsPayload):
        markets = payload.markets
        check = OddsCheck(
            is_real=False,
            has_1x2=_market_priced(find_market(markets, LIVE_FULLTIME_RESULT)),
            has_over_under=_market_priced(find_live_over_under(markets)),
            has_asian_handicap=_market_priced(find_market(markets, LIVE_ASIAN_HANDICAP)),
            bookmaker=LIVE_BOOKMAKER_NAME,
            is_live=True,
        )
    else:
        bookmaker = select_bookmaker(payload.bookmakers)
        bets = bookmaker.bets if bookmaker else []
        check = OddsCheck(
            is_real=False,
            has_1x2=_market_priced(find_market(bets, PREMATCH_MATCH_WINNER)),
            has_over_under=_market_priced(find_market(bets, PREMATCH_OVER_UNDER)),
            has_asian_handicap=_market_priced(find_market(bets, PREMATCH_ASIAN_HANDICAP)),
            bookmaker=bookmaker.name if bookmaker else None,
        )

    check.is_real = check.has_1x2 or check.has_over_under or check.has_asian_handicap
    if not check.is_real:
        check.reasons = ["NO_ODDS_DATA", "MISSING_1X2", "MISSING_OVER_UNDER", "MISSING_ASIAN_HANDICAP"]
    return check


def check_events(events: Sequence[Any] | None) -> EventsCheck:
    if events is None:
        return EventsCheck(is_real=False, reasons=["EVENTS_NULL"])
    types = {str(event.get("type") or "").lower() for event in events if isinstance(event, dict)}
    return EventsCheck(
        is_real=True,
        event_count=len(events),
        has_goals="goal" in types,
        has_cards="card" in types,
        has_substitutions="subst" in types,
    )


def _tier(fixture_real: bool, stats_real: bool, odds_real: bool) -> DataQuality:
    if not fixture_real:
        return DataQuality.INVALID
    if stats_real and odds_real:
        return DataQuality.REAL
    return DataQuality.PARTIAL


def validate_all(
    fixture: dict[str, Any] | None,
    statistics: Sequence[Any] | None,
    events: Sequence[Any] | None,
    odds: Any,
    *,
    validated_at: datetime | None = None,
) -> ValidationResult:
    """Run all four checks on one captured payload bundle.

    Events do not take part in the tier. When the tier is REAL an events
    failure is reported under ``warnings`` so a REAL verdict never carries
    invalid reasons.
    """
    fixture_check = check_fixture(fixture)
    stats_check = check_statistics(
        statistics,
        safe_int(dig(fixture, "teams", "home", "id")),
        safe_int(dig(fixture, "teams", "away", "id")),
    )
    odds_check = check_odds(odds)
    events_check = check_events(events)

    quality = _tier(fixture_check.is_real, stats_check.is_real, odds_check.is_real)

    reasons: list[str] = []
    reasons.extend(f"FIXTURE:{reason}" for reason in fixture_check.reasons)
    reasons.extend(f"STATS:{reason}" for reason in stats_check.reasons)
    reasons.extend(f"ODDS:{reason}" for reason in odds_check.reasons)
    event_reasons = [f"EVENTS:{reason}" for reason in events_check.reasons]
    warnings: list[str] = []
    if quality == DataQuality.REAL:
        warnings.extend(event_reasons)
    else:
        reasons.extend(event_reasons)

    result = ValidationResult(
        fixture_id=safe_int(dig(fixture, "fixture", "id")) or 0,
        fixtures_real=fixture_check.is_real,
        stats_real=stats_check.is_real,
        odds_real=odds_check.is_real,
        events_real=events_check.is_real,
        data_quality=quality,
        invalid_reasons=tuple(reasons),
        warnings=tuple(warnings),
        validated_at=validated_at or utcnow(),
    )
    if quality == DataQuality.INVALID:
        logger.warning("Fixture %s failed validation: %s", result.fixture_id, ", ".join(reasons))
    else:
        logger.debug("Fixture %s validated as %s", result.fixture_id, quality.value)
    return result
