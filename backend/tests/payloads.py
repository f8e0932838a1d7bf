"""
backend/tests/payloads.py

Purpose:
    Inline API-Football payload builders and canonical-match factories shared
    by the pipeline tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from goalradar.models.match import (
    CanonicalMatch,
    EventSummary,
    HalfIntensity,
    MatchStatistics,
    MatchStatus,
    SidePair,
    TeamInfo,
)
from goalradar.models.odds import FetchStatus, OddsSnapshot
from goalradar.models.validation import ValidationResult

CAPTURED_AT = datetime(2026, 3, 14, 20, 15, tzinfo=timezone.utc)
HOME_ID = 40
AWAY_ID = 50

DEFAULT_HOME_STATS: dict[str, Any] = {
    "Total Shots": 12,
    "Shots on Goal": 5,
    "Ball Possession": "55%",
    "Corner Kicks": 6,
    "expected_goals": "1.40",
    "Fouls": 9,
}
DEFAULT_AWAY_STATS: dict[str, Any] = {
    "Total Shots": 8,
    "Shots on Goal": 3,
    "Ball Possession": "45%",
    "Corner Kicks": 3,
    "expected_goals": "0.90",
    "Fouls": 11,
}


def fixture_payload(
    fixture_id: int = 1001,
    *,
    minute: int | None = 80,
    home_goals: int | None = 1,
    away_goals: int | None = 1,
    status: str = "2H",
    league_id: int = 39,
) -> dict[str, Any]:
    return {
        "fixture": {
            "id": fixture_id,
            "date": "2026-03-14T18:45:00+00:00",
            "status": {"short": status, "elapsed": minute},
        },
        "league": {"id": league_id, "name": "Premier League"},
        "teams": {
            "home": {"id": HOME_ID, "name": "Arsenal"},
            "away": {"id": AWAY_ID, "name": "Chelsea"},
        },
        "goals": {"home": home_goals, "away": away_goals},
    }


def team_stats_entry(team_id: int, values: dict[str, Any]) -> dict[str, Any]:
    return {
        "team": {"id": team_id},
        "statistics": [{"type": label, "value": value} for label, value in values.items()],
    }


def statistics_payload(
    home: dict[str, Any] | None = None,
    away: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    return [
        team_stats_entry(HOME_ID, DEFAULT_HOME_STATS if home is None else home),
        team_stats_entry(AWAY_ID, DEFAULT_AWAY_STATS if away is None else away),
    ]


def event(
    minute: int,
    team_id: int,
    type_: str,
    detail: str,
    *,
    player: str = "Player",
    position: str | None = None,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "time": {"elapsed": minute, "extra": None},
        "team": {"id": team_id},
        "player": {"name": player},
        "assist": {"name": None},
        "type": type_,
        "detail": detail,
    }
    if position:
        row["player"]["pos"] = position
    return row


def live_value(value: str, odd: str, handicap: str | None = None, *, main: bool = False, suspended: bool = False):
    return {"value": value, "odd": odd, "handicap": handicap, "main": main, "suspended": suspended}


def live_markets() -> list[dict[str, Any]]:
    return [
        {
            "id": 59,
            "name": "Fulltime Result",
            "values": [
                live_value("Home", "2.10"),
                live_value("Draw", "3.20"),
                live_value("Away", "3.50"),
            ],
        },
        {
            "id": 36,
            "name": "Over/Under Line",
            "values": [
                live_value("Over", "2.80", "3.5"),
                live_value("Under", "1.40", "3.5"),
                live_value("Over", "1.90", "2.5", main=True),
                live_value("Under", "1.95", "2.5", main=True),
            ],
        },
        {
            "id": 33,
            "name": "Asian Handicap",
            "values": [
                live_value("Home", "1.95", "-0.5", main=True),
                live_value("Away", "1.90", "0.5", main=True),
            ],
        },
    ]


def live_odds_payload(
    fixture_id: int = 1001,
    markets: list[dict[str, Any]] | None = None,
    *,
    elapsed: int | None = 80,
) -> dict[str, Any]:
    return {
        "fixture": {"id": fixture_id, "status": {"elapsed": elapsed}},
        "odds": live_markets() if markets is None else markets,
    }


def prematch_bookmaker(bookmaker_id: int, name: str, *, home_line: str = "Home -1.5") -> dict[str, Any]:
    return {
        "id": bookmaker_id,
        "name": name,
        "bets": [
            {
                "id": 1,
                "name": "Match Winner",
                "values": [
                    {"value": "Home", "odd": "1.50"},
                    {"value": "Draw", "odd": "4.20"},
                    {"value": "Away", "odd": "6.00"},
                ],
            },
            {
                "id": 5,
                "name": "Goals Over/Under",
                "values": [
                    {"value": "Over 2.5", "odd": "1.80"},
                    {"value": "Under 2.5", "odd": "2.00"},
                    {"value": "Over 3.5", "odd": "2.90"},
                ],
            },
            {
                "id": 8,
                "name": "Asian Handicap",
                "values": [
                    {"value": home_line, "odd": "2.10"},
                    {"value": "Away +1.5", "odd": "1.75"},
                ],
            },
        ],
    }


def prematch_odds_payload(fixture_id: int = 1001, bookmakers: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "fixture": {"id": fixture_id},
        "bookmakers": [prematch_bookmaker(8, "Bet365")] if bookmakers is None else bookmakers,
    }


# ---------------------------------------------------------------------------
# Canonical factories
# ---------------------------------------------------------------------------


def make_stats(
    *,
    shots: tuple[float | None, float | None] = (12, 8),
    on_target: tuple[float | None, float | None] = (5, 3),
    possession: tuple[float | None, float | None] = (55, 45),
    corners: tuple[float | None, float | None] = (6, 3),
    xg: tuple[float | None, float | None] = (1.4, 0.9),
    fouls: tuple[float | None, float | None] = (9, 11),
    dangerous: tuple[float | None, float | None] = (None, None),
    authoritative: bool = True,
    recent_shots: int | None = 2,
    halves: tuple[int, int] | None = None,
) -> MatchStatistics:
    return MatchStatistics(
        shots=SidePair(home=shots[0], away=shots[1]),
        shots_on_target=SidePair(home=on_target[0], away=on_target[1]),
        possession=SidePair(home=possession[0], away=possession[1]),
        corners=SidePair(home=corners[0], away=corners[1]),
        expected_goals=SidePair(home=xg[0], away=xg[1]),
        fouls=SidePair(home=fouls[0], away=fouls[1]),
        dangerous_attacks=SidePair(home=dangerous[0], away=dangerous[1]),
        authoritative=authoritative,
        recent_shots_20min=recent_shots,
        half_intensity=HalfIntensity(first_half=halves[0], second_half=halves[1]) if halves else None,
    )


def success_snapshot(fixture_id: int = 1, **prices: Any) -> OddsSnapshot:
    return OddsSnapshot(
        fixture_id=fixture_id,
        captured_at=CAPTURED_AT,
        bookmaker="API-Football Live",
        raw_available=True,
        fetch_status=FetchStatus.SUCCESS,
        **prices,
    )


def make_match(
    fixture_id: int = 1,
    *,
    minute: int = 80,
    home_score: int = 1,
    away_score: int = 1,
    statistics: MatchStatistics | None = None,
    no_statistics: bool = False,
    home_handicap: float | None = None,
    summary: EventSummary | None = None,
    odds: OddsSnapshot | None = None,
    status: MatchStatus = MatchStatus.LIVE,
    unscoreable: bool = False,
    reason: str | None = None,
    events: tuple = (),
    tags: tuple[str, ...] = (),
) -> CanonicalMatch:
    return CanonicalMatch(
        fixture_id=fixture_id,
        league_id=39,
        minute=minute,
        status=status,
        home=TeamInfo(id=HOME_ID, name="Arsenal", score=home_score),
        away=TeamInfo(id=AWAY_ID, name="Chelsea", score=away_score),
        statistics=None if no_statistics else (statistics or make_stats()),
        events=events,
        event_summary=summary or EventSummary(),
        odds=odds or OddsSnapshot.empty(fixture_id, captured_at=CAPTURED_AT),
        home_handicap=home_handicap,
        validation=ValidationResult(fixture_id=fixture_id),
        unscoreable=unscoreable,
        no_stats_reason=reason,
        scenario_tags=tags,
    )
