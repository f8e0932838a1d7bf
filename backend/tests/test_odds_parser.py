"""
backend/tests/test_odds_parser.py

Purpose:
    Live and pre-match odds parsing into OddsSnapshot: main-line inference,
    suspended/empty markets, bookmaker preference, malformed payloads and the
    display block trends.
"""

from __future__ import annotations

import logging

from goalradar.models.odds import FetchStatus, LiveOddsPayload, OULine, PrematchOddsPayload
from goalradar.services.odds_parser_service import (
    LIVE_BOOKMAKER_NAME,
    classify_odds_payload,
    parse_odds,
    snapshot_to_display_odds,
)
from goalradar.utils.odds_utils import pick_main_line

from payloads import (
    CAPTURED_AT,
    live_markets,
    live_odds_payload,
    live_value,
    prematch_bookmaker,
    prematch_odds_payload,
    success_snapshot,
)

_PRICE_FIELDS = (
    "home_win",
    "draw",
    "away_win",
    "over_1_5",
    "over_2_5",
    "over_3_5",
    "main_ou_line",
    "main_ou_over",
    "ah_line",
    "ah_home",
)


def test_parse_is_idempotent_for_same_payload():
    payload = live_odds_payload()
    first = parse_odds(payload, captured_at=CAPTURED_AT)
    second = parse_odds(payload, captured_at=CAPTURED_AT)
    assert first == second


def test_live_payload_with_flagged_main_line():
    snapshot = parse_odds(live_odds_payload(), captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.SUCCESS
    assert snapshot.raw_available is True
    assert snapshot.is_live is True
    assert snapshot.bookmaker == LIVE_BOOKMAKER_NAME
    assert snapshot.fixture_id == 1001
    assert snapshot.minute == 80
    assert (snapshot.home_win, snapshot.draw, snapshot.away_win) == (2.10, 3.20, 3.50)
    assert snapshot.main_ou_line == 2.5
    assert (snapshot.main_ou_over, snapshot.main_ou_under) == (1.90, 1.95)
    assert snapshot.over_2_5 == 1.90
    assert snapshot.over_3_5 == 2.80
    assert snapshot.over_1_5 is None
    assert [line.line for line in snapshot.all_ou_lines] == [2.5, 3.5]
    assert snapshot.all_ou_lines[0].is_main is True
    assert (snapshot.ah_line, snapshot.ah_home, snapshot.ah_away) == (-0.5, 1.95, 1.90)


def test_live_main_line_inferred_from_priority_when_unflagged():
    markets = [
        {
            "id": 36,
            "values": [
                live_value("Over", "1.85", "3.0"),
                live_value("Under", "1.95", "3.0"),
                live_value("Over", "1.70", "2.25"),
                live_value("Under", "2.10", "2.25"),
                live_value("Over", "1.20", "1.5"),
            ],
        }
    ]
    snapshot = parse_odds(live_odds_payload(markets=markets), captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.SUCCESS
    assert snapshot.main_ou_line == 2.25
    assert snapshot.main_ou_over == 1.70
    assert [line.line for line in snapshot.all_ou_lines] == [1.5, 2.25, 3.0]
    assert [line.is_main for line in snapshot.all_ou_lines] == [False, True, False]
    assert snapshot.over_1_5 == 1.20
    assert snapshot.under_1_5 is None
    assert snapshot.ah_line is None


def test_live_total_goals_market_used_when_over_under_absent():
    markets = [
        {
            "id": 25,
            "values": [
                live_value("Over", "2.00", "2.5", main=True),
                live_value("Under", "1.80", "2.5", main=True),
            ],
        }
    ]
    snapshot = parse_odds(live_odds_payload(markets=markets), captured_at=CAPTURED_AT)
    assert snapshot.main_ou_line == 2.5
    assert snapshot.main_ou_over == 2.00


def test_live_empty_market_list_is_empty_snapshot():
    snapshot = parse_odds(live_odds_payload(markets=[]), captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.EMPTY
    assert snapshot.raw_available is False
    assert snapshot.all_ou_lines == ()
    for name in _PRICE_FIELDS:
        assert getattr(snapshot, name) is None


def test_live_all_suspended_outcomes_is_empty_snapshot():
    markets = [
        {"id": 59, "values": [live_value("Home", "2.10", suspended=True), live_value("Away", "3.5", suspended=True)]},
        {
            "id": 36,
            "values": [
                live_value("Over", "1.90", "2.5", main=True, suspended=True),
                live_value("Under", "1.95", "2.5", main=True, suspended=True),
            ],
        },
    ]
    snapshot = parse_odds(live_odds_payload(markets=markets), captured_at=CAPTURED_AT)
    assert snapshot.fetch_status == FetchStatus.EMPTY
    assert snapshot.home_win is None


def test_prematch_prefers_known_bookmaker():
    payload = prematch_odds_payload(
        bookmakers=[
            prematch_bookmaker(99, "Local Book", home_line="Home -2.0"),
            prematch_bookmaker(6, "Bwin", home_line="Home -0.75"),
        ]
    )
    snapshot = parse_odds(payload, captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.SUCCESS
    assert snapshot.is_live is False
    assert snapshot.bookmaker == "Bwin"
    assert snapshot.ah_line == -0.75
    assert (snapshot.ah_home, snapshot.ah_away) == (2.10, 1.75)
    assert snapshot.home_win == 1.50
    assert snapshot.main_ou_line == 2.5
    assert snapshot.over_3_5 == 2.90
    assert snapshot.under_3_5 is None


def test_prematch_without_bets_is_empty():
    payload = prematch_odds_payload(bookmakers=[{"id": 8, "name": "Bet365", "bets": []}])
    snapshot = parse_odds(payload, captured_at=CAPTURED_AT)
    assert snapshot.fetch_status == FetchStatus.EMPTY
    assert snapshot.is_live is False


def test_missing_or_enveloped_empty_payload_is_empty():
    assert parse_odds(None, fixture_id=5, captured_at=CAPTURED_AT).fetch_status == FetchStatus.EMPTY
    assert parse_odds(None, fixture_id=5, captured_at=CAPTURED_AT).fixture_id == 5
    assert parse_odds({"response": []}, fixture_id=5).fetch_status == FetchStatus.EMPTY


def test_malformed_market_is_logged_and_empty(caplog):
    caplog.set_level(logging.WARNING, logger="goalradar.odds_parser")
    payload = {"fixture": {"id": 7}, "odds": [{"id": "not-a-number", "values": []}]}

    snapshot = parse_odds(payload, fixture_id=7, captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.EMPTY
    assert any("Malformed odds payload" in record.message for record in caplog.records)


def test_classify_resolves_shape_once():
    assert isinstance(classify_odds_payload(live_odds_payload()), LiveOddsPayload)
    assert isinstance(classify_odds_payload({"response": [prematch_odds_payload()]}), PrematchOddsPayload)
    assert classify_odds_payload({"fixture": {"id": 1}}) is None


def test_pick_main_line_rules():
    lines = [
        OULine(line=1.5, over=1.2, under=4.0),
        OULine(line=2.5, over=1.9, under=None),
        OULine(line=2.0, over=1.6, under=2.3),
    ]
    assert pick_main_line(lines).line == 2.0
    assert pick_main_line(lines, priority=(1.5,)).line == 1.5
    assert pick_main_line(lines, priority=(2.5,)) is None

    flagged = lines + [OULine(line=3.5, over=2.8, under=1.4, is_main=True)]
    assert pick_main_line(flagged).line == 3.5


def test_display_odds_trends_against_previous_snapshot():
    current = parse_odds(live_odds_payload(), captured_at=CAPTURED_AT)
    previous = success_snapshot(
        1001,
        main_ou_line=2.5,
        main_ou_over=2.05,
        main_ou_under=1.80,
        ah_line=-0.5,
        ah_home=1.96,
        ah_away=1.90,
    )

    display = snapshot_to_display_odds(current, previous)

    assert display.source == "API-Football"
    assert display.over_under.total == 2.5
    assert display.over_under.over_trend == "down"
    assert display.over_under.under_trend == "up"
    assert display.handicap.home_trend == "stable"
    assert display.handicap.value == -0.5
    assert len(display.over_under.all_lines) == 2
    assert display.match_winner.draw == 3.20


def test_display_odds_keeps_nulls_without_data():
    display = snapshot_to_display_odds(parse_odds(None, fixture_id=3, captured_at=CAPTURED_AT))
    assert display.over_under.total is None
    assert display.match_winner.home is None
    assert display.fetch_status == FetchStatus.EMPTY


def _with_handicap(values: list[dict]) -> list[dict]:
    markets = live_markets()
    markets[2]["values"] = values
    return markets


def test_live_handicap_takes_first_open_pair_when_unflagged():
    markets = _with_handicap(
        [
            live_value("Home", "1.85", "-0.25"),
            live_value("Away", "2.00", "0.25"),
            live_value("Home", "2.40", "-1.0"),
            live_value("Away", "1.55", "1.0"),
        ]
    )
    snapshot = parse_odds(live_odds_payload(markets=markets), captured_at=CAPTURED_AT)

    assert snapshot.ah_line == -0.25
    assert (snapshot.ah_home, snapshot.ah_away) == (1.85, 2.00)


def test_live_handicap_falls_back_when_main_pair_is_suspended():
    markets = _with_handicap(
        [
            live_value("Home", "1.95", "-0.5", main=True, suspended=True),
            live_value("Away", "1.90", "0.5", main=True, suspended=True),
            live_value("Home", "2.20", "-0.75"),
            live_value("Away", "1.70", "0.75"),
        ]
    )
    snapshot = parse_odds(live_odds_payload(markets=markets), captured_at=CAPTURED_AT)

    assert snapshot.ah_line == -0.75
    assert (snapshot.ah_home, snapshot.ah_away) == (2.20, 1.70)


def test_prematch_handicap_without_away_outcome_is_skipped():
    bookmaker = prematch_bookmaker(8, "Bet365")
    bookmaker["bets"][2]["values"] = [
        {"value": "Home -1.5", "odd": "2.10"},
        {"value": "Home -1.0", "odd": "1.80"},
    ]
    snapshot = parse_odds(prematch_odds_payload(bookmakers=[bookmaker]), captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.SUCCESS
    assert (snapshot.ah_line, snapshot.ah_home, snapshot.ah_away) == (None, None, None)
    assert snapshot.home_win == 1.50


def test_non_finite_elapsed_does_not_raise():
    payload = {"fixture": {"id": 1, "status": {"elapsed": float("nan")}}, "odds": []}

    snapshot = parse_odds(payload, captured_at=CAPTURED_AT)

    assert snapshot.fetch_status == FetchStatus.EMPTY
    assert snapshot.minute is None


def test_infinite_prices_are_not_prices():
    markets = live_markets()
    markets[0]["values"][0] = live_value("Home", "inf")
    snapshot = parse_odds(live_odds_payload(markets=markets), captured_at=CAPTURED_AT)

    assert snapshot.home_win is None
    assert snapshot.draw == 3.20
