"""
backend/goalradar/services/odds_parser_service.py

Purpose:
    Reconcile the two API-Football odds encodings into one canonical
    OddsSnapshot:
      - live (in-play): flat ``odds`` market list, outcomes carry an optional
        ``handicap`` line plus ``main`` / ``suspended`` flags
      - pre-match: ``bookmakers`` -> ``bets`` -> ``values`` with text labels
        such as "Over 2.5" or "Home -1.5"
    The payload shape is resolved exactly once (classify_odds_payload) into a
    tagged union; every later step works on typed models.

    parse_odds never raises. Absent or malformed input yields an EMPTY
    snapshot with every price null.

Dependencies:
    - pydantic
    - goalradar.models.odds
    - goalradar.utils.odds_utils
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from goalradar.config import settings
from goalradar.models.odds import (
    DisplayOdds,
    FetchStatus,
    HandicapDisplay,
    LiveOddsPayload,
    MatchWinnerDisplay,
    OddsSnapshot,
    OULine,
    OverUnderDisplay,
    PrematchOddsPayload,
    RawBookmaker,
    RawMarket,
    RawOddsPayload,
    RawOddValue,
    Trend,
)
from goalradar.utils import dig, safe_int, utcnow
from goalradar.utils.odds_utils import (
    FIXED_OU_LINES,
    outcome_side,
    parse_signed_line,
    pick_main_line,
    to_line,
    to_price,
)

logger = logging.getLogger("goalradar.odds_parser")

# Live market ids
LIVE_OVER_UNDER = 36
LIVE_MATCH_GOALS = 25  # fallback when 36 is absent
LIVE_ASIAN_HANDICAP = 33
LIVE_FULLTIME_RESULT = 59

# Pre-match bet ids
PREMATCH_MATCH_WINNER = 1
PREMATCH_OVER_UNDER = 5
PREMATCH_ASIAN_HANDICAP = 8

# Bet365, Bwin, 1xBet, Unibet, Pinnacle
PREFERRED_BOOKMAKERS: tuple[int, ...] = (8, 6, 11, 3, 1)

LIVE_BOOKMAKER_NAME = "API-Football Live"


# ---------------------------------------------------------------------------
# Shape detection
# ---------------------------------------------------------------------------


def _unwrap(raw: Any) -> Any:
    if isinstance(raw, dict) and isinstance(raw.get("response"), list):
        raw = raw["response"]
    if isinstance(raw, list):
        return raw[0] if raw else None
    return raw


def classify_odds_payload(raw: Any) -> RawOddsPayload | None:
    """Resolve a raw odds record into LiveOddsPayload / PrematchOddsPayload.

    Returns None when the record is absent or has neither shape.
    """
    record = _unwrap(raw)
    if not isinstance(record, dict):
        return None

    fixture_id = safe_int(dig(record, "fixture", "id"))
    odds = record.get("odds")
    bookmakers = record.get("bookmakers")
    try:
        if isinstance(odds, list) and odds:
            return LiveOddsPayload(
                fixture_id=fixture_id,
                elapsed=safe_int(dig(record, "fixture", "status", "elapsed")),
                markets=odds,
            )
        if isinstance(bookmakers, list):
            return PrematchOddsPayload(fixture_id=fixture_id, bookmakers=bookmakers)
        if isinstance(odds, list):
            return LiveOddsPayload(
                fixture_id=fixture_id,
                elapsed=safe_int(dig(record, "fixture", "status", "elapsed")),
                markets=[],
            )
    except ValidationError as exc:
        logger.warning("Malformed odds payload for fixture %s: %s", fixture_id, exc.errors()[:3])
        return None
    return None


def find_market(markets: Sequence[RawMarket], market_id: int) -> RawMarket | None:
    for market in markets:
        if market.id == market_id:
            return market
    return None


def find_live_over_under(markets: Sequence[RawMarket]) -> RawMarket | None:
    return find_market(markets, LIVE_OVER_UNDER) or find_market(markets, LIVE_MATCH_GOALS)


def select_bookmaker(bookmakers: Sequence[RawBookmaker]) -> RawBookmaker | None:
    """Preferred bookmaker with bets, else the first bookmaker with any bets."""
    for preferred_id in PREFERRED_BOOKMAKERS:
        for bookmaker in bookmakers:
            if bookmaker.id == preferred_id and bookmaker.bets:
                return bookmaker
    for bookmaker in bookmakers:
        if bookmaker.bets:
            return bookmaker
    return None


# ---------------------------------------------------------------------------
# Live path
# ---------------------------------------------------------------------------


def _collect_live_lines(market: RawMarket | None) -> list[OULine]:
    if market is None:
        return []
    merged: dict[float, dict[str, Any]] = {}
    for value in market.values:
        if value.suspended:
            continue
        line = to_line(value.handicap)
        price = to_price(value.odd)
        if line is None or price is None:
            continue
        slot = merged.setdefault(line, {"over": None, "under": None, "is_main": False})
        label = value.value.strip().lower()
        if label == "over":
            slot["over"] = price
        elif label == "under":
            slot["under"] = price
        if value.main:
            slot["is_main"] = True
    return [
        OULine(line=line, **slot)
        for line, slot in sorted(merged.items())
        if slot["over"] is not None or slot["under"] is not None
    ]


def _with_main_marked(lines: list[OULine]) -> tuple[list[OULine], OULine | None]:
    main = pick_main_line(lines)
    if main is None or main.is_main:
        return lines, main
    marked = main.model_copy(update={"is_main": True})
    return [marked if line is main else line for line in lines], marked


def _fixed_line_prices(lines: Sequence[OULine]) -> dict[str, float | None]:
    by_value = {line.line: line for line in lines}
    prices: dict[str, float | None] = {}
    for fixed in FIXED_OU_LINES:
        suffix = str(fixed).replace(".", "_")
        entry = by_value.get(fixed)
        prices[f"over_{suffix}"] = entry.over if entry else None
        prices[f"under_{suffix}"] = entry.under if entry else None
    return prices


def _side_value(values: Sequence[RawOddValue], side: str) -> RawOddValue | None:
    for value in values:
        if outcome_side(value.value) == side:
            return value
    return None


def _parse_live_handicap(market: RawMarket | None) -> dict[str, float | None]:
    empty = {"ah_line": None, "ah_home": None, "ah_away": None}
    if market is None:
        return empty
    open_values = [value for value in market.values if not value.suspended]
    pair = [value for value in open_values if value.main]
    if len(pair) < 2:
        pair = open_values[:2]
    home = _side_value(pair, "home")
    away = _side_value(pair, "away")
    if home is None or away is None:
        return empty
    line = to_line(home.handicap)
    if line is None:
        return empty
    return {"ah_line": line, "ah_home": to_price(home.odd), "ah_away": to_price(away.odd)}


def _parse_live_result(market: RawMarket | None) -> dict[str, float | None]:
    prices: dict[str, float | None] = {"home_win": None, "draw": None, "away_win": None}
    if market is None:
        return prices
    keys = {"home": "home_win", "draw": "draw", "away": "away_win"}
    for value in market.values:
        side = outcome_side(value.value)
        if value.suspended or side is None or prices[keys[side]] is not None:
            continue
        prices[keys[side]] = to_price(value.odd)
    return prices


def _parse_live(
    payload: LiveOddsPayload,
    fixture_id: int,
    minute: int | None,
    captured_at: datetime,
) -> OddsSnapshot:
    markets = payload.markets
    ou_market = find_live_over_under(markets)
    lines, main = _with_main_marked(_collect_live_lines(ou_market))
    logger.debug(
        "Live odds fixture=%s markets=%s ou_market=%s main_line=%s",
        fixture_id,
        [market.id for market in markets],
        ou_market.id if ou_market else None,
        main.line if main else None,
    )
    fields: dict[str, Any] = {
        **_parse_live_result(find_market(markets, LIVE_FULLTIME_RESULT)),
        **_fixed_line_prices(lines),
        **_parse_live_handicap(find_market(markets, LIVE_ASIAN_HANDICAP)),
        "main_ou_line": main.line if main else None,
        "main_ou_over": main.over if main else None,
        "main_ou_under": main.under if main else None,
        "all_ou_lines": tuple(lines),
    }
    return _finalize(
        fields,
        fixture_id=fixture_id,
        captured_at=captured_at,
        is_live=True,
        bookmaker=LIVE_BOOKMAKER_NAME,
        minute=payload.elapsed if payload.elapsed is not None else minute,
    )


# ---------------------------------------------------------------------------
# Pre-match path
# ---------------------------------------------------------------------------


def _find_price(values: Sequence[RawOddValue], label: str) -> float | None:
    wanted = label.lower()
    for value in values:
        if value.value.strip().lower() == wanted:
            return to_price(value.odd)
    return None


def _find_bet(bookmaker: RawBookmaker, bet_id: int) -> RawMarket | None:
    return find_market(bookmaker.bets, bet_id)


def _parse_prematch_handicap(bet: RawMarket | None) -> dict[str, float | None]:
    empty = {"ah_line": None, "ah_home": None, "ah_away": None}
    if bet is None or len(bet.values) < 2:
        return empty
    home = next((value for value in bet.values if "home" in value.value.lower()), None)
    away = next((value for value in bet.values if "away" in value.value.lower()), None)
    if home is None or away is None:
        return empty
    line = parse_signed_line(home.value)
    if line is None:
        return empty
    return {"ah_line": line, "ah_home": to_price(home.odd), "ah_away": to_price(away.odd)}


def _parse_prematch(
    payload: PrematchOddsPayload,
    fixture_id: int,
    minute: int | None,
    captured_at: datetime,
) -> OddsSnapshot:
    bookmaker = select_bookmaker(payload.bookmakers)
    if bookmaker is None:
        logger.debug("Pre-match odds fixture=%s has no bookmaker with bets", fixture_id)
        return OddsSnapshot.empty(fixture_id, minute=minute, captured_at=captured_at, is_live=False)

    winner = _find_bet(bookmaker, PREMATCH_MATCH_WINNER)
    winner_values = winner.values if winner else []
    totals = _find_bet(bookmaker, PREMATCH_OVER_UNDER)
    total_values = totals.values if totals else []

    lines: list[OULine] = []
    for fixed in FIXED_OU_LINES:
        over = _find_price(total_values, f"Over {fixed}")
        under = _find_price(total_values, f"Under {fixed}")
        if over is not None or under is not None:
            lines.append(OULine(line=fixed, over=over, under=under))
    lines, main = _with_main_marked(lines)

    fields: dict[str, Any] = {
        "home_win": _find_price(winner_values, "Home"),
        "draw": _find_price(winner_values, "Draw"),
        "away_win": _find_price(winner_values, "Away"),
        **_fixed_line_prices(lines),
        **_parse_prematch_handicap(_find_bet(bookmaker, PREMATCH_ASIAN_HANDICAP)),
        "main_ou_line": main.line if main else None,
        "main_ou_over": main.over if main else None,
        "main_ou_under": main.under if main else None,
        "all_ou_lines": tuple(lines),
    }
    logger.debug("Pre-match odds fixture=%s bookmaker=%s", fixture_id, bookmaker.name)
    return _finalize(
        fields,
        fixture_id=fixture_id,
        captured_at=captured_at,
        is_live=False,
        bookmaker=bookmaker.name or "N/A",
        minute=minute,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _finalize(
    fields: dict[str, Any],
    *,
    fixture_id: int,
    captured_at: datetime,
    is_live: bool,
    bookmaker: str,
    minute: int | None,
) -> OddsSnapshot:
    has_data = (
        fields.get("home_win") is not None
        or fields.get("main_ou_line") is not None
        or fields.get("ah_line") is not None
    )
    if not has_data:
        return OddsSnapshot.empty(fixture_id, minute=minute, captured_at=captured_at, is_live=is_live)
    return OddsSnapshot(
        fixture_id=fixture_id,
        captured_at=captured_at,
        is_live=is_live,
        bookmaker=bookmaker,
        minute=minute,
        raw_available=True,
        fetch_status=FetchStatus.SUCCESS,
        **fields,
    )


def parse_odds(
    raw: Any,
    *,
    minute: int | None = None,
    captured_at: datetime | None = None,
    fixture_id: int | None = None,
) -> OddsSnapshot:
    """Parse one raw odds record (either shape) into an OddsSnapshot.

    ``minute`` is a hint used when the payload carries no elapsed time.
    ``fixture_id`` is used when the payload does not carry one.
    """
    captured = captured_at or utcnow()
    payload = classify_odds_payload(raw)
    if payload is None:
        logger.warning("No usable odds payload for fixture %s", fixture_id)
        return OddsSnapshot.empty(fixture_id or 0, minute=minute, captured_at=captured)

    resolved_id = payload.fixture_id or fixture_id
    if not resolved_id:
        logger.warning("Odds payload without fixture id, treating as empty")
        return OddsSnapshot.empty(0, minute=minute, captured_at=captured)

    if isinstance(payload, LiveOddsPayload):
        snapshot = _parse_live(payload, resolved_id, minute, captured)
    else:
        snapshot = _parse_prematch(payload, resolved_id, minute, captured)

    if snapshot.fetch_status != FetchStatus.SUCCESS:
        logger.info("Odds for fixture %s parsed as %s", resolved_id, snapshot.fetch_status.value)
    return snapshot


# ---------------------------------------------------------------------------
# Display block
# ---------------------------------------------------------------------------


def _trend(current: float | None, previous: float | None, band: float) -> Trend:
    if current is None or previous is None:
        return "stable"
    if current < previous - band:
        return "down"
    if current > previous + band:
        return "up"
    return "stable"


def _display_over_under(snapshot: OddsSnapshot) -> tuple[float | None, float | None, float | None]:
    if snapshot.main_ou_line is not None:
        return snapshot.main_ou_line, snapshot.main_ou_over, snapshot.main_ou_under
    for line, over, under in (
        (2.5, snapshot.over_2_5, snapshot.under_2_5),
        (1.5, snapshot.over_1_5, snapshot.under_1_5),
        (3.5, snapshot.over_3_5, snapshot.under_3_5),
    ):
        if over is not None or under is not None:
            return line, over, under
    return None, None, None


def snapshot_to_display_odds(
    current: OddsSnapshot,
    previous: DisplayOdds | OddsSnapshot | None = None,
) -> DisplayOdds:
    """Build the presentation odds block with trends against ``previous``.

    Null prices stay null; no defaults are substituted.
    """
    if isinstance(previous, OddsSnapshot):
        previous = snapshot_to_display_odds(previous)
    band = settings.ODDS_TREND_BAND
    total, over, under = _display_over_under(current)
    prev_handicap = previous.handicap if previous else HandicapDisplay()
    prev_ou = previous.over_under if previous else OverUnderDisplay()

    return DisplayOdds(
        handicap=HandicapDisplay(
            value=current.ah_line,
            home=current.ah_home,
            away=current.ah_away,
            home_trend=_trend(current.ah_home, prev_handicap.home, band),
            away_trend=_trend(current.ah_away, prev_handicap.away, band),
        ),
        over_under=OverUnderDisplay(
            total=total,
            over=over,
            under=under,
            over_trend=_trend(over, prev_ou.over, band),
            under_trend=_trend(under, prev_ou.under, band),
            all_lines=list(current.all_ou_lines),
        ),
        match_winner=MatchWinnerDisplay(
            home=current.home_win,
            draw=current.draw,
            away=current.away_win,
        ),
        source="API-Football",
        bookmaker=current.bookmaker,
        captured_at=current.captured_at,
        is_live=current.is_live,
        fetch_status=current.fetch_status,
    )
