"""
backend/goalradar/models/odds.py

Purpose:
    Odds contracts at both ends of the parser: the raw API-Football payload,
    resolved once into a tagged union (live market list vs. pre-match
    bookmaker list), and the canonical line-level OddsSnapshot handed to the
    normalizer, the scorer and the presentation layer.

Dependencies:
    - pydantic
    - goalradar.utils
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from goalradar.utils import utcnow


class FetchStatus(str, Enum):
    SUCCESS = "SUCCESS"
    EMPTY = "EMPTY"
    ERROR = "ERROR"
    NOT_FETCHED = "NOT_FETCHED"


# ---------------------------------------------------------------------------
# Raw payload (boundary) models
# ---------------------------------------------------------------------------


class RawOddValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: str = ""
    odd: Any = None
    handicap: Any = None
    main: bool | None = None
    suspended: bool | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _label_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class RawMarket(BaseModel):
    """One bet market. Live feeds call these ``odds``, pre-match ``bets``."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str | None = None
    values: list[RawOddValue] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def _values_list(cls, value: Any) -> Any:
        return [] if value is None else value


class RawBookmaker(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str = ""
    bets: list[RawMarket] = Field(default_factory=list)

    @field_validator("bets", mode="before")
    @classmethod
    def _bets_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("name", mode="before")
    @classmethod
    def _name_or_blank(cls, value: Any) -> str:
        return "" if value is None else str(value)


class LiveOddsPayload(BaseModel):
    """In-play shape: a flat market list directly on the fixture."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["live"] = "live"
    fixture_id: int | None = None
    elapsed: int | None = None
    markets: list[RawMarket] = Field(default_factory=list)


class PrematchOddsPayload(BaseModel):
    """Pre-match shape: bookmakers, each holding named bet markets."""

    model_config = ConfigDict(extra="ignore")

    kind: Literal["prematch"] = "prematch"
    fixture_id: int | None = None
    bookmakers: list[RawBookmaker] = Field(default_factory=list)


RawOddsPayload = Annotated[
    Union[LiveOddsPayload, PrematchOddsPayload],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Canonical snapshot
# ---------------------------------------------------------------------------


class OULine(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: float
    over: float | None = None
    under: float | None = None
    is_main: bool = False


_PRICE_FIELDS = (
    "home_win",
    "draw",
    "away_win",
    "over_1_5",
    "under_1_5",
    "over_2_5",
    "under_2_5",
    "over_3_5",
    "under_3_5",
    "main_ou_line",
    "main_ou_over",
    "main_ou_under",
    "ah_line",
    "ah_home",
    "ah_away",
)


class OddsSnapshot(BaseModel):
    """Canonical odds for one fixture at one capture time. Immutable."""

    model_config = ConfigDict(frozen=True)

    fixture_id: int = 0
    captured_at: datetime = Field(default_factory=utcnow)
    is_live: bool = True
    bookmaker: str = "N/A"
    minute: int | None = None

    home_win: float | None = None
    draw: float | None = None
    away_win: float | None = None

    over_1_5: float | None = None
    under_1_5: float | None = None
    over_2_5: float | None = None
    under_2_5: float | None = None
    over_3_5: float | None = None
    under_3_5: float | None = None

    main_ou_line: float | None = None
    main_ou_over: float | None = None
    main_ou_under: float | None = None
    all_ou_lines: tuple[OULine, ...] = ()

    ah_line: float | None = None
    ah_home: float | None = None
    ah_away: float | None = None

    raw_available: bool = False
    fetch_status: FetchStatus = FetchStatus.EMPTY
    fetch_error: str | None = None

    @model_validator(mode="after")
    def _check_status_invariant(self) -> "OddsSnapshot":
        has_family = self.home_win is not None or self.main_ou_line is not None or self.ah_line is not None
        if self.fetch_status == FetchStatus.SUCCESS:
            if not has_family or not self.raw_available:
                raise ValueError("SUCCESS snapshot needs 1X2, main O/U or handicap data")
            return self
        if self.raw_available:
            raise ValueError(f"{self.fetch_status.value} snapshot cannot be raw_available")
        if self.all_ou_lines or any(getattr(self, name) is not None for name in _PRICE_FIELDS):
            raise ValueError(f"{self.fetch_status.value} snapshot cannot carry prices")
        return self

    @classmethod
    def empty(
        cls,
        fixture_id: int = 0,
        *,
        minute: int | None = None,
        captured_at: datetime | None = None,
        is_live: bool = True,
    ) -> "OddsSnapshot":
        return cls(
            fixture_id=fixture_id,
            captured_at=captured_at or utcnow(),
            is_live=is_live,
            minute=minute,
            fetch_status=FetchStatus.EMPTY,
        )

    @classmethod
    def error(
        cls,
        fixture_id: int,
        message: str,
        *,
        minute: int | None = None,
        captured_at: datetime | None = None,
    ) -> "OddsSnapshot":
        return cls(
            fixture_id=fixture_id,
            captured_at=captured_at or utcnow(),
            minute=minute,
            fetch_status=FetchStatus.ERROR,
            fetch_error=message,
        )

    @classmethod
    def not_fetched(cls, fixture_id: int, *, captured_at: datetime | None = None) -> "OddsSnapshot":
        return cls(
            fixture_id=fixture_id,
            captured_at=captured_at or utcnow(),
            fetch_status=FetchStatus.NOT_FETCHED,
        )

    @property
    def has_1x2(self) -> bool:
        return self.home_win is not None

    @property
    def has_over_under(self) -> bool:
        return self.main_ou_line is not None

    @property
    def has_handicap(self) -> bool:
        return self.ah_line is not None


class OddsMovement(BaseModel):
    """One observed price move. Cross-bookmaker history comes from collaborators."""

    model_config = ConfigDict(frozen=True)

    bookmaker: str
    market: str
    direction: Literal["UP", "DOWN", "STABLE"]
    old_price: float
    new_price: float
    change_percent: float
    observed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Display block (consumed by the presentation layer)
# ---------------------------------------------------------------------------

Trend = Literal["up", "down", "stable"]


class HandicapDisplay(BaseModel):
    value: float | None = None
    home: float | None = None
    away: float | None = None
    home_trend: Trend = "stable"
    away_trend: Trend = "stable"


class OverUnderDisplay(BaseModel):
    total: float | None = None
    over: float | None = None
    under: float | None = None
    over_trend: Trend = "stable"
    under_trend: Trend = "stable"
    all_lines: list[OULine] = Field(default_factory=list)


class MatchWinnerDisplay(BaseModel):
    home: float | None = None
    draw: float | None = None
    away: float | None = None


class DisplayOdds(BaseModel):
    handicap: HandicapDisplay = Field(default_factory=HandicapDisplay)
    over_under: OverUnderDisplay = Field(default_factory=OverUnderDisplay)
    match_winner: MatchWinnerDisplay = Field(default_factory=MatchWinnerDisplay)
    source: str = "N/A"
    bookmaker: str = "N/A"
    captured_at: datetime | None = None
    is_live: bool = False
    fetch_status: FetchStatus = FetchStatus.NOT_FETCHED
