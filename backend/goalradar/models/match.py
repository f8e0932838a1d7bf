"""
backend/goalradar/models/match.py

Purpose:
    Canonical match aggregate assembled by the normalizer: identity, clock,
    score, structured statistics keyed by a closed StatType enum, typed events,
    the attached odds snapshots and the validator verdict.

Dependencies:
    - pydantic
    - goalradar.models.odds
    - goalradar.models.validation
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from goalradar.models.odds import OddsSnapshot
from goalradar.models.validation import ValidationResult

Side = Literal["home", "away"]


class MatchStatus(str, Enum):
    NOT_STARTED = "ns"
    LIVE = "live"
    HALF_TIME = "ht"
    FINISHED = "ft"


STATUS_MAP: dict[str, MatchStatus] = {
    "NS": MatchStatus.NOT_STARTED,
    "TBD": MatchStatus.NOT_STARTED,
    "1H": MatchStatus.LIVE,
    "2H": MatchStatus.LIVE,
    "ET": MatchStatus.LIVE,
    "BT": MatchStatus.LIVE,
    "P": MatchStatus.LIVE,
    "SUSP": MatchStatus.LIVE,
    "INT": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "HT": MatchStatus.HALF_TIME,
    "FT": MatchStatus.FINISHED,
    "AET": MatchStatus.FINISHED,
    "PEN": MatchStatus.FINISHED,
}

# Short codes for matches that are actually being played (half time included).
IN_PLAY_CODES = frozenset({"1H", "2H", "HT", "ET", "BT", "P", "LIVE"})


class StatType(str, Enum):
    TOTAL_SHOTS = "total_shots"
    SHOTS_ON_TARGET = "shots_on_target"
    SHOTS_OFF_TARGET = "shots_off_target"
    BLOCKED_SHOTS = "blocked_shots"
    BALL_POSSESSION = "ball_possession"
    CORNER_KICKS = "corner_kicks"
    DANGEROUS_ATTACKS = "dangerous_attacks"
    EXPECTED_GOALS = "expected_goals"
    FOULS = "fouls"
    OFFSIDES = "offsides"
    YELLOW_CARDS = "yellow_cards"
    RED_CARDS = "red_cards"


# Upstream free-text labels (lower-cased) -> closed enum. Anything else is dropped.
STAT_LABELS: dict[str, StatType] = {
    "total shots": StatType.TOTAL_SHOTS,
    "shots on goal": StatType.SHOTS_ON_TARGET,
    "shots on target": StatType.SHOTS_ON_TARGET,
    "shots off goal": StatType.SHOTS_OFF_TARGET,
    "blocked shots": StatType.BLOCKED_SHOTS,
    "ball possession": StatType.BALL_POSSESSION,
    "corner kicks": StatType.CORNER_KICKS,
    "corners": StatType.CORNER_KICKS,
    "dangerous attacks": StatType.DANGEROUS_ATTACKS,
    "expected_goals": StatType.EXPECTED_GOALS,
    "expected goals": StatType.EXPECTED_GOALS,
    "fouls": StatType.FOULS,
    "offsides": StatType.OFFSIDES,
    "yellow cards": StatType.YELLOW_CARDS,
    "red cards": StatType.RED_CARDS,
}

CRITICAL_STATS: tuple[StatType, ...] = (
    StatType.TOTAL_SHOTS,
    StatType.SHOTS_ON_TARGET,
    StatType.BALL_POSSESSION,
    StatType.CORNER_KICKS,
)


def stat_type_for_label(label: object) -> StatType | None:
    return STAT_LABELS.get(str(label or "").strip().lower())


class SidePair(BaseModel):
    """Home/away values for one statistic. None means the feed did not report it."""

    model_config = ConfigDict(frozen=True)

    home: float | None = None
    away: float | None = None

    @property
    def reported(self) -> bool:
        return self.home is not None or self.away is not None

    def total(self) -> float:
        return (self.home or 0.0) + (self.away or 0.0)

    def diff(self) -> float:
        return (self.home or 0.0) - (self.away or 0.0)

    def for_side(self, side: Side) -> float | None:
        return self.home if side == "home" else self.away


class SideCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: int = 0
    away: int = 0


class HalfIntensity(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_half: int = 0
    second_half: int = 0


class MatchStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    shots: SidePair = Field(default_factory=SidePair)
    shots_on_target: SidePair = Field(default_factory=SidePair)
    possession: SidePair = Field(default_factory=SidePair)
    corners: SidePair = Field(default_factory=SidePair)
    dangerous_attacks: SidePair = Field(default_factory=SidePair)
    expected_goals: SidePair = Field(default_factory=SidePair)
    fouls: SidePair = Field(default_factory=SidePair)
    authoritative: bool = False
    recent_shots_20min: int | None = None
    half_intensity: HalfIntensity | None = None


class EventType(str, Enum):
    GOAL = "goal"
    CARD = "card"
    SUBSTITUTION = "substitution"
    VAR = "var"
    OTHER = "other"


EVENT_TYPE_LABELS: dict[str, EventType] = {
    "goal": EventType.GOAL,
    "card": EventType.CARD,
    "subst": EventType.SUBSTITUTION,
    "substitution": EventType.SUBSTITUTION,
    "var": EventType.VAR,
}


class MatchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    minute: int = 0
    extra: int | None = None
    side: Side | None = None
    team_id: int | None = None
    type: EventType = EventType.OTHER
    detail: str = ""
    player: str | None = None
    assist: str | None = None
    position: str | None = None


class EventSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    yellow_cards: SideCount = Field(default_factory=SideCount)
    red_cards: SideCount = Field(default_factory=SideCount)
    substitutions_used: SideCount = Field(default_factory=SideCount)
    subs_remaining: SideCount = Field(default_factory=lambda: SideCount(home=5, away=5))
    recent_attack_subs: int = 0
    var_cancelled: bool = False
    recent_event: Literal["goal", "red_card"] | None = None


class TeamInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str = ""
    score: int = 0


class CanonicalMatch(BaseModel):
    """Read-only aggregate consumed by the scoring engine and the scanner."""

    model_config = ConfigDict(frozen=True)

    fixture_id: int
    league_id: int | None = None
    league_name: str = ""
    kickoff: datetime | None = None
    minute: int = 0
    status: MatchStatus = MatchStatus.LIVE
    status_short: str = ""
    home: TeamInfo
    away: TeamInfo
    statistics: MatchStatistics | None = None
    events: tuple[MatchEvent, ...] = ()
    event_summary: EventSummary = Field(default_factory=EventSummary)
    odds: OddsSnapshot
    prematch_odds: OddsSnapshot | None = None
    home_handicap: float | None = None
    validation: ValidationResult
    unscoreable: bool = False
    no_stats_reason: str | None = None
    scenario_tags: tuple[str, ...] = ()
    quick_rating: int = 0

    @property
    def total_goals(self) -> int:
        return self.home.score + self.away.score

    @property
    def goal_diff(self) -> int:
        return self.home.score - self.away.score

    @property
    def match_info(self) -> str:
        return f"{self.home.name} vs {self.away.name} ({self.minute}')"

    def losing_side(self) -> Side | None:
        if self.home.score < self.away.score:
            return "home"
        if self.away.score < self.home.score:
            return "away"
        return None
