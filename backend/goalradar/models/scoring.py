"""
backend/goalradar/models/scoring.py

Purpose:
    Result contracts of the late-goal scoring engine: per-factor breakdowns,
    the scored result, the unscoreable result, and the optional history input
    supplied by collaborators.

Dependencies:
    - pydantic
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

DataQualityLevel = Literal["real", "partial", "unavailable"]
GoalExpectation = Literal["HIGH", "MEDIUM", "LOW"]


class Recommendation(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    AVOID = "AVOID"


class HistoryInput(BaseModel):
    """Historical context for one fixture. Every field is optional.

    ``home_team_stats`` / ``away_team_stats`` are raw API-Football team season
    statistics; only ``goals.for.minute["76-90"].percentage`` is read.
    """

    model_config = ConfigDict(frozen=True)

    home_team_stats: dict[str, Any] | None = None
    away_team_stats: dict[str, Any] | None = None
    h2h_late_goals: int | None = None
    league_late_goal_avg: float | None = None
    home_comeback_rate: float | None = None
    away_comeback_rate: float | None = None


class ScoreStateFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    is_draw: bool = False
    one_goal_diff: bool = False
    two_goal_diff: bool = False
    large_gap: bool = False
    strong_behind: bool = False
    strong_lead_by_one: bool = False


class AttackFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    total_shots: int = 0
    shots_on_target: int = 0
    shot_accuracy: float = 0.0
    corners: int = 0
    xg_total: float = 0.0
    xg_debt: float = 0.0


class MomentumFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    recent_shots: int = 0
    second_half_intensity: float = 1.0
    losing_team_possession: float = 0.0
    attack_density_rising: bool = False
    data_quality: DataQualityLevel = "unavailable"


class HistoryFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    home_late_goal_rate: float = 0.0
    away_late_goal_rate: float = 0.0
    h2h_late_goals: int = 0
    league_late_goal_avg: float = 0.5
    losing_team_comeback_rate: float = 0.0
    data_available: bool = False


class SpecialFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    red_card_advantage: bool = False
    high_scoring_match: bool = False
    subs_remaining: bool = False
    recent_attack_sub: bool = False
    var_cancelled: bool = False
    all_subs_used: bool = False
    too_many_fouls: bool = False
    possession_stalemate: bool = False


class OddsFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = 0
    handicap_tightening: bool = False
    handicap_widening: bool = False
    over_odds_drop: bool = False
    multi_bookmaker_movement: bool = False
    live_odds_shift: bool = False
    odds_xg_divergence: bool = False
    goal_expectation: GoalExpectation = "MEDIUM"
    movement_count: int = 0
    data_available: bool = False


class ScoreFactors(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: ScoreStateFactor
    attack: AttackFactor
    momentum: MomentumFactor
    history: HistoryFactor
    special: SpecialFactor
    odds: OddsFactor | None = None


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    scoreable: Literal[True] = True
    match_id: int
    match_info: str = ""
    total_score: int
    base_score: int = 30
    factors: ScoreFactors
    stars: int = Field(ge=1, le=5)
    recommendation: Recommendation
    is_strong_team_behind: bool = False
    alerts: tuple[str, ...] = ()
    confidence: int = Field(ge=0, le=100)
    tags: tuple[str, ...] = ()
    variant: Literal["base", "odds"] = "base"


class UnscoreableResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    scoreable: Literal[False] = False
    reason: str
    match_id: int
    match_info: str = ""


ScoringOutcome = Union[ScoreResult, UnscoreableResult]
