"""
backend/goalradar/models/scanner.py

Purpose:
    Configuration and result contracts for the structural-imbalance scanner,
    including the named preset configurations.

Dependencies:
    - pydantic
    - goalradar.config
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from goalradar.config import Settings, settings

AttackingTeam = Literal["home", "away", "balanced"]


class ScannerRule(str, Enum):
    TIME_WINDOW = "TIME_WINDOW"
    GOAL_DIFF = "GOAL_DIFF"
    XG_DIFF = "XG_DIFF"
    SHOTS_DIFF = "SHOTS_DIFF"
    SOT_DIFF = "SOT_DIFF"
    REAL_DATA = "REAL_DATA"


class ScannerRecommendation(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"
    NONE = "NONE"


class ScannerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_minute: int = 75
    max_minute: int = 90
    max_goal_diff: int = 1
    allow_draw: bool = True
    min_xg_diff: float = 0.5
    min_shots_diff: int = 5
    min_sot_diff: int = 2
    min_recent_shots: int = 3
    require_real_data: bool = True
    include_half_time: bool = False

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "ScannerConfig":
        cfg = source or settings
        return cls(
            min_minute=cfg.SCANNER_MIN_MINUTE,
            max_minute=cfg.SCANNER_MAX_MINUTE,
            max_goal_diff=cfg.SCANNER_MAX_GOAL_DIFF,
            allow_draw=cfg.SCANNER_ALLOW_DRAW,
            min_xg_diff=cfg.SCANNER_MIN_XG_DIFF,
            min_shots_diff=cfg.SCANNER_MIN_SHOTS_DIFF,
            min_sot_diff=cfg.SCANNER_MIN_SOT_DIFF,
            min_recent_shots=cfg.SCANNER_MIN_RECENT_SHOTS,
            require_real_data=cfg.SCANNER_REQUIRE_REAL_DATA,
            include_half_time=cfg.SCANNER_INCLUDE_HALF_TIME,
        )


LATE_GOAL_HUNTER = ScannerConfig(
    min_minute=75,
    max_minute=90,
    max_goal_diff=1,
    min_xg_diff=0.3,
    min_shots_diff=4,
    min_sot_diff=2,
)

SECOND_HALF_IMBALANCE = ScannerConfig(
    min_minute=55,
    max_minute=90,
    max_goal_diff=2,
    min_xg_diff=0.5,
    min_shots_diff=5,
    min_sot_diff=3,
)

RELAXED_SCAN = ScannerConfig(
    min_minute=60,
    max_minute=90,
    max_goal_diff=2,
    min_xg_diff=0.3,
    min_shots_diff=3,
    min_sot_diff=1,
    require_real_data=False,
)

PRESETS: dict[str, ScannerConfig] = {
    "late_goal_hunter": LATE_GOAL_HUNTER,
    "second_half_imbalance": SECOND_HALF_IMBALANCE,
    "relaxed_scan": RELAXED_SCAN,
}


class ImbalanceMetrics(BaseModel):
    """Home-minus-away differentials. Positive values favour the home side."""

    model_config = ConfigDict(frozen=True)

    shots_diff: float = 0.0
    shots_on_target_diff: float = 0.0
    xg_diff: float = 0.0
    corners_diff: float = 0.0
    possession_diff: float = 0.0
    imbalance_score: int = 0
    attacking_team: AttackingTeam = "balanced"


class RecentActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    activity_score: int = 0
    estimated_shots: int = 0
    recent_goals: int = 0
    is_active: bool = False


class AttackScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: int = 0
    away: int = 0
    diff: int = 0


class ScannerResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    fixture_id: int = 0
    is_match: bool = False
    matched_rules: tuple[ScannerRule, ...] = ()
    failed_rules: tuple[ScannerRule, ...] = ()
    imbalance_score: int = Field(default=0, ge=0, le=100)
    attacking_team: AttackingTeam = "balanced"
    metrics: ImbalanceMetrics = Field(default_factory=ImbalanceMetrics)
    recommendation: ScannerRecommendation = ScannerRecommendation.NONE
    reasons: tuple[str, ...] = ()
    activity: RecentActivity = Field(default_factory=RecentActivity)
