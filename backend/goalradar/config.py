"""
backend/goalradar/config.py

Purpose:
    Central settings loading for the goalradar pipeline.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s %(levelname)s %(name)s %(message)s"
    LOG_DATEFMT: str = "%Y-%m-%dT%H:%M:%S"

    # Imbalance scanner defaults (late-goal window)
    SCANNER_MIN_MINUTE: int = 75
    SCANNER_MAX_MINUTE: int = 90
    SCANNER_MAX_GOAL_DIFF: int = 1
    SCANNER_ALLOW_DRAW: bool = True
    SCANNER_MIN_XG_DIFF: float = 0.5
    SCANNER_MIN_SHOTS_DIFF: int = 5
    SCANNER_MIN_SOT_DIFF: int = 2
    SCANNER_MIN_RECENT_SHOTS: int = 3
    SCANNER_REQUIRE_REAL_DATA: bool = True
    SCANNER_INCLUDE_HALF_TIME: bool = False

    # Odds movement factor
    ODDS_TREND_BAND: float = 0.02  # price delta treated as "stable" in display trends
    ODDS_HANDICAP_SHIFT_BAND: float = 0.25
    ODDS_OVER_DROP_THRESHOLD: float = 0.15
    ODDS_SIGNIFICANT_MOVE_PCT: float = 5.0
    ODDS_HIGH_GOAL_EXPECTATION_PRICE: float = 1.7
    ODDS_LOW_GOAL_EXPECTATION_PRICE: float = 2.1

    # History factor: used when no league late-goal average is supplied
    LEAGUE_LATE_GOAL_AVG_FALLBACK: float = 0.5

    # Lookup cache TTLs (seconds)
    CACHE_TTL_LIVE_ODDS: int = 10
    CACHE_TTL_LIVE_FIXTURES: int = 10
    CACHE_TTL_STATISTICS: int = 30
    CACHE_TTL_EVENTS: int = 30
    CACHE_TTL_PREMATCH_ODDS: int = 300
    CACHE_TTL_TEAM_STATS: int = 86400
    CACHE_TTL_H2H: int = 86400
    CACHE_TTL_REFERENCE: int = 604800  # leagues, teams, venues

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
