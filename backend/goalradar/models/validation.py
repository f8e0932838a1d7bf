"""
backend/goalradar/models/validation.py

Purpose:
    Per-fixture data quality verdict produced by the validator and attached to
    every canonical match.

Dependencies:
    - pydantic
    - goalradar.utils
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from goalradar.utils import utcnow


class DataQuality(str, Enum):
    REAL = "REAL"
    PARTIAL = "PARTIAL"
    INVALID = "INVALID"


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    fixture_id: int = 0
    fixtures_real: bool = False
    stats_real: bool = False
    odds_real: bool = False
    events_real: bool = False
    data_quality: DataQuality = DataQuality.INVALID
    invalid_reasons: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    validated_at: datetime = Field(default_factory=utcnow)

    def can_persist(self) -> bool:
        """Only REAL or PARTIAL data (which always has a real fixture) may be stored."""
        return self.data_quality != DataQuality.INVALID and self.fixtures_real
