"""
backend/goalradar/services/pipeline_service.py

Purpose:
    Drive one polling cycle through the core:
    validate -> parse odds -> normalize -> score -> scan.

    Each fixture is processed from one captured PayloadBundle; validation,
    parsing and normalization all see the same bundle and nothing is
    re-fetched. Batch runs isolate failures per fixture: the error is logged,
    counted, and recorded on that fixture's PipelineResult while the rest of
    the batch continues.

Dependencies:
    - goalradar.services.*
    - goalradar.monitoring.pipeline_metrics
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from goalradar.models.match import CanonicalMatch
from goalradar.models.odds import OddsSnapshot
from goalradar.models.scanner import ScannerConfig, ScannerResult
from goalradar.models.scoring import ScoreResult, ScoringOutcome
from goalradar.models.validation import ValidationResult
from goalradar.monitoring.pipeline_metrics import (
    METRIC_BATCH_LATENCY,
    METRIC_ODDS_FETCH_STATUS,
    METRIC_PIPELINE_FAILURES,
    METRIC_PIPELINE_LATENCY,
    METRIC_SCANNER_MATCHES,
    METRIC_SCORING_OUTCOMES,
    METRIC_VALIDATION_TOTAL,
    calculate_odds_coverage,
    observe_latency,
)
from goalradar.services.data_validation_service import validate_all
from goalradar.services.lookup_cache import HistoryLookup
from goalradar.services.match_normalizer_service import normalize_match
from goalradar.services.scanner_service import scan_match
from goalradar.services.scoring_service import calculate_score, calculate_score_with_odds
from goalradar.utils import dig, safe_int, utcnow

logger = logging.getLogger("goalradar.pipeline")


@dataclass
class PayloadBundle:
    """Raw payloads for one fixture, captured together in one fetch cycle."""

    fixture: dict[str, Any] | None
    statistics: Sequence[Any] | None = None
    events: Sequence[Any] | None = None
    odds: Any = None
    prematch_odds: Any = None
    shot_minutes: Sequence[int] | None = None
    captured_at: datetime | None = None

    @property
    def fixture_id(self) -> int:
        return safe_int(dig(self.fixture, "fixture", "id")) or 0


@dataclass
class PipelineResult:
    fixture_id: int
    validation: ValidationResult | None = None
    match: CanonicalMatch | None = None
    score: ScoringOutcome | None = None
    scan: ScannerResult | None = None
    error: str | None = None
    failed_stage: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def _record_odds(snapshot: OddsSnapshot | None, source: str) -> None:
    if snapshot is not None:
        METRIC_ODDS_FETCH_STATUS.labels(status=snapshot.fetch_status.value, source=source).inc()


def _record_score(outcome: ScoringOutcome) -> None:
    if isinstance(outcome, ScoreResult):
        METRIC_SCORING_OUTCOMES.labels(outcome="scored", variant=outcome.variant).inc()
    else:
        METRIC_SCORING_OUTCOMES.labels(outcome="unscoreable", variant="none").inc()


def run_fixture(
    bundle: PayloadBundle,
    *,
    lookup: HistoryLookup | None = None,
    scanner_config: ScannerConfig | None = None,
    with_odds: bool = False,
) -> PipelineResult:
    """Run the full core over one captured bundle.

    With ``with_odds`` the odds-augmented variant is scored against the
    previous snapshot supplied by ``lookup``. Exceptions propagate; batch
    callers handle them per fixture.
    """
    result = PipelineResult(fixture_id=bundle.fixture_id)
    _run_stages(bundle, result, lookup=lookup, scanner_config=scanner_config, with_odds=with_odds)
    return result


def _run_stages(
    bundle: PayloadBundle,
    result: PipelineResult,
    *,
    lookup: HistoryLookup | None,
    scanner_config: ScannerConfig | None,
    with_odds: bool,
) -> None:
    """Fill ``result`` stage by stage; ``failed_stage`` names the stage in progress."""
    captured = bundle.captured_at or utcnow()

    with observe_latency(METRIC_PIPELINE_LATENCY):
        result.failed_stage = "validate"
        validation = validate_all(
            bundle.fixture,
            bundle.statistics,
            bundle.events,
            bundle.odds,
            validated_at=captured,
        )
        result.validation = validation
        result.warnings.extend(validation.warnings)
        METRIC_VALIDATION_TOTAL.labels(quality=validation.data_quality.value).inc()

        result.failed_stage = "normalize"
        match = normalize_match(
            bundle.fixture,
            bundle.statistics,
            bundle.events,
            bundle.odds,
            bundle.prematch_odds,
            validation=validation,
            shot_minutes=bundle.shot_minutes,
            captured_at=captured,
        )
        result.match = match
        _record_odds(match.odds, "live")
        _record_odds(match.prematch_odds, "prematch")

        result.failed_stage = "score"
        history = lookup.history_for(match) if lookup is not None else None
        if with_odds:
            previous = lookup.previous_odds(match.fixture_id) if lookup is not None else None
            outcome = calculate_score_with_odds(match, history=history, previous_odds=previous)
        else:
            outcome = calculate_score(match, history=history)
        result.score = outcome
        _record_score(outcome)

        result.failed_stage = "scan"
        result.scan = scan_match(match, scanner_config)
        METRIC_SCANNER_MATCHES.labels(recommendation=result.scan.recommendation.value).inc()

    result.failed_stage = None


def run_batch(
    bundles: Iterable[PayloadBundle],
    *,
    lookup: HistoryLookup | None = None,
    scanner_config: ScannerConfig | None = None,
    with_odds: bool = False,
) -> list[PipelineResult]:
    """Run every bundle; one fixture's failure never aborts the batch."""
    results: list[PipelineResult] = []
    with observe_latency(METRIC_BATCH_LATENCY):
        for bundle in bundles:
            result = PipelineResult(fixture_id=bundle.fixture_id)
            try:
                _run_stages(
                    bundle,
                    result,
                    lookup=lookup,
                    scanner_config=scanner_config,
                    with_odds=with_odds,
                )
            except Exception as e:
                stage = result.failed_stage or "unknown"
                logger.error(
                    "Pipeline failed for fixture %s at %s: %s",
                    result.fixture_id,
                    stage,
                    e,
                    exc_info=True,
                )
                METRIC_PIPELINE_FAILURES.labels(stage=stage).inc()
                if stage == "score":
                    METRIC_SCORING_OUTCOMES.labels(outcome="error", variant="odds" if with_odds else "base").inc()
                result.error = str(e) or e.__class__.__name__
                result.failed_stage = stage
            results.append(result)

    coverage = calculate_odds_coverage(r.match.odds for r in results if r.match is not None)
    scored = sum(1 for r in results if isinstance(r.score, ScoreResult))
    logger.info(
        "Pipeline batch: fixtures=%d scored=%d failed=%d odds_coverage=%d%%",
        len(results),
        scored,
        sum(1 for r in results if not r.ok),
        coverage.coverage_percent,
    )
    return results
