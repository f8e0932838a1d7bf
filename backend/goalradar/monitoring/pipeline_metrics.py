"""
backend/goalradar/monitoring/pipeline_metrics.py

Purpose:
    Prometheus metrics for the validate/parse/normalize/score pipeline plus an
    odds-coverage summary over a batch of parsed snapshots.

Dependencies:
    - prometheus_client
    - goalradar.models.odds
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter

from prometheus_client import Counter, Histogram

from goalradar.models.odds import FetchStatus, OddsSnapshot

METRIC_VALIDATION_TOTAL = Counter(
    "goalradar_validation_total",
    "Fixtures validated, by data quality tier.",
    ["quality"],
)
METRIC_ODDS_FETCH_STATUS = Counter(
    "goalradar_odds_snapshots_total",
    "Parsed odds snapshots, by fetch status and source.",
    ["status", "source"],
)
METRIC_SCORING_OUTCOMES = Counter(
    "goalradar_scoring_outcomes_total",
    "Scoring outcomes (scored / unscoreable / error).",
    ["outcome", "variant"],
)
METRIC_SCANNER_MATCHES = Counter(
    "goalradar_scanner_results_total",
    "Imbalance scanner results, by recommendation tier.",
    ["recommendation"],
)
METRIC_PIPELINE_FAILURES = Counter(
    "goalradar_pipeline_failures_total",
    "Fixtures whose pipeline run raised, by stage.",
    ["stage"],
)
METRIC_PIPELINE_LATENCY = Histogram(
    "goalradar_pipeline_fixture_latency_seconds",
    "Latency of one fixture pipeline run.",
)
METRIC_BATCH_LATENCY = Histogram(
    "goalradar_pipeline_batch_latency_seconds",
    "Latency of one pipeline batch run.",
)


@contextmanager
def observe_latency(metric):
    start = perf_counter()
    try:
        yield
    finally:
        metric.observe(perf_counter() - start)


@dataclass
class OddsCoverage:
    total_fetched: int = 0
    with_any_odds: int = 0
    with_live_odds: int = 0
    with_prematch_odds: int = 0
    empty_responses: int = 0
    errors: int = 0
    not_fetched: int = 0
    coverage_percent: int = 0


def calculate_odds_coverage(snapshots: Iterable[OddsSnapshot]) -> OddsCoverage:
    """Summarise fetch outcomes across a batch of snapshots."""
    coverage = OddsCoverage()
    for snapshot in snapshots:
        coverage.total_fetched += 1
        if snapshot.fetch_status == FetchStatus.SUCCESS:
            coverage.with_any_odds += 1
            if snapshot.is_live:
                coverage.with_live_odds += 1
            else:
                coverage.with_prematch_odds += 1
        elif snapshot.fetch_status == FetchStatus.EMPTY:
            coverage.empty_responses += 1
        elif snapshot.fetch_status == FetchStatus.ERROR:
            coverage.errors += 1
        else:
            coverage.not_fetched += 1
    if coverage.total_fetched:
        coverage.coverage_percent = round(coverage.with_any_odds / coverage.total_fetched * 100)
    return coverage
