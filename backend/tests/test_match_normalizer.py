"""
backend/tests/test_match_normalizer.py

Purpose:
    CanonicalMatch assembly: statistics mapping, scoreability flags (including
    the zero-shots guard), event aggregates, handicap resolution and
    scenario tags.
"""

from __future__ import annotations

import pytest

from goalradar.models.match import MatchStatus
from goalradar.models.odds import FetchStatus
from goalradar.models.validation import DataQuality
from goalradar.services.match_normalizer_service import normalize_match, normalize_matches

from payloads import (
    AWAY_ID,
    CAPTURED_AT,
    HOME_ID,
    event,
    fixture_payload,
    live_odds_payload,
    prematch_odds_payload,
    statistics_payload,
    team_stats_entry,
)

_ZERO_SHOTS = {"Total Shots": 0, "Shots on Goal": 0, "Ball Possession": "50%", "Corner Kicks": 1}


def test_statistics_mapped_onto_canonical_fields():
    match = normalize_match(
        fixture_payload(), statistics_payload(), [], live_odds_payload(), captured_at=CAPTURED_AT
    )

    stats = match.statistics
    assert stats is not None
    assert stats.authoritative is True
    assert (stats.shots.home, stats.shots.away) == (12, 8)
    assert (stats.possession.home, stats.possession.away) == (55.0, 45.0)
    assert stats.expected_goals.total() == pytest.approx(2.3)
    assert stats.dangerous_attacks.reported is False
    assert match.unscoreable is False
    assert match.validation.data_quality == DataQuality.REAL
    assert match.odds.fetch_status == FetchStatus.SUCCESS
    assert match.status == MatchStatus.LIVE
    assert match.match_info == "Arsenal vs Chelsea (80')"


def test_zero_shots_mid_match_is_suspicious():
    stats = statistics_payload(home=_ZERO_SHOTS, away=_ZERO_SHOTS)
    match = normalize_match(fixture_payload(minute=35, home_goals=0, away_goals=0), stats, [], None)

    assert match.unscoreable is True
    assert match.no_stats_reason == "SUSPICIOUS_ZERO_SHOTS"


def test_zero_shots_in_opening_minutes_is_fine():
    stats = statistics_payload(home=_ZERO_SHOTS, away=_ZERO_SHOTS)
    match = normalize_match(fixture_payload(minute=8, home_goals=0, away_goals=0), stats, [], None)

    assert match.unscoreable is False
    assert match.no_stats_reason is None


def test_missing_statistics_flagged():
    match = normalize_match(fixture_payload(), None, [], None)

    assert match.statistics is None
    assert match.unscoreable is True
    assert match.no_stats_reason == "MISSING_STATISTICS_DATA"
    assert "no_stats" in match.scenario_tags


def test_single_team_statistics_not_authoritative():
    match = normalize_match(fixture_payload(), [team_stats_entry(HOME_ID, {"Total Shots": 7})], [], None)

    assert match.statistics is not None
    assert match.statistics.authoritative is False
    assert match.no_stats_reason == "STATS_NOT_FROM_API"


def test_missing_live_odds_marked_not_fetched():
    match = normalize_match(fixture_payload(), statistics_payload(), [], None)
    assert match.odds.fetch_status == FetchStatus.NOT_FETCHED


def test_event_aggregates():
    events = [
        event(30, AWAY_ID, "Goal", "Normal Goal"),
        event(55, AWAY_ID, "Card", "Yellow Card"),
        event(66, AWAY_ID, "Card", "Second Yellow card"),
        event(60, HOME_ID, "subst", "Substitution 1"),
        event(77, HOME_ID, "subst", "Substitution 2"),
        event(78, AWAY_ID, "subst", "Substitution 1", position="D"),
        event(72, HOME_ID, "Var", "Goal cancelled"),
    ]
    match = normalize_match(fixture_payload(home_goals=0, away_goals=1), statistics_payload(), events, None)

    summary = match.event_summary
    assert (summary.yellow_cards.home, summary.yellow_cards.away) == (0, 1)
    assert (summary.red_cards.home, summary.red_cards.away) == (0, 1)
    assert (summary.substitutions_used.home, summary.substitutions_used.away) == (2, 1)
    assert (summary.subs_remaining.home, summary.subs_remaining.away) == (3, 4)
    # Only the trailing home side's 77' change is an attacking sub inside the window.
    assert summary.recent_attack_subs == 1
    assert summary.var_cancelled is True
    assert "red_card" in match.scenario_tags
    assert "away_red" in match.scenario_tags
    assert [e.side for e in match.events[:2]] == ["away", "away"]


def test_recent_shots_from_goal_events_without_shot_minutes():
    events = [event(12, HOME_ID, "Goal", "Normal Goal"), event(70, AWAY_ID, "Goal", "Normal Goal")]
    match = normalize_match(fixture_payload(minute=80), statistics_payload(), events, None)

    assert match.statistics.recent_shots_20min == 1
    assert match.statistics.half_intensity.first_half == 1
    assert match.statistics.half_intensity.second_half == 1


def test_recent_shots_from_shot_minutes():
    match = normalize_match(
        fixture_payload(minute=80),
        statistics_payload(),
        [],
        None,
        shot_minutes=[5, 20, 50, 62, 71, 78],
    )
    assert match.statistics.recent_shots_20min == 3
    assert match.statistics.half_intensity.second_half == 4


def test_favored_side_behind_tagged_from_prematch_handicap():
    match = normalize_match(
        fixture_payload(minute=82, home_goals=0, away_goals=1),
        statistics_payload(),
        [],
        live_odds_payload(),
        prematch_odds_payload(),
        captured_at=CAPTURED_AT,
    )

    assert match.home_handicap == -1.5
    assert match.prematch_odds is not None
    assert match.prematch_odds.is_live is False
    assert "strong_behind" in match.scenario_tags
    assert "critical_time" in match.scenario_tags


def test_live_handicap_is_not_used_as_prematch_line():
    match = normalize_match(
        fixture_payload(minute=82, home_goals=0, away_goals=1),
        statistics_payload(),
        [],
        live_odds_payload(),
    )
    assert match.odds.ah_line == -0.5
    assert match.home_handicap is None
    assert "strong_behind" not in match.scenario_tags


def test_balanced_draw_tags():
    match = normalize_match(fixture_payload(minute=80), statistics_payload(), [], None)
    assert "balanced" in match.scenario_tags
    assert "strong_behind" not in match.scenario_tags
    assert "deadlock" not in match.scenario_tags


def test_quick_rating_bounds():
    match = normalize_match(fixture_payload(minute=88, home_goals=0, away_goals=0), statistics_payload(), [], None)
    assert 0 <= match.quick_rating <= 100
    assert match.quick_rating == 30 + 15 + 18 + 6 + 5


def test_normalize_matches_skips_failing_fixture(caplog):
    good = fixture_payload(1001)
    bad = fixture_payload(1002)

    results = normalize_matches(
        [good, bad, {"fixture": {}}],
        statistics_by_fixture={1001: statistics_payload(), 1002: object()},
        captured_at=CAPTURED_AT,
    )

    assert list(results) == [1001]
    assert any("Normalization failed for fixture 1002" in r.message for r in caplog.records)


def test_non_finite_shot_minutes_are_skipped():
    match = normalize_match(
        fixture_payload(minute=80),
        statistics_payload(),
        [],
        None,
        shot_minutes=[float("nan"), 71, float("inf"), 78],
    )
    assert match.statistics.recent_shots_20min == 2
    assert match.statistics.half_intensity.second_half == 2
