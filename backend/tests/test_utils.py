"""
backend/tests/test_utils.py

Purpose:
    Tolerant value helpers, odds label helpers and logging setup.
"""

from __future__ import annotations

import logging
from datetime import timezone

import pytest

from goalradar.monitoring.logging import setup_logging
from goalradar.utils import dig, parse_utc, safe_float, safe_int
from goalradar.utils.odds_utils import outcome_side, parse_signed_line, to_line, to_price


def test_safe_numbers():
    assert safe_float("55%") == 55.0
    assert safe_float(" 1.25 ") == 1.25
    assert safe_float("") is None
    assert safe_float(True) is None
    assert safe_float("n/a") is None
    assert safe_int("7.9") == 7


def test_dig_and_parse_utc():
    assert dig({"a": {"b": 1}}, "a", "b") == 1
    assert dig({"a": None}, "a", "b") is None
    assert parse_utc("2026-03-14T18:45:00Z").tzinfo == timezone.utc
    assert parse_utc("not a date") is None


def test_price_and_line_helpers():
    assert to_price("1.85") == 1.85
    assert to_price("0") is None
    assert to_price(-1.5) is None
    assert to_line("-0.25") == -0.25
    assert to_line("abc") is None
    assert parse_signed_line("Home -1.5") == -1.5
    assert parse_signed_line("Away +0.75") == 0.75
    assert parse_signed_line("Home") is None


def test_outcome_side_labels():
    assert outcome_side("Home") == "home"
    assert outcome_side("X") == "draw"
    assert outcome_side("2") == "away"
    assert outcome_side("Over") is None


def test_setup_logging_uses_configured_level(monkeypatch):
    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))

    setup_logging("debug")

    assert captured["level"] == "DEBUG"
    assert captured["format"] == "%(asctime)s %(levelname)s %(name)s %(message)s"


@pytest.mark.parametrize("value", ["nan", "inf", "-Infinity", float("nan"), float("inf")])
def test_non_finite_numbers_are_rejected(value):
    assert safe_float(value) is None
    assert safe_int(value) is None
    assert to_price(value) is None
    assert to_line(value) is None
