"""Price and line helpers shared by the odds parser and the data validator."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from typing import Any

from goalradar.models.odds import OULine

# Probe order for the "main" over/under line when no outcome is flagged main.
MAIN_LINE_PRIORITY: tuple[float, ...] = (2.5, 2.25, 2.0, 1.75, 1.5, 2.75, 3.0, 3.5)

# Fixed lines kept as flat fields on the snapshot for older consumers.
FIXED_OU_LINES: tuple[float, ...] = (1.5, 2.5, 3.5)

_SIGNED_NUMBER = re.compile(r"(-?\d+(?:\.\d+)?)")
_HOME_LOOKUP = ("home", "1", "h")
_DRAW_LOOKUP = ("draw", "x", "d")
_AWAY_LOOKUP = ("away", "2", "a")


def to_price(value: Any) -> float | None:
    """Decimal price or None. Zero, negative, infinite and non-numeric prices are not prices."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def to_line(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        line = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(line):
        return None
    return line


def parse_signed_line(label: str | None) -> float | None:
    """Pull the signed line out of a text label such as ``"Home -1.5"``."""
    if not label:
        return None
    match = _SIGNED_NUMBER.search(str(label))
    if not match:
        return None
    return float(match.group(1))


def outcome_side(label: Any) -> str | None:
    """Map a 1X2 outcome label to ``home`` / ``draw`` / ``away``."""
    key = str(label or "").strip().lower()
    if key in _HOME_LOOKUP:
        return "home"
    if key in _DRAW_LOOKUP:
        return "draw"
    if key in _AWAY_LOOKUP:
        return "away"
    return None


def pick_main_line(
    lines: Sequence[OULine],
    priority: Sequence[float] = MAIN_LINE_PRIORITY,
) -> OULine | None:
    """Resolve the main over/under line.

    A line explicitly flagged main wins. Otherwise the first entry of
    ``priority`` that has both sides priced is taken. Returns None when neither
    rule finds a line; the caller decides what an absent main line means.
    """
    for line in lines:
        if line.is_main:
            return line
    by_value = {line.line: line for line in lines}
    for target in priority:
        candidate = by_value.get(target)
        if candidate is not None and candidate.over is not None and candidate.under is not None:
            return candidate
    return None
