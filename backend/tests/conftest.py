"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap for the goalradar package and the local payload
    builders module.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_TESTS_DIR = _THIS_FILE.parent
_BACKEND_DIR = _THIS_FILE.parents[1]

for candidate in (str(_BACKEND_DIR), str(_TESTS_DIR)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)


@pytest.fixture
def fresh_lookup_cache(monkeypatch):
    """Swap the process-wide lookup cache for an empty one."""
    from goalradar.services import lookup_cache

    monkeypatch.setattr(lookup_cache, "_lookup_cache_singleton", None)
    return lookup_cache.get_lookup_cache()
