"""
backend/goalradar/services/lookup_cache.py

Purpose:
    Time-boxed in-memory lookup cache owned by the fetch layer, plus the
    read-only HistoryLookup view the pipeline receives. Each entry is keyed
    by (data class, key) and expires after the TTL configured for its data
    class, from ten seconds for live odds up to seven days for reference data.

    The scoring core never touches the cache; the pipeline only reads
    through HistoryLookup.

Dependencies:
    - threading
    - goalradar.config
"""

from __future__ import annotations

import logging
import threading
import time as _time
from collections.abc import Callable, Hashable
from enum import Enum
from typing import Any, Protocol

from goalradar.config import Settings, settings
from goalradar.models.match import CanonicalMatch
from goalradar.models.odds import FetchStatus, OddsSnapshot
from goalradar.models.scoring import HistoryInput
from goalradar.utils import safe_float, safe_int

logger = logging.getLogger("goalradar.lookup_cache")


class DataClass(str, Enum):
    LIVE_ODDS = "live_odds"
    LIVE_FIXTURES = "live_fixtures"
    STATISTICS = "statistics"
    EVENTS = "events"
    PREMATCH_ODDS = "prematch_odds"
    TEAM_STATS = "team_stats"
    H2H = "h2h"
    REFERENCE = "reference"


def ttl_table(source: Settings | None = None) -> dict[DataClass, float]:
    cfg = source or settings
    return {
        DataClass.LIVE_ODDS: cfg.CACHE_TTL_LIVE_ODDS,
        DataClass.LIVE_FIXTURES: cfg.CACHE_TTL_LIVE_FIXTURES,
        DataClass.STATISTICS: cfg.CACHE_TTL_STATISTICS,
        DataClass.EVENTS: cfg.CACHE_TTL_EVENTS,
        DataClass.PREMATCH_ODDS: cfg.CACHE_TTL_PREMATCH_ODDS,
        DataClass.TEAM_STATS: cfg.CACHE_TTL_TEAM_STATS,
        DataClass.H2H: cfg.CACHE_TTL_H2H,
        DataClass.REFERENCE: cfg.CACHE_TTL_REFERENCE,
    }


class LookupCache:
    """Thread-safe TTL cache keyed by (data class, key)."""

    def __init__(
        self,
        ttls: dict[DataClass, float] | None = None,
        clock: Callable[[], float] = _time.monotonic,
    ) -> None:
        self._ttls = ttls or ttl_table()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[tuple[DataClass, Hashable], tuple[float, Any]] = {}
        # Writes sweep expired entries at most once per shortest TTL.
        self._sweep_interval = min((float(ttl) for ttl in self._ttls.values()), default=0.0)
        self._last_sweep = self._clock()

    def ttl_for(self, data_class: DataClass) -> float:
        return float(self._ttls[data_class])

    def set(self, data_class: DataClass, key: Hashable, value: Any) -> None:
        now = self._clock()
        expires_at = now + self.ttl_for(data_class)
        with self._lock:
            self._entries[(data_class, key)] = (expires_at, value)
            sweep = now - self._last_sweep >= self._sweep_interval
            if sweep:
                self._last_sweep = now
        if sweep:
            self.purge_expired()

    def get(self, data_class: DataClass, key: Hashable, default: Any = None) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get((data_class, key))
            if entry is None:
                return default
            expires_at, value = entry
            if now >= expires_at:
                self._entries.pop((data_class, key), None)
                return default
            return value

    def invalidate(self, data_class: DataClass | None = None, key: Hashable | None = None) -> int:
        """Drop matching entries; with no arguments the whole cache is cleared."""
        with self._lock:
            doomed = [
                entry_key
                for entry_key in self._entries
                if (data_class is None or entry_key[0] == data_class) and (key is None or entry_key[1] == key)
            ]
            for entry_key in doomed:
                del self._entries[entry_key]
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [entry_key for entry_key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for entry_key in expired:
                del self._entries[entry_key]
        if expired:
            logger.debug("Purged %d expired lookup entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class HistoryLookup(Protocol):
    """Read-only view the pipeline uses for data it does not fetch itself."""

    def history_for(self, match: CanonicalMatch) -> HistoryInput | None: ...

    def previous_odds(self, fixture_id: int) -> OddsSnapshot | None: ...


class CachedHistoryLookup:
    """HistoryLookup backed by a LookupCache.

    Expected entries:
      - TEAM_STATS[team_id]: API-Football team season statistics
      - H2H[(home_id, away_id)]: late (76+) goals in recent meetings
      - REFERENCE[("league_late_goal_avg", league_id)]: league average
      - REFERENCE[("comeback_rate", team_id)]: percentage
      - LIVE_ODDS[fixture_id]: the last captured OddsSnapshot
    """

    def __init__(self, cache: LookupCache) -> None:
        self._cache = cache

    def history_for(self, match: CanonicalMatch) -> HistoryInput | None:
        home_id, away_id = match.home.id, match.away.id
        home_stats = self._cache.get(DataClass.TEAM_STATS, home_id) if home_id else None
        away_stats = self._cache.get(DataClass.TEAM_STATS, away_id) if away_id else None
        h2h = self._cache.get(DataClass.H2H, (home_id, away_id)) if home_id and away_id else None
        league_avg = self._cache.get(DataClass.REFERENCE, ("league_late_goal_avg", match.league_id))
        home_comeback = self._cache.get(DataClass.REFERENCE, ("comeback_rate", home_id))
        away_comeback = self._cache.get(DataClass.REFERENCE, ("comeback_rate", away_id))

        if all(value is None for value in (home_stats, away_stats, h2h, league_avg, home_comeback, away_comeback)):
            return None
        return HistoryInput(
            home_team_stats=home_stats if isinstance(home_stats, dict) else None,
            away_team_stats=away_stats if isinstance(away_stats, dict) else None,
            h2h_late_goals=safe_int(h2h),
            league_late_goal_avg=safe_float(league_avg),
            home_comeback_rate=safe_float(home_comeback),
            away_comeback_rate=safe_float(away_comeback),
        )

    def previous_odds(self, fixture_id: int) -> OddsSnapshot | None:
        snapshot = self._cache.get(DataClass.LIVE_ODDS, fixture_id)
        if isinstance(snapshot, OddsSnapshot):
            return snapshot
        return None

    def remember_odds(self, snapshot: OddsSnapshot) -> None:
        """Store a successful capture so the next cycle can compare against it."""
        if snapshot.fetch_status == FetchStatus.SUCCESS and snapshot.fixture_id:
            self._cache.set(DataClass.LIVE_ODDS, snapshot.fixture_id, snapshot)


_lookup_cache_singleton: LookupCache | None = None


def get_lookup_cache() -> LookupCache:
    global _lookup_cache_singleton
    if _lookup_cache_singleton is None:
        _lookup_cache_singleton = LookupCache()
    return _lookup_cache_singleton
