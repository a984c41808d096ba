"""Proximity cache for aggregated search results.

Entries are keyed by an anchor point instead of exact coordinates: a lookup
hits any unexpired entry whose anchor lies within CACHE_RADIUS_M. Writing
near an existing entry replaces that entry (new anchor, records, stats and
expiry) rather than adding a second one.

Expired entries are invisible to get() but are only removed by the sweep job,
which a background scheduler runs every CACHE_SWEEP_INTERVAL_S until close()
is called.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

import config
from grid import distance_m
from models import SearchStats, VenueRecord

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    lat: float
    lon: float
    records: list[VenueRecord]
    stats: SearchStats
    expires_at: float


class _ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    def acquire_read(self) -> None:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True

    def release_write(self) -> None:
        with self._cond:
            self._writing = False
            self._cond.notify_all()


class ProximityCache:
    def __init__(
        self,
        ttl_s: float = config.CACHE_TTL_S,
        radius_m: float = config.CACHE_RADIUS_M,
        sweep_interval_s: float | None = config.CACHE_SWEEP_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_s = ttl_s
        self.radius_m = radius_m
        self._clock = clock
        self._entries: list[CacheEntry] = []
        self._lock = _ReadWriteLock()
        self._scheduler: BackgroundScheduler | None = None
        if sweep_interval_s:
            self._scheduler = BackgroundScheduler()
            self._scheduler.add_job(self.sweep, "interval", seconds=sweep_interval_s, id="proximity_cache_sweep")
            self._scheduler.start()

    def __len__(self) -> int:
        self._lock.acquire_read()
        try:
            return len(self._entries)
        finally:
            self._lock.release_read()

    def get(self, lat: float, lon: float) -> tuple[list[VenueRecord], SearchStats] | None:
        """Copies of the records and stats (cached_result=True) of a live entry within the radius, else None."""
        now = self._clock()
        self._lock.acquire_read()
        try:
            for entry in self._entries:
                if now >= entry.expires_at:
                    continue
                if distance_m(lat, lon, entry.lat, entry.lon) <= self.radius_m:
                    stats = entry.stats.model_copy(update={"cached_result": True})
                    return [r.model_copy() for r in entry.records], stats
        finally:
            self._lock.release_read()
        return None

    def set(
        self,
        lat: float,
        lon: float,
        records: list[VenueRecord],
        stats: SearchStats,
        ttl_s: float | None = None,
    ) -> None:
        entry = CacheEntry(
            lat=lat,
            lon=lon,
            records=[r.model_copy() for r in records],
            stats=stats.model_copy(),
            expires_at=self._clock() + (self.ttl_s if ttl_s is None else ttl_s),
        )
        self._lock.acquire_write()
        try:
            for i, existing in enumerate(self._entries):
                if distance_m(lat, lon, existing.lat, existing.lon) <= self.radius_m:
                    self._entries[i] = entry
                    return
            self._entries.append(entry)
        finally:
            self._lock.release_write()

    def sweep(self) -> int:
        """Remove expired entries; returns how many were dropped."""
        now = self._clock()
        self._lock.acquire_write()
        try:
            before = len(self._entries)
            self._entries = [e for e in self._entries if now < e.expires_at]
            removed = before - len(self._entries)
        finally:
            self._lock.release_write()
        if removed:
            logger.info("Cache sweep removed %d expired entries", removed)
        return removed

    def close(self) -> None:
        """Stop the sweep scheduler. Safe to call more than once."""
        if self._scheduler is not None:
            self._scheduler.shutdown()
            self._scheduler = None
