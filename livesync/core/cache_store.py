"""
In-process cache for the live product sheet.

Holds exactly one CacheSnapshot plus per-query result entries derived from
it. The snapshot is never mutated: a refresh builds a complete new snapshot
and then swaps a single reference, so readers see either the old or the new
catalog, never a half-built one.

Concurrency contract: at most one refresh is in flight. Callers that ask for
a refresh while one is running await the same task instead of issuing a
second fetch against the sheet.

Failure contract: a failed refresh raises RefreshFailed and leaves the
previous snapshot in place.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from livesync.core.errors import RefreshFailed, SourceAuthError, SourceError, SourceUnavailable
from livesync.data.models import CacheSnapshot
from livesync.data.row_parser import ParseResult, parse_rows
from livesync.utils.logger import get_logger

logger = get_logger("core.cache_store")


class RowSource(Protocol):
    async def fetch(self) -> List[List[Any]]: ...


class _Miss:
    """Sentinel returned by CacheStore.get on a miss."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    generation: int
    stored_at: float


class CacheStore:
    """
    Snapshot cache with TTL, manual invalidation and coalesced refresh.

    Args:
        fetcher: anything with an async `fetch()` returning raw rows
        ttl_seconds: age after which the snapshot (and its entries) is stale
        parser: rows -> ParseResult, defaults to the sheet row parser
        clock: monotonic time source, injectable for tests
    """

    def __init__(
        self,
        fetcher: RowSource,
        ttl_seconds: float = 60.0,
        parser: Callable[[Sequence[Sequence[Any]]], ParseResult] = parse_rows,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._parser = parser
        self._clock = clock
        self.ttl_seconds = ttl_seconds

        self._snapshot: Optional[CacheSnapshot] = None
        self._loaded_at: Optional[float] = None
        self._invalidated = False
        self._invalidations = 0
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Optional[asyncio.Task] = None
        self._last_failure_at: Optional[float] = None
        self._last_error: Optional[str] = None

        self._stats = {
            "hits": 0,
            "misses": 0,
            "refreshes": 0,
            "failed_refreshes": 0,
            "coalesced_refreshes": 0,
            "invalidations": 0,
        }

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[CacheSnapshot]:
        """Last successfully built snapshot, fresh or not."""
        return self._snapshot

    @property
    def fetcher(self) -> RowSource:
        return self._fetcher

    @property
    def generation(self) -> int:
        return self._snapshot.generation if self._snapshot else 0

    @property
    def refresh_in_flight(self) -> bool:
        return self._inflight is not None

    def age_seconds(self) -> Optional[float]:
        if self._loaded_at is None:
            return None
        return self._clock() - self._loaded_at

    def is_fresh(self) -> bool:
        if self._snapshot is None or self._invalidated:
            return False
        return self.age_seconds() <= self.ttl_seconds

    def get(self, key: Optional[str] = None) -> Any:
        """
        Return the fresh snapshot (key None) or a fresh query entry, else MISS.
        """
        if not self.is_fresh():
            self._stats["misses"] += 1
            logger.debug("Cache miss: no fresh snapshot")
            return MISS

        if key is None:
            self._stats["hits"] += 1
            return self._snapshot

        entry = self._entries.get(key)
        if (
            entry is None
            or entry.generation != self.generation
            or self._clock() - entry.stored_at > self.ttl_seconds
        ):
            self._stats["misses"] += 1
            logger.debug(f"Cache miss for {key}")
            return MISS

        self._stats["hits"] += 1
        return entry.value

    def put(self, key: str, value: Any, generation: int) -> bool:
        """Store a value derived from snapshot `generation`; ignored if outdated."""
        if generation != self.generation or not self.is_fresh():
            return False
        self._entries[key] = CacheEntry(value=value, generation=generation, stored_at=self._clock())
        return True

    def failed_recently(self, window_seconds: float) -> bool:
        if self._last_failure_at is None:
            return False
        return self._clock() - self._last_failure_at < window_seconds

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def invalidate(self) -> None:
        """Force the next get() to miss. Does not fetch; the old snapshot stays as stale fallback."""
        if not self._invalidated:
            logger.info("Sheet cache invalidated")
        self._invalidated = True
        self._invalidations += 1
        self._stats["invalidations"] += 1
        self._entries.clear()

    async def refresh(self) -> CacheSnapshot:
        """Fetch, parse and swap in a new snapshot. Joins an in-flight refresh if any."""
        if self._inflight is not None:
            self._stats["coalesced_refreshes"] += 1
            logger.debug("Refresh already in flight, awaiting it")
            return await asyncio.shield(self._inflight)

        task = asyncio.get_running_loop().create_task(self._run_refresh())
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved; every awaiting caller gets it re-raised anyway
            task.exception()

    async def _run_refresh(self) -> CacheSnapshot:
        started = self._clock()
        invalidations_at_start = self._invalidations
        logger.info("Refreshing catalog from sheet...")

        try:
            rows = await self._fetcher.fetch()
        except SourceError as e:
            self._record_failure(e)
            raise RefreshFailed(e, has_stale=self._snapshot is not None) from e
        except Exception as e:
            logger.exception(f"Unexpected error fetching sheet: {e}")
            error = SourceUnavailable(f"Unexpected error fetching sheet: {e}")
            self._record_failure(error)
            raise RefreshFailed(error, has_stale=self._snapshot is not None) from e

        result = self._parser(rows)
        snapshot = CacheSnapshot(
            products=tuple(result.products),
            fetched_at=datetime.now(timezone.utc),
            source_row_count=result.source_row_count,
            dropped_rows=result.dropped_rows,
            generation=self.generation + 1,
        )

        # Single reference swap
        self._snapshot = snapshot
        self._loaded_at = self._clock()
        self._entries.clear()
        self._invalidated = self._invalidations != invalidations_at_start
        self._last_failure_at = None
        self._last_error = None
        self._stats["refreshes"] += 1

        logger.info(
            f"Cached {len(snapshot)} products from {result.source_row_count} rows "
            f"({result.dropped_rows} dropped, {result.inactive_rows} inactive, "
            f"{len(result.sku_collisions)} SKU collisions) in {self._clock() - started:.2f}s"
        )
        return snapshot

    def _record_failure(self, error: SourceError) -> None:
        self._stats["failed_refreshes"] += 1
        self._last_failure_at = self._clock()
        self._last_error = str(error)
        has_stale = self._snapshot is not None

        if isinstance(error, SourceAuthError):
            logger.error(f"Sheet credentials rejected, fix configuration: {error}")
        elif not error.transient:
            logger.error(f"Sheet refresh failed permanently: {error}")
        elif has_stale:
            logger.warning(f"Sheet refresh failed, keeping previous snapshot: {error}")
        else:
            logger.error(f"Sheet refresh failed and no snapshot is cached: {error}")

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        total = self._stats["hits"] + self._stats["misses"]
        age = self.age_seconds()
        return {
            **self._stats,
            "hit_rate_pct": round(self._stats["hits"] / total * 100, 2) if total else 0.0,
            "entries": len(self._entries),
            "fresh": self.is_fresh(),
            "ttl_seconds": self.ttl_seconds,
            "age_seconds": round(age, 3) if age is not None else None,
            "refresh_in_flight": self.refresh_in_flight,
            "last_error": self._last_error,
            "snapshot": self._snapshot.describe() if self._snapshot else None,
        }
