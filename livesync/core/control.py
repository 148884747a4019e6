"""
Externally triggered cache lifecycle operations.

- clear():          manual invalidation (admin button, ?refresh=true)
- warm(profiles):   refresh if needed, then pre-run listing queries
- scheduled_sync(): refresh on behalf of a cron job; reports, never raises
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from livesync.core.cache_store import MISS, CacheStore
from livesync.core.errors import RefreshFailed
from livesync.core.image_warmer import ImageWarmer
from livesync.utils.logger import get_logger

logger = get_logger("core.control")

QueryRunner = Callable[[Mapping[str, Any]], Awaitable[Any]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class WarmReport:
    refreshed: bool = False
    profiles: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    refresh_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.refresh_error is None and self.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "refreshed": self.refreshed,
            "profiles": self.profiles,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": list(self.errors),
            "refreshError": self.refresh_error,
        }


@dataclass
class SyncReport:
    success: bool
    message: str
    timestamp: str = field(default_factory=_now_iso)
    products: int = 0
    variants: int = 0
    source_rows: int = 0
    dropped_rows: int = 0
    duration_seconds: float = 0.0
    error: Optional[str] = None
    stale_available: bool = False
    image_warming: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp,
            "stats": {
                "products": self.products,
                "variants": self.variants,
                "sourceRows": self.source_rows,
                "droppedRows": self.dropped_rows,
                "durationSeconds": round(self.duration_seconds, 3),
            },
            "error": self.error,
            "staleAvailable": self.stale_available,
            "imageWarming": self.image_warming,
        }


class CacheControl:
    """
    Orchestrates CacheStore lifecycle on behalf of admin and cron triggers.

    Args:
        store: the process-wide CacheStore
        run_query: coroutine function running (and caching) one listing query
        default_profiles: query profiles warmed when none are given
        image_warmer: optional ImageWarmer used by scheduled_sync(warm_images=True)
    """

    def __init__(
        self,
        store: CacheStore,
        run_query: QueryRunner,
        default_profiles: Optional[List[Mapping[str, Any]]] = None,
        image_warmer: Optional[ImageWarmer] = None,
    ) -> None:
        self.store = store
        self._run_query = run_query
        self.default_profiles = list(default_profiles or [])
        self.image_warmer = image_warmer

    def clear(self) -> None:
        self.store.invalidate()

    async def warm(self, profiles: Optional[List[Mapping[str, Any]]] = None) -> WarmReport:
        profiles = list(profiles) if profiles is not None else self.default_profiles
        report = WarmReport(profiles=len(profiles))

        if self.store.get() is MISS:
            try:
                await self.store.refresh()
                report.refreshed = True
            except RefreshFailed as e:
                report.refresh_error = str(e)
                if self.store.snapshot is None:
                    logger.error(f"Cache warm aborted, no snapshot available: {e}")
                    return report
                logger.warning(f"Cache warm continuing on stale snapshot: {e}")

        results = await asyncio.gather(
            *(self._run_query(profile) for profile in profiles),
            return_exceptions=True,
        )
        for profile, result in zip(profiles, results):
            if isinstance(result, Exception):
                report.failed += 1
                report.errors.append(f"{dict(profile)}: {result}")
                logger.warning(f"Warm-up query {dict(profile)} failed: {result}")
            else:
                report.succeeded += 1

        logger.info(f"Cache warmed: {report.succeeded}/{report.profiles} profiles")
        return report

    async def scheduled_sync(self, warm_images: bool = False) -> SyncReport:
        started = time.monotonic()
        logger.info(f"Scheduled sync started at {_now_iso()}")

        try:
            snapshot = await self.store.refresh()
        except RefreshFailed as e:
            return SyncReport(
                success=False,
                message="Scheduled sync failed",
                error=str(e.cause),
                stale_available=e.has_stale,
                duration_seconds=time.monotonic() - started,
            )
        except Exception as e:
            logger.exception(f"Scheduled sync crashed: {e}")
            return SyncReport(
                success=False,
                message="Scheduled sync failed",
                error=str(e),
                stale_available=self.store.snapshot is not None,
                duration_seconds=time.monotonic() - started,
            )

        report = SyncReport(
            success=True,
            message="Sync completed successfully",
            products=len(snapshot),
            variants=sum(len(p.variants) for p in snapshot.products),
            source_rows=snapshot.source_row_count,
            dropped_rows=snapshot.dropped_rows,
            duration_seconds=time.monotonic() - started,
        )
        if warm_images and self.image_warmer is not None:
            try:
                report.image_warming = (await self.image_warmer.warm_snapshot(snapshot)).to_dict()
            except Exception as e:
                # The catalog sync itself succeeded; only the warming part is reported as failed
                logger.exception(f"Image warming crashed: {e}")
                report.image_warming = {"success": 0, "failed": 0, "errors": [f"Image warming crashed: {e}"]}

        logger.info(f"Scheduled sync completed: {report.products} products in {report.duration_seconds:.2f}s")
        return report
