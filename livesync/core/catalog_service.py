"""
Catalog facade consumed by the HTTP layer.

Owns one CacheStore (constructed once per process and passed around by
reference) and applies the stale-serving policy: when a refresh fails and a
previous snapshot exists, that snapshot is served; only when nothing was
ever loaded does the failure reach the caller.
"""
from typing import Any, Dict, List, Mapping, Optional

from livesync.core.cache_store import MISS, CacheStore, RowSource
from livesync.core.config import SyncConfig
from livesync.core.control import CacheControl, SyncReport, WarmReport
from livesync.core.errors import RefreshFailed
from livesync.core.image_warmer import ImageWarmer
from livesync.core.query_engine import (
    QueryResult,
    QuerySpec,
    find_by_slug,
    find_variant_sku,
    query,
)
from livesync.data.models import CacheSnapshot, Product
from livesync.data.sheet_fetcher import SheetFetcher
from livesync.utils.logger import get_logger

logger = get_logger("core.catalog_service")


class LiveCatalogService:
    def __init__(
        self,
        config: SyncConfig,
        store: CacheStore,
        image_warmer: Optional[ImageWarmer] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.control = CacheControl(
            store,
            run_query=self.list_products,
            default_profiles=config.warm_profiles,
            image_warmer=image_warmer,
        )

    @classmethod
    def from_config(cls, config: SyncConfig, fetcher: Optional[RowSource] = None) -> "LiveCatalogService":
        """Build the service with a real SheetFetcher. Raises NotConfigured."""
        fetcher = fetcher or SheetFetcher(config)
        store = CacheStore(fetcher, ttl_seconds=config.ttl_seconds)
        warmer = ImageWarmer(
            batch_size=config.image_warm_batch_size,
            timeout_seconds=config.fetch_timeout_seconds,
        )
        return cls(config, store, image_warmer=warmer)

    async def snapshot(self) -> CacheSnapshot:
        """Fresh snapshot, refreshing on miss; stale snapshot if the refresh fails."""
        cached = self.store.get()
        if cached is not MISS:
            return cached

        stale = self.store.snapshot
        if stale is not None and self.store.failed_recently(self.config.failure_backoff_seconds):
            logger.debug("Serving stale snapshot during failure backoff")
            return stale

        try:
            return await self.store.refresh()
        except RefreshFailed as e:
            if self.store.snapshot is None:
                raise
            logger.warning(
                f"Serving stale snapshot (generation {self.store.snapshot.generation}): {e.cause}"
            )
            return self.store.snapshot

    # ------------------------------------------------------------------
    # Exposed operations
    # ------------------------------------------------------------------

    async def list_products(self, filters: Optional[Mapping[str, Any]] = None, **params: Any) -> QueryResult:
        spec = QuerySpec.from_params(
            filters,
            default_limit=self.config.default_page_size,
            max_limit=self.config.max_page_size,
            **params,
        )
        snapshot = await self.snapshot()

        key = spec.cache_key()
        cached = self.store.get(key)
        if cached is not MISS:
            logger.debug(f"Query cache hit {key}")
            return cached

        result = query(snapshot, spec)
        self.store.put(key, result, generation=snapshot.generation)
        return result

    async def get_product_by_slug(self, slug: str) -> Product:
        return find_by_slug(await self.snapshot(), slug)

    async def get_variant_sku(self, product_id: Any, color: str, size: str) -> str:
        return find_variant_sku(await self.snapshot(), product_id, color, size)

    def clear_cache(self) -> None:
        self.control.clear()

    async def warm_cache(self, profiles: Optional[List[Mapping[str, Any]]] = None) -> WarmReport:
        return await self.control.warm(profiles)

    async def sync_now(self, warm_images: bool = False) -> SyncReport:
        return await self.control.scheduled_sync(warm_images=warm_images)

    def stats(self) -> Dict[str, Any]:
        return {
            "cache": self.store.stats(),
            "config": {
                "sheet_id": self.config.sheet_id,
                "sheet_name": self.config.sheet_name or None,
                "sheet_range": self.config.sheet_range,
                "auth": "service_account" if self.config.uses_service_account else "api_key",
                "failure_backoff_seconds": self.config.failure_backoff_seconds,
                "warm_profiles": len(self.config.warm_profiles),
            },
        }

    async def aclose(self) -> None:
        close = getattr(self.store.fetcher, "aclose", None)
        if close is not None:
            await close()
