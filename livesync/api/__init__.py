"""
API module for livesync.

Provides the REST endpoints consumed by the storefront, admin panel and cron.
"""
from livesync.api.models import (
    ProductListResponse,
    ProductResponse,
    VariantSkuResponse,
    WarmCacheRequest,
    WarmCacheResponse,
    SyncResponse,
)

__all__ = [
    "ProductListResponse",
    "ProductResponse",
    "VariantSkuResponse",
    "WarmCacheRequest",
    "WarmCacheResponse",
    "SyncResponse",
]
