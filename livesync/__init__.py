"""
livesync - Live Sheet product catalog

Serves a storefront catalog maintained in a Google Sheet with:
- Tolerant row parsing into products and variants
- An in-process snapshot cache with TTL and coalesced refresh
- Filtering, sorting and pagination over the cached snapshot
- Manual invalidation, warm-up and scheduled sync
"""

from livesync.core.catalog_service import LiveCatalogService
from livesync.core.config import SyncConfig, get_config, set_config

__all__ = [
    'LiveCatalogService',
    'SyncConfig',
    'get_config',
    'set_config',
]

__version__ = '0.1.0'
