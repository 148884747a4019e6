"""
Pydantic models for livesync API requests and responses.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any, List


class PaginationModel(BaseModel):
    """Pagination block of a product listing."""
    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(description="Products matching the filters")
    pages: int = Field(description="Number of pages (0 when nothing matches)")
    current: int = Field(description="Requested page, 1-based")
    limit: int = Field(description="Page size actually applied")
    has_next: bool = Field(alias="hasNext", description="A later page exists")
    has_prev: bool = Field(alias="hasPrev", description="An earlier page exists")


class ProductListResponse(BaseModel):
    """Response model for the live product listing."""
    products: List[Dict[str, Any]] = Field(description="Products on the requested page, camelCase fields")
    pagination: PaginationModel


class ProductResponse(BaseModel):
    """Response model for a single product lookup."""
    product: Dict[str, Any] = Field(description="Product with its variants")


class VariantSkuResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: str
    product_id: int = Field(alias="productId")
    color: str
    size: str


class ClearCacheResponse(BaseModel):
    success: bool
    message: str
    timestamp: str


class WarmCacheRequest(BaseModel):
    """Optional override of the configured warm-up profiles."""
    profiles: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Listing queries to pre-run, e.g. {'category': 'tshirt', 'page': 1}",
    )


class WarmCacheResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    refreshed: bool = Field(description="Whether a sheet refresh ran first")
    profiles: int
    succeeded: int
    failed: int
    errors: List[str] = Field(default_factory=list)
    refresh_error: Optional[str] = Field(default=None, alias="refreshError")


class SyncResponse(BaseModel):
    """Response model for the scheduled sync endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    timestamp: str
    stats: Dict[str, Any] = Field(description="Product/variant/row counts and duration")
    error: Optional[str] = None
    stale_available: bool = Field(default=False, alias="staleAvailable", description="A previous snapshot is still being served")
    image_warming: Optional[Dict[str, Any]] = Field(default=None, alias="imageWarming")


class ImageStrategiesResponse(BaseModel):
    url: str
    candidates: List[str] = Field(description="Ordered fetch candidates, canonical URL first")


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    configured: bool
    missing: List[str] = Field(default_factory=list, description="Unset configuration variables")
    snapshot: Optional[Dict[str, Any]] = Field(default=None, description="Currently cached snapshot, if any")
