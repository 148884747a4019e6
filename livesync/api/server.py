"""
FastAPI server for the live sheet catalog.

Usage:
    python -m livesync.api.server
    # or
    uvicorn livesync.api.server:app --reload --port 8000
"""
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from livesync.api.models import (
    ClearCacheResponse,
    HealthResponse,
    ImageStrategiesResponse,
    ProductListResponse,
    ProductResponse,
    SyncResponse,
    VariantSkuResponse,
    WarmCacheRequest,
    WarmCacheResponse,
)
from livesync.core.catalog_service import LiveCatalogService
from livesync.core.config import get_config
from livesync.core.errors import NotConfigured, NotFound, RefreshFailed
from livesync.data.image_urls import image_url_strategies
from livesync.utils.logger import get_logger

logger = get_logger("api.server")

LISTING_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=120"


def _catalog(request: Request) -> LiveCatalogService:
    catalog = request.app.state.catalog
    if catalog is None:
        raise NotConfigured(request.app.state.missing or ["LIVE_SHEET_ID"])
    return catalog


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def create_app(catalog: Optional[LiveCatalogService] = None) -> FastAPI:
    """Build the API. Pass `catalog` to skip building one from configuration."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.catalog is None:
            try:
                app.state.catalog = LiveCatalogService.from_config(get_config())
            except NotConfigured as e:
                app.state.missing = e.missing
                logger.error(f"Live sheet not configured: {', '.join(e.missing)}")

        service = app.state.catalog
        if service is not None:
            if os.getenv("LIVESYNC_SKIP_PRELOAD", "0") == "1":
                logger.info("Skipping cache warm-up (LIVESYNC_SKIP_PRELOAD=1)")
            else:
                try:
                    report = await service.warm_cache()
                    if not report.success:
                        logger.warning("Startup warm-up incomplete, first requests will fetch the sheet")
                except Exception as e:
                    logger.warning(f"Failed to warm cache at startup: {e}")
                    logger.warning("Catalog will load on first request")

        yield

        if app.state.catalog is not None:
            await app.state.catalog.aclose()

    app = FastAPI(
        title="Live Sheet Catalog",
        description="Product catalog served from a Google Sheet through an in-process cache",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.catalog = catalog
    app.state.missing = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(NotConfigured)
    async def not_configured_handler(request: Request, exc: NotConfigured):
        return JSONResponse(
            status_code=500,
            content={"error": "Live sheet not configured", "missing": exc.missing},
        )

    @app.exception_handler(RefreshFailed)
    async def refresh_failed_handler(request: Request, exc: RefreshFailed):
        return JSONResponse(
            status_code=503,
            content={"error": "Catalog temporarily unavailable", "detail": str(exc.cause)},
        )

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "type": type(exc).__name__},
        )

    # ------------------------------------------------------------------
    # Storefront
    # ------------------------------------------------------------------

    @app.get("/api/products/live", response_model=ProductListResponse)
    async def list_live_products(
        request: Request,
        response: Response,
        query: Optional[str] = None,
        category: Optional[str] = None,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        sort_by: Optional[str] = Query(default=None, alias="sortBy"),
        sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
        refresh: Optional[str] = None,
    ):
        catalog = _catalog(request)
        if _flag(refresh):
            catalog.clear_cache()

        result = await catalog.list_products(
            query=query,
            category=category,
            page=page,
            limit=limit,
            sortBy=sort_by,
            sortOrder=sort_order,
        )
        response.headers["Cache-Control"] = LISTING_CACHE_CONTROL
        return result.to_dict()

    @app.get("/api/products/variant-sku", response_model=VariantSkuResponse)
    async def variant_sku(
        request: Request,
        product_id: Optional[str] = Query(default=None, alias="productId"),
        color: Optional[str] = None,
        size: Optional[str] = None,
    ):
        if not product_id or not color or not size:
            raise HTTPException(status_code=400, detail="productId, color and size are required")

        sku = await _catalog(request).get_variant_sku(product_id, color, size)
        return {"sku": sku, "productId": int(float(product_id)), "color": color, "size": size}

    @app.get("/api/products/live/{slug}", response_model=ProductResponse)
    async def product_by_slug(slug: str, request: Request, response: Response, refresh: Optional[str] = None):
        catalog = _catalog(request)
        if _flag(refresh):
            catalog.clear_cache()

        product = await catalog.get_product_by_slug(slug)
        response.headers["Cache-Control"] = LISTING_CACHE_CONTROL
        return {"product": product.to_dict()}

    @app.get("/api/images/strategies", response_model=ImageStrategiesResponse)
    def image_strategies(url: str):
        candidates = image_url_strategies(url)
        if not candidates:
            raise HTTPException(status_code=400, detail=f"Unrecognised image reference: {url}")
        return {"url": url, "candidates": candidates}

    # ------------------------------------------------------------------
    # Admin / cron
    # ------------------------------------------------------------------

    @app.post("/api/admin/clear-sheet-cache", response_model=ClearCacheResponse)
    def clear_sheet_cache(request: Request):
        _catalog(request).clear_cache()
        return {
            "success": True,
            "message": "Sheet cache cleared successfully",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/api/admin/warm-cache", response_model=WarmCacheResponse)
    async def warm_cache(request: Request, body: Optional[WarmCacheRequest] = None):
        profiles = body.profiles if body is not None else None
        report = await _catalog(request).warm_cache(profiles)
        return report.to_dict()

    @app.post("/api/cron/sync", response_model=SyncResponse)
    async def cron_sync(
        request: Request,
        warm_images: Optional[str] = Query(default=None, alias="warmImages"),
    ):
        catalog = _catalog(request)
        secret = catalog.config.cron_secret
        if secret and request.headers.get("authorization") != f"Bearer {secret}":
            raise HTTPException(status_code=401, detail="Unauthorized")

        report = await catalog.sync_now(warm_images=_flag(warm_images))
        content = SyncResponse.model_validate(report.to_dict()).model_dump(by_alias=True)
        return JSONResponse(status_code=200 if report.success else 500, content=content)

    @app.get("/api/admin/cache-stats")
    def cache_stats(request: Request):
        return _catalog(request).stats()

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request):
        catalog = request.app.state.catalog
        if catalog is None:
            return {"status": "not_configured", "configured": False, "missing": request.app.state.missing}
        snapshot = catalog.store.snapshot
        return {
            "status": "ok" if snapshot is not None else "cold",
            "configured": True,
            "snapshot": snapshot.describe() if snapshot is not None else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    print("=" * 60)
    print("Live Sheet Catalog API")
    print("=" * 60)
    print("API Documentation: http://localhost:8000/docs")
    print("")
    print("Environment variables:")
    print("  LIVE_SHEET_ID                - Spreadsheet id (required)")
    print("  GOOGLE_SHEETS_API_KEY        - API key, or a service account:")
    print("  GOOGLE_SHEETS_CLIENT_EMAIL / GOOGLE_SHEETS_PRIVATE_KEY")
    print("  LIVESYNC_SKIP_PRELOAD=1      - Skip cache warm-up at startup")
    print("=" * 60)

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
