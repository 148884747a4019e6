"""
Pre-warm image URLs referenced by the catalog.

Issues HEAD requests in small batches so the image host (usually Drive)
has the files hot before shoppers request them. Failures are counted and
reported, never raised.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import httpx

from livesync.data.models import CacheSnapshot, Product
from livesync.utils.logger import get_logger

logger = get_logger("core.image_warmer")

WARM_USER_AGENT = "Mozilla/5.0 (compatible; livesync-image-warmer/0.1)"


@dataclass
class ImageWarmReport:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"success": self.success, "failed": self.failed, "errors": list(self.errors)}


def collect_image_urls(products: Iterable[Product]) -> List[str]:
    """Distinct absolute image URLs of products and their variants, first-seen order."""
    urls: List[str] = []
    seen = set()
    for product in products:
        candidates = list(product.images)
        for variant in product.variants:
            candidates.extend(variant.images)
        for url in candidates:
            # Local paths are served by the app itself
            if url.startswith(("http://", "https://")) and url not in seen:
                seen.add(url)
                urls.append(url)
    return urls


class ImageWarmer:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        batch_size: int = 5,
        batch_delay_seconds: float = 0.2,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._client = client
        self.batch_size = max(batch_size, 1)
        self.batch_delay_seconds = batch_delay_seconds
        self.timeout_seconds = timeout_seconds

    async def warm_snapshot(self, snapshot: CacheSnapshot) -> ImageWarmReport:
        return await self.warm(collect_image_urls(snapshot.products))

    async def warm(self, urls: List[str]) -> ImageWarmReport:
        report = ImageWarmReport()
        if not urls:
            return report

        logger.info(f"Warming {len(urls)} images...")
        if self._client is not None:
            await self._warm_batches(self._client, urls, report)
        else:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": WARM_USER_AGENT},
            ) as client:
                await self._warm_batches(client, urls, report)

        logger.info(f"Image warming complete: {report.success} success, {report.failed} failed")
        return report

    async def _warm_batches(self, client: httpx.AsyncClient, urls: List[str], report: ImageWarmReport) -> None:
        for start in range(0, len(urls), self.batch_size):
            batch = urls[start:start + self.batch_size]
            await asyncio.gather(*(self._warm_one(client, url, report) for url in batch))
            if start + self.batch_size < len(urls) and self.batch_delay_seconds:
                await asyncio.sleep(self.batch_delay_seconds)

    async def _warm_one(self, client: httpx.AsyncClient, url: str, report: ImageWarmReport) -> None:
        try:
            response = await client.head(url, follow_redirects=True)
        except httpx.HTTPError as e:
            report.failed += 1
            report.errors.append(f"{url}: {e}")
            logger.warning(f"Image warm error: {url} ({e})")
            return
        except Exception as e:
            # Malformed URLs fail before any request is sent
            report.failed += 1
            report.errors.append(f"{url}: {e}")
            logger.warning(f"Image URL rejected: {url} ({type(e).__name__}: {e})")
            return

        if response.is_success:
            report.success += 1
            logger.debug(f"Warmed: {url}")
        else:
            report.failed += 1
            report.errors.append(f"{url}: {response.status_code} {response.reason_phrase}")
            logger.warning(f"Image warm failed: {url} ({response.status_code})")
