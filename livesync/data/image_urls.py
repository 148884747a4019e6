"""
Image reference normalization.

Sheet editors paste image references in whatever form they have at hand:
Drive share links, bare Drive file ids, CDN URLs, local paths. The cache
stores exactly one canonical URL per image; `normalize_image_url` is
idempotent, so normalizing an already-normalized URL is a no-op.
"""
import re
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from livesync.utils.logger import get_logger

logger = get_logger("data.image_urls")

DRIVE_SHARE_PATTERN = re.compile(r"drive\.google\.com/file/d/([a-zA-Z0-9_-]+)")
DRIVE_QUERY_ID_PATTERN = re.compile(r"drive\.google\.com/(?:uc|open|thumbnail)\?(?:.*&)?id=([a-zA-Z0-9_-]+)")
BARE_DRIVE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{28,}$")

CANONICAL_DRIVE_URL = "https://drive.google.com/uc?export=view&id={file_id}"

# Object storage / CDN hosts whose URLs are served as-is
KNOWN_STORAGE_HOSTS = (
    "cloudinary.com",
    "amazonaws.com",
    "s3.",
    "firebasestorage.googleapis.com",
    "storage.googleapis.com",
    "ik.imagekit.io",
)


def _has_host(url: str) -> bool:
    try:
        return bool(urlsplit(url).netloc)
    except ValueError:
        return False


def canonical_drive_url(file_id: str) -> str:
    return CANONICAL_DRIVE_URL.format(file_id=file_id)


def extract_drive_file_id(url: str) -> Optional[str]:
    """Return the Drive file id inside a share/uc link or a bare id, else None."""
    if not url:
        return None
    text = url.strip()
    match = DRIVE_SHARE_PATTERN.search(text) or DRIVE_QUERY_ID_PATTERN.search(text)
    if match:
        return match.group(1)
    if BARE_DRIVE_ID_PATTERN.match(text):
        return text
    return None


def normalize_image_url(raw) -> Optional[str]:
    """
    Classify a raw image reference and rewrite it to its canonical form.

    - Drive share link (.../file/d/<ID>/view...) -> uc?export=view&id=<ID>
    - Other absolute http(s) URL with a host -> unchanged; without one -> None
    - Local path (leading "/") -> unchanged
    - Bare Drive file id (28+ chars of [A-Za-z0-9_-]) -> uc?export=view&id=<ID>
    - Known CDN/object storage host -> unchanged
    - Anything else, including empty -> None (caller supplies a placeholder)
    """
    if raw is None:
        return None
    url = str(raw).strip()
    if not url:
        return None

    share_match = DRIVE_SHARE_PATTERN.search(url)
    if share_match:
        return canonical_drive_url(share_match.group(1))

    if url.lower().startswith(("http://", "https://")):
        if _has_host(url):
            return url
        logger.warning(f"Image URL has no host: {url}")
        return None

    if url.startswith("/"):
        return url

    if BARE_DRIVE_ID_PATTERN.match(url):
        return canonical_drive_url(url)

    if any(host in url for host in KNOWN_STORAGE_HOSTS):
        return url

    logger.warning(f"Unable to process image URL: {url}")
    return None


def normalize_image_urls(raw_urls: Iterable) -> List[str]:
    """Normalize each reference, dropping the ones that normalize to None."""
    urls = []
    for raw in raw_urls:
        url = normalize_image_url(raw)
        if url is not None:
            urls.append(url)
    return urls


def image_url_strategies(url: str) -> List[str]:
    """
    Ordered fetch candidates for an image, for whoever serves the bytes.

    Drive images have several direct-fetch forms that fail independently;
    everything else has exactly one candidate.
    """
    canonical = normalize_image_url(url)
    if canonical is None:
        return []
    file_id = extract_drive_file_id(canonical)
    if file_id is None or "drive.google.com" not in canonical:
        return [canonical]
    return [
        canonical_drive_url(file_id),
        f"https://drive.google.com/uc?export=download&id={file_id}",
        f"https://drive.google.com/thumbnail?id={file_id}&sz=w1000",
    ]
