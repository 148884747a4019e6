"""
Filter, sort and paginate a catalog snapshot.

Everything here is a pure function of (snapshot, QuerySpec): nothing
mutates the snapshot and nothing triggers a refresh.
"""
from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from livesync.core.errors import NotFound
from livesync.data.models import CacheSnapshot, Product, slugify

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12
MAX_LIMIT = 100

# Accepted sortBy values -> Product attribute
SORT_FIELDS = {
    "id": "id",
    "product_id": "id",
    "productId": "id",
    "name": "name",
    "price": "price",
    "base_price": "price",
    "rating": "rating",
    "reviews": "reviews",
    "category": "category",
    "created_date": "created_at",
    "createdAt": "created_at",
    "is_bestseller": "is_bestseller",
    "isBestseller": "is_bestseller",
    "is_new": "is_new",
    "isNew": "is_new",
}


def _positive_int(value: Any, default: int) -> int:
    """Parse page/limit params, falling back to `default` on anything unusable."""
    if isinstance(value, bool):
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        number = value if isinstance(value, int) else int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


@dataclass(frozen=True)
class QuerySpec:
    """Normalized listing query. Build it with `from_params`."""

    text: str = ""
    category: Optional[str] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: str = "id"
    sort_order: str = "asc"

    @classmethod
    def from_params(
        cls,
        params: Optional[Mapping[str, Any]] = None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        **overrides: Any,
    ) -> "QuerySpec":
        """
        Accept raw query-string style params (strings or numbers, camelCase
        or snake_case) and normalize them.
        """
        merged: Dict[str, Any] = {**(params or {}), **overrides}

        text = merged.get("query", merged.get("text", merged.get("q"))) or ""
        category = merged.get("category")
        sort_by = merged.get("sortBy", merged.get("sort_by")) or "id"
        sort_order = merged.get("sortOrder", merged.get("sort_order")) or "asc"

        limit = _positive_int(merged.get("limit"), default_limit)
        if category is not None:
            category = str(category).strip().lower() or None
        return cls(
            text=str(text).strip(),
            category=category,
            page=_positive_int(merged.get("page"), DEFAULT_PAGE),
            limit=min(limit, max_limit),
            sort_by=SORT_FIELDS.get(str(sort_by).strip(), "id"),
            sort_order="desc" if str(sort_order).strip().lower() == "desc" else "asc",
        )

    def cache_key(self) -> str:
        return make_query_key(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.text,
            "category": self.category,
            "page": self.page,
            "limit": self.limit,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
        }


def make_query_key(spec: QuerySpec) -> str:
    """
    Deterministic cache key for a normalized query.

    Identical logical queries map to the same key regardless of parameter
    order or whether the caller passed "2" or 2.
    """
    raw = json.dumps(
        {
            "q": spec.text.lower(),
            "c": spec.category,
            "p": spec.page,
            "l": spec.limit,
            "s": spec.sort_by,
            "o": spec.sort_order,
        },
        sort_keys=True,
    )
    return f"query:{hashlib.sha256(raw.encode()).hexdigest()[:16]}"


@dataclass(frozen=True)
class Pagination:
    total: int
    pages: int
    current: int
    limit: int

    @property
    def has_next(self) -> bool:
        return self.current < self.pages

    @property
    def has_prev(self) -> bool:
        return self.current > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "pages": self.pages,
            "current": self.current,
            "limit": self.limit,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass(frozen=True)
class QueryResult:
    items: Tuple[Product, ...]
    pagination: Pagination
    spec: QuerySpec = field(default_factory=QuerySpec)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.items],
            "pagination": self.pagination.to_dict(),
        }


def _matches_text(product: Product, needle: str) -> bool:
    return (
        needle in product.name.lower()
        or needle in product.description.lower()
        or any(needle in tag.lower() for tag in product.tags)
    )


def _sort_key(attribute: str):
    def key(product: Product):
        value = getattr(product, attribute)
        if value is None or value == "":
            # Missing values sort last in both directions (see query())
            return (1, "")
        if isinstance(value, str):
            return (0, value.lower())
        return (0, value)
    return key


def query(snapshot: CacheSnapshot, spec: QuerySpec) -> QueryResult:
    """Filter, stable-sort and paginate the snapshot for one query."""
    products: List[Product] = list(snapshot.products)

    if spec.text:
        needle = spec.text.lower()
        products = [p for p in products if _matches_text(p, needle)]

    if spec.category:
        products = [p for p in products if p.category == spec.category]

    key = _sort_key(spec.sort_by)
    if spec.sort_order == "desc":
        # sorted(reverse=True) keeps ties in snapshot order; partition
        # missing values out first so they stay at the end
        present = [p for p in products if key(p)[0] == 0]
        missing = [p for p in products if key(p)[0] == 1]
        products = sorted(present, key=key, reverse=True) + missing
    else:
        products = sorted(products, key=key)

    total = len(products)
    pages = math.ceil(total / spec.limit) if total else 0
    start = (spec.page - 1) * spec.limit
    items = tuple(products[start:start + spec.limit])

    return QueryResult(
        items=items,
        pagination=Pagination(total=total, pages=pages, current=spec.page, limit=spec.limit),
        spec=spec,
    )


def find_by_slug(snapshot: CacheSnapshot, slug: str) -> Product:
    """Look up a product by slug. The slug is normalized the same way it is produced."""
    product = snapshot.product_for_slug(slugify(slug))
    if product is None:
        raise NotFound(f"No product with slug {slug!r}")
    return product


def _fold(value: Any) -> str:
    return str(value or "").strip().casefold()


def find_variant_sku(snapshot: CacheSnapshot, product_id: Any, color: str, size: str) -> str:
    """
    Exact variant lookup used by order flows.

    Color and size match case-insensitively after trimming.
    """
    pid = _positive_int(product_id, 0)
    product = snapshot.product(pid) if pid else None
    if product is None:
        raise NotFound(f"No product with id {product_id!r}")

    wanted_color, wanted_size = _fold(color), _fold(size)
    for variant in product.variants:
        if _fold(variant.color_name) == wanted_color and _fold(variant.size) == wanted_size:
            return variant.sku
    raise NotFound(
        f"No variant of product {pid} with color {color!r} and size {size!r}"
    )
