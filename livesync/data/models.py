"""
Catalog data model.

Products and variants are frozen dataclasses holding tuples, so a snapshot
handed to readers cannot be changed underneath them. `to_dict()` produces
the camelCase shape the storefront API returns.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """
    Derive the URL slug for a product name.

    Example: "Acid Washed Oversized Tee" -> "acid-washed-oversized-tee"
    """
    return _SLUG_STRIP.sub("-", (name or "").lower()).strip("-")


@dataclass(frozen=True)
class Color:
    name: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "value": self.value}


@dataclass(frozen=True)
class Variant:
    """A color/size-specific purchasable unit of a product."""

    variant_id: str
    product_id: int
    color_name: str
    color_value: str
    size: str
    sku: str
    price: float                        # Already resolved against the parent price
    images: Tuple[str, ...]             # Already resolved against the parent images
    stock_quantity: int
    is_available: bool
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.variant_id,
            "productId": self.product_id,
            "colorName": self.color_name,
            "colorValue": self.color_value,
            "size": self.size,
            "sku": self.sku,
            "price": self.price,
            "images": list(self.images),
            "stockQuantity": self.stock_quantity,
            "isAvailable": self.is_available,
        }


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    description: str = ""
    category: str = "uncategorized"     # Lower-cased and trimmed
    type: str = "clothing"
    price: float = 0.0
    images: Tuple[str, ...] = ()
    colors: Tuple[Color, ...] = ()
    sizes: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    is_new: bool = False
    is_bestseller: bool = False
    rating: float = 0.0
    reviews: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    variants: Tuple[Variant, ...] = ()

    @property
    def slug(self) -> str:
        return slugify(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "type": self.type,
            "price": self.price,
            "images": list(self.images),
            "colors": [c.to_dict() for c in self.colors],
            "sizes": list(self.sizes),
            "tags": list(self.tags),
            "isNew": self.is_new,
            "isBestseller": self.is_bestseller,
            "rating": self.rating,
            "reviews": self.reviews,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "variants": [v.to_dict() for v in self.variants],
        }


@dataclass(frozen=True)
class CacheSnapshot:
    """One fully parsed copy of the catalog as of a single fetch."""

    products: Tuple[Product, ...]
    fetched_at: datetime
    source_row_count: int
    dropped_rows: int = 0
    generation: int = 0
    _by_id: Dict[int, Product] = field(default=None, init=False, repr=False, compare=False)
    _by_slug: Dict[str, Product] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        by_id: Dict[int, Product] = {}
        by_slug: Dict[str, Product] = {}
        for product in self.products:
            by_id.setdefault(product.id, product)
            by_slug.setdefault(product.slug, product)
        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(self, "_by_slug", by_slug)

    def __len__(self) -> int:
        return len(self.products)

    def product(self, product_id: int) -> Optional[Product]:
        return self._by_id.get(product_id)

    def product_for_slug(self, slug: str) -> Optional[Product]:
        return self._by_slug.get(slug)

    def describe(self) -> Dict[str, Any]:
        return {
            "products": len(self.products),
            "variants": sum(len(p.variants) for p in self.products),
            "fetchedAt": self.fetched_at.isoformat(),
            "sourceRowCount": self.source_row_count,
            "droppedRows": self.dropped_rows,
            "generation": self.generation,
        }

