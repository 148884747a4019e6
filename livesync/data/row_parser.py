"""
Turn raw sheet rows into Product/Variant records.

Sheet layout: one row per variant, rows sharing a product_id belong to the
same product. Columns are located through the header row so editors can
reorder them; when no header row is present the standard column order
(A..V) is assumed.

Parsing never raises. A row without a usable positive integer id or a name
is dropped and counted; every other bad cell falls back to a default.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from livesync.core.errors import ParseRowError
from livesync.data.image_urls import normalize_image_urls
from livesync.data.models import Color, Product, Variant
from livesync.utils.logger import get_logger

logger = get_logger("data.row_parser")

# Standard column order (A..V) of the product sheet
COLUMNS: Tuple[str, ...] = (
    "product_id", "name", "description", "category", "type", "base_price",
    "color_name", "color_hex", "size", "variant_sku", "variant_price",
    "stock_quantity", "image_url_1", "image_url_2", "image_url_3",
    "image_url_4", "tags", "is_new", "is_bestseller", "is_active",
    "created_date", "last_updated",
)

# Optional columns only recognised through the header row
OPTIONAL_COLUMNS = ("colors", "sizes", "rating", "reviews")

HEADER_ALIASES = {
    "id": "product_id",
    "productid": "product_id",
    "price": "base_price",
    "sku": "variant_sku",
    "stock": "stock_quantity",
    "color": "color_name",
    "colour": "color_name",
    "color_value": "color_hex",
    "created_at": "created_date",
    "updated_at": "last_updated",
    "bestseller": "is_bestseller",
    "new": "is_new",
    "active": "is_active",
}

IMAGE_COLUMNS = ("image_url_1", "image_url_2", "image_url_3", "image_url_4")

TRUTHY = {"true", "yes", "y", "1"}
FALSY = {"false", "no", "n", "0"}

COLOR_HEX = {
    "red": "#FF0000", "blue": "#0000FF", "green": "#008000",
    "black": "#000000", "white": "#FFFFFF", "yellow": "#FFFF00",
    "purple": "#800080", "orange": "#FFA500", "pink": "#FFC0CB",
    "brown": "#A52A2A", "gray": "#808080", "grey": "#808080",
    "navy": "#000080", "maroon": "#800000", "olive": "#808000",
    "lime": "#00FF00", "aqua": "#00FFFF", "teal": "#008080",
    "silver": "#C0C0C0", "fuchsia": "#FF00FF",
}
DEFAULT_COLOR_HEX = "#CCCCCC"

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_HEADER_FOLD = re.compile(r"[\s\-]+")


# ---------------------------------------------------------------------------
# Tolerant cell parsers
# ---------------------------------------------------------------------------

def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Parse "1,299.00", "₹499", 499 ... falling back to `default`."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    text = _NON_NUMERIC.sub("", cell_text(value))
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def parse_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    number = parse_float(value, default=None)
    if number is None:
        return default
    return int(number)


def parse_product_id(value: Any) -> Optional[int]:
    """Strict identity parse: a positive whole number or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    text = cell_text(value)
    if not re.fullmatch(r"\d+(\.0+)?", text):
        return None
    number = int(float(text))
    return number if number > 0 else None


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = cell_text(value).lower()
    if text in TRUTHY:
        return True
    if text in FALSY:
        return False
    return default


def parse_date(value: Any) -> Optional[date]:
    text = cell_text(value)
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def split_list(value: Any) -> List[str]:
    return [part.strip() for part in cell_text(value).split(",") if part.strip()]


def parse_colors(value: Any) -> List[Color]:
    """Parse "Black:#000000, White" style color lists."""
    colors = []
    seen = set()
    for part in re.split(r"[,;|]", cell_text(value)):
        name, _, hex_value = part.partition(":")
        name = name.strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        colors.append(Color(name=name, value=hex_value.strip() or color_hex_for(name)))
    return colors


def color_hex_for(color_name: str) -> str:
    return COLOR_HEX.get((color_name or "").lower().strip(), DEFAULT_COLOR_HEX)


def generate_variant_sku(product_id: int, color: str, size: str) -> str:
    color_code = re.sub(r"\s+", "", color or "").upper()[:3] or "COL"
    size_code = (size or "").upper() or "SIZE"
    return f"{product_id}-{color_code}-{size_code}"


# ---------------------------------------------------------------------------
# Column mapping
# ---------------------------------------------------------------------------

def _fold_header(value: Any) -> str:
    key = _HEADER_FOLD.sub("_", cell_text(value).lower())
    return HEADER_ALIASES.get(key, key)


def resolve_columns(first_row: Sequence[Any]) -> Tuple[Dict[str, int], bool]:
    """
    Return (column name -> index, has_header).

    The first row counts as a header when it names both product_id and name.
    """
    folded = [_fold_header(cell) for cell in first_row]
    if "product_id" in folded and "name" in folded:
        known = set(COLUMNS) | set(OPTIONAL_COLUMNS)
        mapping: Dict[str, int] = {}
        for index, key in enumerate(folded):
            if key in known and key not in mapping:
                mapping[key] = index
        return mapping, True
    return {name: index for index, name in enumerate(COLUMNS)}, False


# ---------------------------------------------------------------------------
# Row records
# ---------------------------------------------------------------------------

@dataclass
class SheetRecord:
    """One parsed sheet row (one variant of one product)."""

    row_number: int
    product_id: int
    name: str
    description: str
    category: str
    type: str
    base_price: float
    color_name: str
    color_hex: str
    size: str
    variant_sku: str
    variant_price: Optional[float]
    stock_quantity: int
    images: List[str]
    tags: List[str]
    is_new: bool
    is_bestseller: bool
    is_active: bool
    created_date: str
    last_updated: str
    colors: List[Color] = field(default_factory=list)
    sizes: List[str] = field(default_factory=list)
    rating: float = 0.0
    reviews: int = 0

    @property
    def has_variant(self) -> bool:
        return bool(self.color_name or self.size)


def parse_record(row: Sequence[Any], columns: Dict[str, int], row_number: int) -> SheetRecord:
    """Parse one row. Raises ParseRowError when identity fields are unusable."""

    def cell(name: str) -> Any:
        index = columns.get(name)
        if index is None or index >= len(row):
            return None
        return row[index]

    product_id = parse_product_id(cell("product_id"))
    if product_id is None:
        raise ParseRowError(row_number, f"invalid product_id {cell_text(cell('product_id'))!r}")
    name = cell_text(cell("name"))
    if not name:
        raise ParseRowError(row_number, "missing name")

    base_price = parse_float(cell("base_price"), default=0.0)
    color_name = cell_text(cell("color_name"))
    created = cell_text(cell("created_date"))

    return SheetRecord(
        row_number=row_number,
        product_id=product_id,
        name=name,
        description=cell_text(cell("description")),
        category=cell_text(cell("category")).lower() or "uncategorized",
        type=cell_text(cell("type")) or "clothing",
        base_price=base_price,
        color_name=color_name,
        color_hex=cell_text(cell("color_hex")) or (color_hex_for(color_name) if color_name else ""),
        size=cell_text(cell("size")),
        variant_sku=cell_text(cell("variant_sku")),
        variant_price=parse_float(cell("variant_price"), default=None),
        stock_quantity=max(parse_int(cell("stock_quantity"), default=0), 0),
        images=normalize_image_urls(cell(col) for col in IMAGE_COLUMNS),
        tags=split_list(cell("tags")),
        is_new=parse_bool(cell("is_new")),
        is_bestseller=parse_bool(cell("is_bestseller")),
        is_active=parse_bool(cell("is_active"), default=True),
        created_date=created,
        last_updated=cell_text(cell("last_updated")) or created,
        colors=parse_colors(cell("colors")),
        sizes=split_list(cell("sizes")),
        rating=parse_float(cell("rating"), default=0.0),
        reviews=parse_int(cell("reviews"), default=0),
    )


# ---------------------------------------------------------------------------
# Grouping into products
# ---------------------------------------------------------------------------

@dataclass
class ParseResult:
    products: List[Product]
    source_row_count: int = 0
    dropped_rows: int = 0
    inactive_rows: int = 0
    sku_collisions: List[str] = field(default_factory=list)


def _variant_order(records: List[SheetRecord]) -> List[SheetRecord]:
    """Row order, unless the rows carry created dates: then oldest first (stable)."""
    if not any(parse_date(r.created_date) for r in records):
        return records
    return sorted(
        records,
        key=lambda r: (parse_date(r.created_date) is None, parse_date(r.created_date) or date.min),
    )


def _unique(values) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def build_product(records: List[SheetRecord], seen_skus: Dict[str, int], collisions: List[str]) -> Product:
    """Fold the rows of one product id into a Product with its variants."""
    base = records[0]
    images = tuple(base.images)
    variants = []

    for record in _variant_order(records):
        if not record.has_variant:
            continue
        sku = record.variant_sku or generate_variant_sku(record.product_id, record.color_name, record.size)
        if sku in seen_skus:
            logger.warning(
                f"Duplicate SKU {sku!r} in row {record.row_number} "
                f"(first seen for product {seen_skus[sku]})"
            )
            collisions.append(sku)
        else:
            seen_skus[sku] = record.product_id

        price = record.variant_price if record.variant_price is not None else base.base_price
        variants.append(Variant(
            variant_id=re.sub(r"\s+", "_", f"{record.product_id}_{record.color_name}_{record.size}"),
            product_id=record.product_id,
            color_name=record.color_name,
            color_value=record.color_hex,
            size=record.size,
            sku=sku,
            price=price,
            images=tuple(record.images) or images,
            stock_quantity=record.stock_quantity,
            is_available=record.is_active and record.stock_quantity > 0,
            created_at=record.created_date or None,
        ))

    colors = base.colors
    if not colors:
        by_name: Dict[str, Color] = {}
        for variant in variants:
            if variant.color_name and variant.color_name not in by_name:
                by_name[variant.color_name] = Color(variant.color_name, variant.color_value)
        colors = list(by_name.values())

    sizes = base.sizes or _unique(v.size for v in variants)

    return Product(
        id=base.product_id,
        name=base.name,
        description=base.description,
        category=base.category,
        type=base.type,
        price=base.base_price,
        images=images,
        colors=tuple(colors),
        sizes=tuple(sizes),
        tags=tuple(base.tags),
        is_new=base.is_new,
        is_bestseller=base.is_bestseller,
        rating=base.rating,
        reviews=base.reviews,
        created_at=base.created_date or None,
        updated_at=base.last_updated or None,
        variants=tuple(variants),
    )


def parse_rows(rows: Sequence[Sequence[Any]]) -> ParseResult:
    """Parse a whole sheet (header row optional) into products. Never raises."""
    rows = list(rows or [])
    if not rows:
        return ParseResult(products=[])

    columns, has_header = resolve_columns(rows[0])
    data_rows = rows[1:] if has_header else rows
    first_row_number = 2 if has_header else 1

    groups: Dict[int, List[SheetRecord]] = {}
    dropped = 0
    inactive = 0

    for offset, row in enumerate(data_rows):
        row_number = first_row_number + offset
        if not row or not any(cell_text(c) for c in row):
            continue
        try:
            record = parse_record(row, columns, row_number)
        except ParseRowError as e:
            logger.warning(f"Skipping invalid {e}")
            dropped += 1
            continue
        except Exception as e:
            logger.error(f"Unexpected error parsing row {row_number}: {e}")
            dropped += 1
            continue

        if not record.is_active:
            inactive += 1
            continue
        # dict keeps first-encountered product order
        groups.setdefault(record.product_id, []).append(record)

    seen_skus: Dict[str, int] = {}
    collisions: List[str] = []
    products = [build_product(records, seen_skus, collisions) for records in groups.values()]

    return ParseResult(
        products=products,
        source_row_count=len(data_rows),
        dropped_rows=dropped,
        inactive_rows=inactive,
        sku_collisions=collisions,
    )


def parse(rows: Sequence[Sequence[Any]]) -> List[Product]:
    """Convenience wrapper returning only the products."""
    return parse_rows(rows).products
