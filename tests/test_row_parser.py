"""
Tests for sheet row parsing: tolerant cell parsers, header mapping,
grouping rows into products and the variant fallbacks.
"""

import pytest

from conftest import DRIVE_CANONICAL, make_row, sample_sheet
from livesync.data.models import Color, slugify
from livesync.data.row_parser import (
    COLUMNS,
    generate_variant_sku,
    parse,
    parse_bool,
    parse_colors,
    parse_float,
    parse_product_id,
    parse_rows,
    resolve_columns,
)


@pytest.fixture
def result():
    return parse_rows(sample_sheet())


def _by_id(products):
    return {p.id: p for p in products}


# ── Cell parsers ─────────────────────────────────────────────────────────

class TestCellParsers:
    @pytest.mark.parametrize("raw,expected", [
        ("12", 12), (12, 12), (12.0, 12), ("12.0", 12), (" 7 ", 7),
        ("0", None), ("-3", None), ("abc", None), ("", None), (None, None),
        ("1e3", None), ("4.5", None), (True, None),
    ])
    def test_product_id(self, raw, expected):
        assert parse_product_id(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("799", 799.0), ("1,299.00", 1299.0), ("₹499", 499.0), (349, 349.0),
        ("", 0.0), ("free", 0.0), (None, 0.0),
    ])
    def test_float(self, raw, expected):
        assert parse_float(raw) == expected

    def test_float_custom_default(self):
        assert parse_float("", default=None) is None

    @pytest.mark.parametrize("raw", ["true", "TRUE", "yes", "Y", "1", 1, True])
    def test_bool_truthy(self, raw):
        assert parse_bool(raw) is True

    @pytest.mark.parametrize("raw", ["false", "no", "0", 0, False, "", "maybe"])
    def test_bool_falsy_or_default(self, raw):
        assert parse_bool(raw) is False

    def test_bool_default_applies_to_unknown(self):
        assert parse_bool("", default=True) is True
        assert parse_bool("no", default=True) is False

    def test_colors_list(self):
        colors = parse_colors("Black:#111111, White; black")
        assert colors == [Color("Black", "#111111"), Color("White", "#FFFFFF")]

    def test_generated_sku(self):
        assert generate_variant_sku(7, "navy blue", "xl") == "7-NAV-XL"
        assert generate_variant_sku(7, "", "") == "7-COL-SIZE"

    def test_slug(self):
        assert slugify("Acid Washed  Oversized Tee!") == "acid-washed-oversized-tee"
        assert slugify("  --Hoodie (2024)--") == "hoodie-2024"


# ── Header mapping ───────────────────────────────────────────────────────

class TestResolveColumns:
    def test_standard_header(self):
        mapping, has_header = resolve_columns(list(COLUMNS))
        assert has_header
        assert mapping["product_id"] == 0
        assert mapping["last_updated"] == len(COLUMNS) - 1

    def test_aliases_and_reordering(self):
        mapping, has_header = resolve_columns(["Name", "SKU", "ID", "Price", "Colour", "Size"])
        assert has_header
        assert mapping == {
            "name": 0, "variant_sku": 1, "product_id": 2,
            "base_price": 3, "color_name": 4, "size": 5,
        }

    def test_no_header_falls_back_to_positions(self):
        mapping, has_header = resolve_columns(make_row(product_id="1", name="Tee"))
        assert not has_header
        assert mapping["name"] == 1

    def test_reordered_sheet_parses(self):
        rows = [
            ["Name", "ID", "Price", "Color", "Size", "SKU"],
            ["Tee", "9", "250", "Blue", "M", "T-BLU-M"],
        ]
        [product] = parse(rows)
        assert product.id == 9
        assert product.price == 250.0
        assert product.variants[0].sku == "T-BLU-M"
        assert product.variants[0].color_value == "#0000FF"


# ── Grouping ─────────────────────────────────────────────────────────────

class TestParseRows:
    def test_product_order_and_counts(self, result):
        assert [p.id for p in result.products] == [1, 2, 3, 5]
        assert result.source_row_count == 8
        assert result.dropped_rows == 1
        assert result.inactive_rows == 1

    def test_end_to_end_variants(self):
        rows = [
            make_row(product_id="1", name="Tee", color_name="Black", size="M"),
            make_row(product_id="1", name="Tee", color_name="White", size="M"),
            make_row(product_id="2", name="Cap"),
        ]
        products = parse(rows)
        assert [p.id for p in products] == [1, 2]
        assert [v.color_name for v in products[0].variants] == ["Black", "White"]
        assert products[1].variants == ()

    def test_base_fields_from_first_row(self, result):
        tee = _by_id(result.products)[1]
        assert tee.name == "Acid Washed Oversized Tee"
        assert tee.category == "tshirt"
        assert tee.price == 799.0
        assert tee.images == (DRIVE_CANONICAL,)
        assert tee.tags == ("oversized", "streetwear")
        assert tee.is_new and tee.is_bestseller
        assert tee.slug == "acid-washed-oversized-tee"

    def test_colors_and_sizes_deduplicated(self, result):
        tee = _by_id(result.products)[1]
        assert tee.colors == (Color("Black", "#000000"), Color("White", "#FFFFFF"))
        assert tee.sizes == ("M", "L")

    def test_variant_fields(self, result):
        black_m, black_l, white_m = _by_id(result.products)[1].variants
        assert black_m.variant_id == "1_Black_M"
        assert black_m.sku == "AWT-BLK-M"
        assert black_m.is_available
        assert black_l.price == 849.0
        assert black_l.stock_quantity == 0
        assert not black_l.is_available
        assert white_m.sku == "1-WHI-M"

    def test_variant_inherits_parent_price(self, result):
        black_m = _by_id(result.products)[1].variants[0]
        assert black_m.price == 799.0

    def test_variant_without_images_inherits_parent_images(self, result):
        tee = _by_id(result.products)[1]
        assert tee.variants[1].images == tee.images

    def test_product_without_variant_rows(self, result):
        hoodie = _by_id(result.products)[2]
        assert hoodie.variants == ()
        assert hoodie.colors == ()
        assert hoodie.images == ("/images/hoodie.jpg",)

    def test_to_dict_shape(self, result):
        data = _by_id(result.products)[1].to_dict()
        assert data["slug"] == "acid-washed-oversized-tee"
        assert data["isBestseller"] is True
        assert data["variants"][0]["colorName"] == "Black"
        assert data["variants"][0]["stockQuantity"] == 10


# ── Malformed input ──────────────────────────────────────────────────────

class TestMalformedRows:
    def test_non_numeric_id_drops_exactly_one_row(self):
        rows = [
            make_row(product_id="1", name="A"),
            make_row(product_id="x1", name="B"),
            make_row(product_id="3", name="C"),
        ]
        result = parse_rows(rows)
        assert len(result.products) == len(rows) - 1
        assert result.dropped_rows == 1

    def test_missing_name_dropped(self):
        result = parse_rows([make_row(product_id="1", name="  ")])
        assert result.products == []
        assert result.dropped_rows == 1

    def test_bad_cells_fall_back_to_defaults(self):
        [product] = parse([make_row(
            product_id="1", name="Tee", base_price="n/a", color_name="Red",
            size="M", stock_quantity="-4", is_new="maybe",
        )])
        assert product.price == 0.0
        assert product.category == "uncategorized"
        assert product.type == "clothing"
        assert product.is_new is False
        assert product.variants[0].stock_quantity == 0

    def test_blank_rows_skipped_without_counting(self):
        result = parse_rows([list(COLUMNS), [], ["", "  "], make_row(product_id="1", name="A")])
        assert [p.id for p in result.products] == [1]
        assert result.dropped_rows == 0

    def test_empty_sheet(self):
        assert parse_rows([]).products == []
        assert parse_rows([list(COLUMNS)]).products == []

    def test_short_rows_are_padded(self):
        [product] = parse([["7", "Sticker", "", "", "", "50"]])
        assert product.id == 7
        assert product.price == 50.0

    def test_duplicate_sku_kept_and_reported(self):
        rows = [
            make_row(product_id="1", name="A", color_name="Red", size="S", variant_sku="DUP"),
            make_row(product_id="2", name="B", color_name="Red", size="S", variant_sku="DUP"),
        ]
        result = parse_rows(rows)
        assert [p.id for p in result.products] == [1, 2]
        assert result.sku_collisions == ["DUP"]

    def test_unparseable_image_dropped(self):
        [product] = parse([make_row(product_id="1", name="A", image_url_1="junk", image_url_2="/a.jpg")])
        assert product.images == ("/a.jpg",)


class TestVariantOrdering:
    def test_rows_sorted_by_created_date(self):
        rows = [
            make_row(product_id="1", name="Tee", color_name="Blue", size="M", created_date="2024-03-01"),
            make_row(product_id="1", name="Tee", color_name="Red", size="M", created_date="2024-01-01"),
            make_row(product_id="1", name="Tee", color_name="Green", size="M"),
        ]
        [product] = parse(rows)
        assert [v.color_name for v in product.variants] == ["Red", "Blue", "Green"]

    def test_optional_colors_column_wins(self):
        header = list(COLUMNS) + ["colors", "sizes"]
        row = make_row(product_id="1", name="Tee", color_name="Black", size="M") + ["Black:#101010, Cream", "M, L, XL"]
        [product] = parse([header, row])
        assert product.colors == (Color("Black", "#101010"), Color("Cream", "#CCCCCC"))
        assert product.sizes == ("M", "L", "XL")
