"""Pytest configuration for livesync tests."""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from livesync.core.cache_store import CacheStore
from livesync.core.catalog_service import LiveCatalogService
from livesync.core.config import ENV_VARS, SyncConfig
from livesync.data.row_parser import COLUMNS

DRIVE_FILE_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz012345"
DRIVE_SHARE_LINK = f"https://drive.google.com/file/d/{DRIVE_FILE_ID}/view?usp=sharing"
DRIVE_CANONICAL = f"https://drive.google.com/uc?export=view&id={DRIVE_FILE_ID}"


def make_row(**cells):
    """Build a sheet row in standard column order (A..V)."""
    return [cells.get(name, "") for name in COLUMNS]


def sample_sheet():
    """Header + 8 data rows: 4 listed products, one bad id, one inactive product."""
    tee = dict(
        product_id="1", name="Acid Washed Oversized Tee", description="Heavyweight cotton tee",
        category="TShirt", type="clothing", base_price="799", image_url_1=DRIVE_SHARE_LINK,
        tags="oversized, streetwear", is_new="TRUE", is_bestseller="yes", is_active="TRUE",
        created_date="2024-01-10", last_updated="2024-02-01",
    )
    return [
        list(COLUMNS),
        make_row(**tee, color_name="Black", color_hex="#000000", size="M",
                 variant_sku="AWT-BLK-M", stock_quantity="10"),
        make_row(**{**tee, "image_url_1": ""}, color_name="Black", color_hex="#000000", size="L",
                 variant_sku="AWT-BLK-L", variant_price="849", stock_quantity="0"),
        make_row(**{**tee, "image_url_1": ""}, color_name="White", size="M", stock_quantity="5"),
        make_row(product_id="2", name="Classic Hoodie", description="Fleece hoodie",
                 category="hoodie", base_price="1499", image_url_1="/images/hoodie.jpg",
                 tags="winter", is_new="no", is_bestseller="1", is_active="TRUE"),
        make_row(product_id="3", name="Cargo Pants", category="bottoms", base_price="1199",
                 color_name="Olive", size="32", variant_sku="CP-OLV-32", stock_quantity="3",
                 image_url_1="https://res.cloudinary.com/demo/cargo.jpg", is_bestseller="false"),
        make_row(product_id="abc", name="Broken Row", base_price="100"),
        make_row(product_id="4", name="Retired Tee", category="tshirt", base_price="299",
                 is_active="FALSE"),
        make_row(product_id="5", name="Basic Tee", category="tshirt", base_price="499",
                 color_name="Red", size="S", variant_sku="BT-RED-S", stock_quantity="2",
                 image_url_1="https://cdn.example.com/basic-tee.jpg", tags="basics",
                 is_bestseller="TRUE"),
    ]


class FakeSource:
    """Stand-in for SheetFetcher: counts calls, can be slowed down or made to fail."""

    def __init__(self, rows=None, delay=0.0, error=None):
        self.rows = rows if rows is not None else sample_sheet()
        self.delay = delay
        self.error = error
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [list(row) for row in self.rows]


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every livesync environment variable for the duration of a test."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)
    return monkeypatch


@pytest.fixture
def config():
    return SyncConfig(sheet_id="sheet123", sheet_name="Products", api_key="key-abc")


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(source, clock):
    return CacheStore(source, ttl_seconds=60, clock=clock)


@pytest.fixture
def service(config, store):
    return LiveCatalogService(config, store)
