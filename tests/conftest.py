"""Pytest fixtures for storefront tests."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from storefront.analytics import AnalyticsAggregator
from storefront.catalog import ProductCatalog
from storefront.checkout import open_storefront
from storefront.models import ClientContext, DeviceInfo
from storefront.orders import OrderLedger
from storefront.storage import MemoryStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def client_context():
    return ClientContext(
        url="https://shop.example/products/42",
        referrer="https://www.google.com/",
        user_agent="Mozilla/5.0 (test)",
        device_info=DeviceInfo(
            user_agent="Mozilla/5.0 (test)",
            language="fr-DZ",
            platform="Linux x86_64",
            screen_resolution="1920x1080",
            timezone="Africa/Algiers",
        ),
    )


@pytest.fixture
def ledger(memory_store):
    return OrderLedger(memory_store)


@pytest.fixture
def aggregator(memory_store, client_context):
    return AnalyticsAggregator(memory_store, context=client_context)


@pytest.fixture
def catalog(memory_store):
    return ProductCatalog(memory_store)


@pytest.fixture
def storefront(memory_store, client_context):
    return open_storefront(memory_store, context=client_context)


def order_data(**overrides: Any) -> dict[str, Any]:
    """Order creation payload with two lines: 500 x 2 and 1000 x 1."""
    data: dict[str, Any] = {
        "customer_id": "CUST-1",
        "customer_name": "Amina Benali",
        "customer_phone": "0550123456",
        "customer_address": "12 Rue Didouche Mourad, Algiers",
        "items": [
            {"product_id": "P1", "name": "Argan oil", "price": 500, "quantity": 2},
            {"product_id": "P2", "name": "Olive soap", "price": 1000, "quantity": 1},
        ],
        "shipping": 800,
        "discount": 0,
        "payment_method": "whatsapp",
    }
    data.update(overrides)
    return data


def iso_ago(now: datetime, **delta: float) -> str:
    """ISO timestamp (Z suffix) the given timedelta before now."""
    return (now - timedelta(**delta)).isoformat().replace("+00:00", "Z")


FIXED_NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def stock_catalog(catalog: ProductCatalog) -> None:
    """
    Add three products.

    1: Argan oil, 500, 5 in stock. 2: Olive soap, 1000, 10 in stock.
    3: Ras el hanout, 300, sold out.
    """
    catalog.add_product("Argan oil", "cosmetics", 500, 5)
    catalog.add_product("Olive soap", "cosmetics", 1000, 10)
    catalog.add_product("Ras el hanout", "spices", 300, 0)
