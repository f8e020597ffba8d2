"""Tests for the key-value stores."""

import json

import pytest

from conftest import order_data
from storefront.errors import StorageCorruptedError
from storefront.orders import OrderLedger
from storefront.storage import (
    DATA_DIR_ENV,
    ORDERS_KEY,
    JsonFileStore,
    MemoryStore,
    get_data_dir,
)


class TestMemoryStore:
    def test_missing_key(self):
        assert MemoryStore().get("orders") is None

    def test_values_are_copied(self):
        store = MemoryStore()
        value = [{"id": 1}]
        store.set("orders", value)

        value.append({"id": 2})
        store.get("orders").append({"id": 3})

        assert store.get("orders") == [{"id": 1}]

    def test_initial_data(self):
        store = MemoryStore({"cart": []})
        assert store.keys() == ["cart"]
        assert store.get("cart") == []


class TestJsonFileStore:
    def test_missing_key_returns_none(self, temp_dir):
        store = JsonFileStore(temp_dir)

        assert store.get("orders") is None
        assert not store.exists("orders")

    def test_set_writes_pretty_json(self, temp_dir):
        store = JsonFileStore(temp_dir / "data")
        store.set("cart", [{"product_id": "P1", "name": "Savon à l'huile d'olive"}])

        path = temp_dir / "data" / "cart.json"
        assert path.exists()
        content = path.read_text(encoding="utf-8")
        assert content.endswith("\n")
        assert "Savon à l'huile d'olive" in content
        assert json.loads(content) == [{"product_id": "P1", "name": "Savon à l'huile d'olive"}]

    def test_round_trip(self, temp_dir):
        store = JsonFileStore(temp_dir)
        store.set("page_views", [{"id": "EVT1", "page_name": "home"}])

        assert store.get("page_views") == [{"id": "EVT1", "page_name": "home"}]

    def test_no_temp_files_left(self, temp_dir):
        store = JsonFileStore(temp_dir)
        store.set("orders", [])
        store.set("orders", [{"id": "ORD1"}])

        assert sorted(p.name for p in temp_dir.iterdir()) == ["orders.json"]

    def test_corrupted_file_raises(self, temp_dir):
        (temp_dir / "orders.json").write_text("{not json", encoding="utf-8")
        store = JsonFileStore(temp_dir)

        with pytest.raises(StorageCorruptedError) as exc_info:
            store.get("orders")

        assert exc_info.value.key == "orders"

    def test_invalid_key_rejected(self, temp_dir):
        store = JsonFileStore(temp_dir)

        with pytest.raises(ValueError):
            store.set("../escape", [])

    def test_ledger_round_trip_through_files(self, temp_dir):
        ledger = OrderLedger(JsonFileStore(temp_dir))
        order = ledger.create_order(order_data())
        ledger.update_order_status(order.id, "confirmed")

        reloaded = OrderLedger(JsonFileStore(temp_dir)).get_order(order.id)

        assert reloaded is not None
        assert reloaded.to_dict() == order.to_dict()
        stored = json.loads((temp_dir / f"{ORDERS_KEY}.json").read_text(encoding="utf-8"))
        assert stored[0]["timeline"][1]["status"] == "confirmed"


class TestDataDir:
    def test_env_override(self, temp_dir, monkeypatch):
        monkeypatch.setenv(DATA_DIR_ENV, str(temp_dir))

        assert get_data_dir() == temp_dir
        assert JsonFileStore().data_dir == temp_dir

    def test_default_under_cwd(self, temp_dir, monkeypatch):
        monkeypatch.delenv(DATA_DIR_ENV, raising=False)
        monkeypatch.chdir(temp_dir)

        assert get_data_dir().resolve() == (temp_dir / "data").resolve()
