"""Tests for ProductCatalog."""

import pytest

from conftest import stock_catalog
from storefront.catalog import ProductCatalog, same_product_id
from storefront.errors import InvalidProductError
from storefront.storage import PRODUCTS_KEY, MemoryStore


class TestAddProduct:
    def test_assigns_sequential_ids(self, catalog, memory_store):
        stock_catalog(catalog)

        assert [p.id for p in catalog.products] == [1, 2, 3]
        stored = memory_store.get(PRODUCTS_KEY)
        assert stored[0] == {
            "id": 1,
            "name": "Argan oil",
            "category": "cosmetics",
            "price": 500,
            "stock": 5,
            "rating": 4.5,
            "images": [],
            "merchant_id": None,
        }

    def test_next_id_follows_highest(self):
        store = MemoryStore(
            {PRODUCTS_KEY: [{"id": 7, "name": "Henna", "category": "cosmetics", "price": 300}]}
        )
        product = ProductCatalog(store).add_product("Cumin", "spices", 200, 4)
        assert product.id == 8

    @pytest.mark.parametrize(
        "price,stock",
        [(-1, 5), ("500", 5), (500, -2), (500, 1.5), (500, True)],
    )
    def test_invalid_price_or_stock(self, catalog, memory_store, price, stock):
        with pytest.raises(InvalidProductError):
            catalog.add_product("Argan oil", "cosmetics", price, stock)

        assert memory_store.get(PRODUCTS_KEY) is None


class TestListProducts:
    def test_hides_out_of_stock(self, catalog):
        stock_catalog(catalog)

        assert [p.name for p in catalog.list_products()] == ["Argan oil", "Olive soap"]
        assert len(catalog.list_products(include_out_of_stock=True)) == 3

    def test_filter_by_category(self, catalog):
        stock_catalog(catalog)

        assert [p.id for p in catalog.list_products(category="cosmetics")] == [1, 2]
        assert catalog.list_products(category="spices") == []
        assert len(catalog.list_products(category="all")) == 2

    def test_search_by_name_case_insensitive(self, catalog):
        stock_catalog(catalog)

        assert [p.id for p in catalog.list_products(search="ARGAN")] == [1]
        assert [p.id for p in catalog.list_products(search="o")] == [1, 2]
        assert catalog.list_products(search="hanout") == []

    def test_search_within_category(self, catalog):
        stock_catalog(catalog)

        assert catalog.list_products(category="spices", search="oil") == []
        assert [p.id for p in catalog.list_products(category="cosmetics", search="soap")] == [2]

    def test_categories(self, catalog):
        stock_catalog(catalog)
        assert catalog.categories() == ["cosmetics", "spices"]


class TestLookupAndChanges:
    def test_get_product_matches_string_id(self, catalog):
        stock_catalog(catalog)

        assert catalog.get_product(2).name == "Olive soap"
        assert catalog.get_product("2").name == "Olive soap"
        assert catalog.get_product(99) is None

    def test_update_product(self, catalog, memory_store):
        stock_catalog(catalog)

        updated = catalog.update_product("3", stock=12, price=350, id=99)

        assert updated.id == 3
        assert updated.stock == 12
        assert updated.price == 350
        assert updated.name == "Ras el hanout"
        assert memory_store.get(PRODUCTS_KEY)[2]["stock"] == 12

    def test_update_ignores_none(self, catalog):
        stock_catalog(catalog)

        updated = catalog.update_product(1, name=None, stock=3)
        assert updated.name == "Argan oil"
        assert updated.stock == 3

    def test_update_unknown(self, catalog):
        assert catalog.update_product(1, stock=3) is None

    def test_update_invalid_stock_keeps_product(self, catalog):
        stock_catalog(catalog)

        with pytest.raises(InvalidProductError):
            catalog.update_product(1, stock=-1)

        assert catalog.get_product(1).stock == 5

    def test_delete_product(self, catalog):
        stock_catalog(catalog)

        assert catalog.delete_product("1") is True
        assert catalog.delete_product(1) is False
        assert [p.id for p in catalog.products] == [2, 3]

    def test_reload(self, memory_store):
        stock_catalog(ProductCatalog(memory_store))

        catalog = ProductCatalog(memory_store)
        assert catalog.get_product(3).category == "spices"
        assert not catalog.get_product(3).in_stock


class TestSameProductId:
    def test_int_and_string(self):
        assert same_product_id(7, "7")
        assert same_product_id("P1", "P1")
        assert not same_product_id(7, "07")
