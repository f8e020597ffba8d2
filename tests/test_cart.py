"""Tests for ShoppingCart and the Storefront checkout flow."""

import pytest

from conftest import stock_catalog
from storefront.cart import ShoppingCart
from storefront.errors import (
    EmptyCartError,
    InsufficientStockError,
    InvalidOrderItemError,
    InvalidPaymentMethodError,
    ProductNotFoundError,
)
from storefront.storage import CART_KEY, EVENTS_KEY, ORDERS_KEY


class TestShoppingCart:
    def test_empty(self, memory_store):
        cart = ShoppingCart(memory_store)

        assert cart.is_empty()
        assert cart.items == []
        assert cart.item_count == 0
        assert cart.total == 0

    def test_add_item(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500, quantity=2)
        cart.add_item("P2", "Olive soap", 1000)

        assert cart.item_count == 3
        assert cart.total == 2000
        assert memory_store.get(CART_KEY) == [
            {"product_id": "P1", "name": "Argan oil", "price": 500, "quantity": 2},
            {"product_id": "P2", "name": "Olive soap", "price": 1000, "quantity": 1},
        ]

    def test_add_existing_increments(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500)
        item = cart.add_item("P1", "Argan oil", 500, quantity=3)

        assert item.quantity == 4
        assert len(cart.items) == 1

    def test_add_beyond_stock_raises(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500, quantity=2, stock=3)

        with pytest.raises(InsufficientStockError) as exc_info:
            cart.add_item("P1", "Argan oil", 500, quantity=2, stock=3)

        assert exc_info.value.requested == 4
        assert exc_info.value.stock == 3
        assert cart.items[0].quantity == 2

    def test_add_zero_quantity_raises(self, memory_store):
        cart = ShoppingCart(memory_store)

        with pytest.raises(InvalidOrderItemError):
            cart.add_item("P1", "Argan oil", 500, quantity=0)

    def test_update_quantity(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500)

        assert cart.update_quantity("P1", 5) is True
        assert cart.item_count == 5

    def test_update_quantity_zero_removes(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500)

        assert cart.update_quantity("P1", 0) is True
        assert cart.is_empty()

    def test_update_quantity_unknown(self, memory_store):
        cart = ShoppingCart(memory_store)
        assert cart.update_quantity("P9", 2) is False

    def test_update_quantity_beyond_stock(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500)

        with pytest.raises(InsufficientStockError):
            cart.update_quantity("P1", 10, stock=5)

    def test_remove_and_clear(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item("P1", "Argan oil", 500)
        cart.add_item("P2", "Olive soap", 1000)

        assert cart.remove_item("P1") is True
        assert cart.remove_item("P1") is False
        assert [i.product_id for i in cart.items] == ["P2"]

        cart.clear()
        assert cart.is_empty()
        assert memory_store.get(CART_KEY) == []

    def test_numeric_id_matches_string(self, memory_store):
        cart = ShoppingCart(memory_store)
        cart.add_item(7, "Henna", 300)

        assert cart.update_quantity("7", 3) is True
        assert cart.items[0].product_id == 7
        assert cart.remove_item("7") is True

    def test_reload(self, memory_store):
        ShoppingCart(memory_store).add_item(7, "Henna", 300, quantity=2)

        cart = ShoppingCart(memory_store)
        assert cart.items[0].product_id == 7
        assert cart.total == 600


class TestStorefront:
    @pytest.fixture(autouse=True)
    def products(self, storefront):
        stock_catalog(storefront.catalog)

    def test_add_to_cart_uses_catalog(self, storefront):
        item = storefront.add_to_cart(1, quantity=2)

        assert item.to_dict() == {
            "product_id": 1,
            "name": "Argan oil",
            "price": 500,
            "quantity": 2,
        }
        events = storefront.analytics.events
        assert [e.type for e in events] == ["addToCart"]
        assert events[0].data == {"productId": 1}

    def test_add_to_cart_string_id(self, storefront):
        storefront.add_to_cart("2")
        storefront.add_to_cart(2)

        assert storefront.cart.items[0].product_id == 2
        assert storefront.cart.item_count == 2

    def test_add_unknown_product(self, storefront, memory_store):
        with pytest.raises(ProductNotFoundError):
            storefront.add_to_cart(99)

        assert storefront.cart.is_empty()
        assert memory_store.get(EVENTS_KEY) is None

    def test_add_out_of_stock_product(self, storefront):
        with pytest.raises(InsufficientStockError) as exc_info:
            storefront.add_to_cart(3)

        assert exc_info.value.stock == 0
        assert storefront.cart.is_empty()
        assert storefront.analytics.events == []

    def test_add_beyond_stock_tracks_nothing(self, storefront):
        storefront.add_to_cart(1, quantity=4)

        with pytest.raises(InsufficientStockError):
            storefront.add_to_cart(1, quantity=2)

        assert storefront.cart.item_count == 4
        assert len(storefront.analytics.events) == 1

    def test_update_cart_item_capped_by_stock(self, storefront):
        storefront.add_to_cart(1)

        assert storefront.update_cart_item("1", 5) is True
        assert storefront.cart.item_count == 5
        with pytest.raises(InsufficientStockError):
            storefront.update_cart_item(1, 6)

    def test_update_cart_item_not_in_cart(self, storefront):
        assert storefront.update_cart_item(2, 3) is False
        assert storefront.cart.is_empty()

    def test_update_after_product_removed_from_catalog(self, storefront):
        storefront.add_to_cart(1)
        storefront.catalog.delete_product(1)

        assert storefront.update_cart_item(1, 20) is True
        assert storefront.cart.item_count == 20

    def test_remove_from_cart(self, storefront):
        storefront.add_to_cart(1)

        assert storefront.remove_from_cart("1") is True
        assert storefront.remove_from_cart(1) is False

    def test_search_returns_matches_and_tracks(self, storefront):
        results = storefront.search("soap")

        assert [p.name for p in results] == ["Olive soap"]
        assert storefront.search("hanout") == []

        behavior = storefront.analytics.get_user_behavior()
        assert behavior.most_searched_terms == {"soap": 1, "hanout": 1}

    def test_browse_by_category(self, storefront):
        assert [p.id for p in storefront.browse("cosmetics")] == [1, 2]
        assert storefront.browse("spices") == []
        assert storefront.analytics.events == []

    def test_view_product(self, storefront):
        product = storefront.view_product("2")

        assert product.name == "Olive soap"
        behavior = storefront.analytics.get_user_behavior()
        assert behavior.most_viewed_products == {"2": 1}

    def test_view_unknown_product(self, storefront):
        with pytest.raises(ProductNotFoundError):
            storefront.view_product(42)

        assert storefront.analytics.events == []

    def test_checkout(self, storefront, memory_store):
        storefront.add_to_cart(1, quantity=2)
        storefront.add_to_cart(2)

        order = storefront.checkout(
            "Amina Benali",
            customer_phone="0550123456",
            customer_address="5 Boulevard de la Soummam, Oran",
            customer_id="C1",
        )

        assert [i.to_dict() for i in order.items] == [
            {"product_id": 1, "name": "Argan oil", "price": 500, "quantity": 2},
            {"product_id": 2, "name": "Olive soap", "price": 1000, "quantity": 1},
        ]
        assert order.subtotal == 2000
        assert order.tax == 180
        assert order.shipping == 700
        assert order.total == 2880
        assert order.customer_id == "C1"
        assert order.payment_method == "whatsapp"

        assert storefront.cart.is_empty()
        assert memory_store.get(CART_KEY) == []
        assert memory_store.get(ORDERS_KEY)[0]["id"] == order.id

        checkout_events = [e for e in storefront.analytics.events if e.type == "checkout"]
        assert len(checkout_events) == 1
        assert checkout_events[0].data == {"orderId": order.id}

    def test_checkout_keeps_price_at_add_time(self, storefront):
        storefront.add_to_cart(1)
        storefront.catalog.update_product(1, price=650)

        order = storefront.checkout("Karim")
        assert order.items[0].price == 500

    def test_checkout_unknown_region_uses_default_shipping(self, storefront):
        storefront.add_to_cart(1)

        order = storefront.checkout("Karim", customer_address="Somewhere else")
        assert order.shipping == 800

    def test_checkout_empty_cart_raises(self, storefront, memory_store):
        with pytest.raises(EmptyCartError):
            storefront.checkout("Amina")

        assert memory_store.get(ORDERS_KEY) is None
        assert memory_store.get(EVENTS_KEY) is None

    def test_checkout_bad_payment_keeps_cart(self, storefront):
        storefront.add_to_cart(1)

        with pytest.raises(InvalidPaymentMethodError):
            storefront.checkout("Amina", payment_method="barter")

        assert storefront.cart.item_count == 1
        assert storefront.ledger.orders == []

    def test_conversion_after_checkout(self, storefront):
        storefront.add_to_cart(1)
        storefront.add_to_cart(2)
        storefront.checkout("Amina")

        assert storefront.analytics.get_conversion_rate() == 50.0
        assert storefront.analytics.get_user_behavior().abandoned_carts == 1

    def test_dashboard_overview(self, storefront):
        storefront.add_to_cart(1)
        storefront.checkout("Amina", customer_address="Algiers")

        overview = storefront.dashboard_overview()

        assert overview["orders"]["total_orders"] == 1
        assert overview["orders"]["recent_orders"][0]["shipping"] == 500
        assert overview["analytics"]["summary"]["total_events"] == 2
        assert overview["analytics"]["conversion_rate"] == 100.0
