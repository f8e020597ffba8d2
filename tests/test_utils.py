"""Tests for command-line parsing and formatting helpers."""

import pytest

from conftest import order_data
from storefront.errors import InvalidOrderItemError
from storefront.models import Product
from storefront.utils import (
    format_money,
    format_order,
    format_product,
    parse_data_pair,
    parse_item_spec,
)


class TestParseItemSpec:
    def test_product_and_price(self):
        assert parse_item_spec("P1:500") == {
            "product_id": "P1",
            "price": 500,
            "quantity": 1,
            "name": "",
        }

    def test_quantity_and_name(self):
        assert parse_item_spec("P1:12.5:3:Argan oil 100ml") == {
            "product_id": "P1",
            "price": 12.5,
            "quantity": 3,
            "name": "Argan oil 100ml",
        }

    def test_name_may_contain_colons(self):
        assert parse_item_spec("P1:500:1:Gift box: large")["name"] == "Gift box: large"

    @pytest.mark.parametrize("spec", ["P1", "P1:", "P1:abc", ":500", "P1:500:0"])
    def test_invalid(self, spec):
        with pytest.raises(InvalidOrderItemError):
            parse_item_spec(spec)


class TestParseDataPair:
    def test_json_value(self):
        assert parse_data_pair("productId=42") == ("productId", 42)
        assert parse_data_pair("gift=true") == ("gift", True)

    def test_string_value(self):
        assert parse_data_pair("searchTerm=argan oil") == ("searchTerm", "argan oil")
        assert parse_data_pair("empty=") == ("empty", "")

    @pytest.mark.parametrize("pair", ["novalue", "=42"])
    def test_invalid(self, pair):
        with pytest.raises(ValueError):
            parse_data_pair(pair)


class TestFormatting:
    def test_format_money(self):
        assert format_money(2980) == "2,980 DA"
        assert format_money(12.5) == "12.50 DA"
        assert format_money(0) == "0 DA"

    def test_format_order_summary(self, ledger):
        order = ledger.create_order(order_data())

        line = format_order(order)
        assert line == f"{order.id}  Amina Benali  2,980 DA (pending)"

    def test_format_order_verbose(self, ledger):
        order = ledger.create_order(order_data())
        ledger.apply_coupon(order.id, "NARDOO10")
        ledger.add_note(order.id, "Fragile")

        text = format_order(order, verbose=True)
        assert "Phone: 0550123456" in text
        assert "2 x Argan oil @ 500 DA" in text
        assert "Discount: -200 DA (NARDOO10)" in text
        assert "pending: Order created" in text
        assert "]: Fragile" in text

    def test_format_product(self):
        product = Product(id=3, name="Ras el hanout", category="spices", price=300, stock=0)

        assert format_product(product) == "3  Ras el hanout  [spices]  300 DA (out of stock)"
