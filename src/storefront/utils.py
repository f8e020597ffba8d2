"""Utility functions for storefront."""

import json
import re
from typing import Any

from .errors import InvalidOrderItemError
from .models import Order, Product

_ITEM_PATTERN = re.compile(r"^([^:]+):(\d+(?:\.\d+)?)(?::(\d+))?(?::(.+))?$")


def parse_item_spec(spec: str) -> dict[str, Any]:
    """
    Parse a command-line line item into an item mapping.

    Formats:
    - "P1:500" -> product P1, price 500, quantity 1
    - "P1:500:2" -> quantity 2
    - "P1:500:2:Argan oil" -> with a display name

    Raises:
        InvalidOrderItemError: If the text isn't in that format.
    """
    match = _ITEM_PATTERN.match(spec)
    if not match:
        raise InvalidOrderItemError(spec, "expected 'PRODUCT_ID:PRICE[:QTY[:NAME]]'")

    product_id, price_text, quantity_text, name = match.groups()
    price = float(price_text) if "." in price_text else int(price_text)
    quantity = int(quantity_text) if quantity_text else 1
    if quantity < 1:
        raise InvalidOrderItemError(spec, "quantity must be at least 1")

    return {
        "product_id": product_id,
        "price": price,
        "quantity": quantity,
        "name": name or "",
    }


def parse_data_pair(pair: str) -> tuple[str, Any]:
    """
    Parse a KEY=VALUE event payload entry.

    The value is read as JSON when it parses (so "42" becomes 42), else kept
    as a string.

    Raises:
        ValueError: If there is no "=" or the key is empty.
    """
    key, sep, raw = pair.partition("=")
    if not sep or not key:
        raise ValueError(f"Invalid data entry '{pair}', expected KEY=VALUE")
    try:
        return key, json.loads(raw)
    except json.JSONDecodeError:
        return key, raw


def format_money(amount: float) -> str:
    """Format an amount in dinars with thousands separators."""
    if float(amount).is_integer():
        return f"{int(amount):,} DA"
    return f"{amount:,.2f} DA"


def format_order(order: Order, verbose: bool = False) -> str:
    """Format an order for display."""
    name = order.customer_name or "(no name)"
    result = f"{order.id}  {name}  {format_money(order.total)} ({order.status})"

    if verbose:
        if order.customer_phone:
            result += f"\n    Phone: {order.customer_phone}"
        if order.customer_address:
            result += f"\n    Address: {order.customer_address}"
        result += f"\n    Payment: {order.payment_method}"
        result += "\n    Items:"
        for item in order.items:
            label = item.name or str(item.product_id)
            result += f"\n      {item.quantity} x {label} @ {format_money(item.price)}"
        result += f"\n    Subtotal: {format_money(order.subtotal)}"
        result += f"\n    Tax: {format_money(order.tax)}"
        result += f"\n    Shipping: {format_money(order.shipping)}"
        if order.discount:
            coupon = f" ({order.coupon_code})" if order.coupon_code else ""
            result += f"\n    Discount: -{format_money(order.discount)}{coupon}"
        result += f"\n    Total: {format_money(order.total)}"
        result += "\n    Timeline:"
        for entry in order.timeline:
            result += f"\n      {entry.timestamp}  {entry.status}: {entry.message}"
        if order.notes:
            result += "\n    Notes:"
            for line in order.notes.strip("\n").splitlines():
                result += f"\n      {line}"

    return result


def format_product(product: Product) -> str:
    """Format a catalog product as one line."""
    stock = f"{product.stock} in stock" if product.in_stock else "out of stock"
    return (
        f"{product.id}  {product.name}  [{product.category}]  "
        f"{format_money(product.price)} ({stock})"
    )
