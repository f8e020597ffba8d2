"""Order pricing rules: tax, coupons, shipping rates and status messages."""

import math
from dataclasses import dataclass
from typing import Iterable

from .models import OrderItem, OrderStatus

TAX_RATE = 0.09
DEFAULT_SHIPPING = 800


@dataclass(frozen=True)
class Coupon:
    code: str
    discount: float  # fraction of the subtotal
    description: str


COUPONS: dict[str, Coupon] = {
    c.code: c
    for c in (
        Coupon("NARDOO10", 0.10, "10% off"),
        Coupon("NARDOO20", 0.20, "20% off"),
        Coupon("WELCOME", 0.15, "Welcome discount 15%"),
        Coupon("SUMMER2026", 0.25, "Summer offer 25%"),
    )
}

# Checked in order; the first region named in the address wins.
SHIPPING_RATES: list[tuple[str, int]] = [
    ("Algiers", 500),
    ("Oran", 700),
    ("Constantine", 800),
    ("Tlemcen", 750),
    ("Chlef", 600),
    ("Laghouat", 900),
    ("Tiaret", 700),
    ("Tizi Ouzou", 650),
    ("South", 1200),
]

STATUS_MESSAGES: dict[str, str] = {
    OrderStatus.PENDING.value: "Awaiting confirmation",
    OrderStatus.CONFIRMED.value: "Order confirmed",
    OrderStatus.PROCESSING.value: "Order is being processed",
    OrderStatus.SHIPPED.value: "Order shipped",
    OrderStatus.DELIVERED.value: "Order delivered",
    OrderStatus.CANCELLED.value: "Order cancelled",
}

ORDER_CREATED_MESSAGE = "Order created"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def calculate_subtotal(items: Iterable[OrderItem]) -> float:
    return sum(item.price * item.quantity for item in items)


def calculate_tax(subtotal: float) -> int:
    return round_half_up(subtotal * TAX_RATE)


def calculate_total(subtotal: float, tax: float, shipping: float, discount: float) -> float:
    return subtotal + tax + shipping - discount


def coupon_discount(subtotal: float, coupon: Coupon) -> int:
    return round_half_up(subtotal * coupon.discount)


def calculate_shipping(address: str) -> int:
    """
    Shipping cost for a delivery address.

    Matches region names case-insensitively anywhere in the address and
    falls back to DEFAULT_SHIPPING.
    """
    haystack = (address or "").casefold()
    for region, cost in SHIPPING_RATES:
        if region.casefold() in haystack:
            return cost
    return DEFAULT_SHIPPING


def status_message(status: str) -> str:
    """Default timeline message for a status change."""
    return STATUS_MESSAGES.get(status, "Order updated")
