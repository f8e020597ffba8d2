"""Data models for storefront."""

import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .errors import InvalidOrderItemError

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp written by _utc_now (or any offset-aware one)."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def _random_suffix(length: int = 6) -> str:
    return "".join(random.choices(_BASE36_DIGITS, k=length))


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def generate_order_id() -> str:
    """Generate an order ID: ORD + base-36 millisecond clock + random suffix."""
    return f"ORD{_base36(_now_ms()).upper()}{_random_suffix().upper()}"


def generate_event_id() -> str:
    """Generate an ID for tracked events and page views."""
    return f"EVT{_now_ms()}{_random_suffix()}"


def generate_session_id() -> str:
    """Generate a user session ID."""
    return f"SES{_now_ms()}{_random_suffix()}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    WHATSAPP = "whatsapp"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"
    CREDIT_CARD = "credit_card"


ORDER_STATUSES = [s.value for s in OrderStatus]
PAYMENT_METHODS = [m.value for m in PaymentMethod]


@dataclass(frozen=True)
class OrderItem:
    """A line item captured on an order. Price and quantity are locked at placement."""

    product_id: str | int
    price: float
    quantity: int
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        """
        Build an item from a mapping, validating the numeric fields.

        Raises:
            InvalidOrderItemError: If product_id is missing, or price or
                quantity is not a number.
        """
        if not isinstance(data, Mapping):
            raise InvalidOrderItemError(data, "expected a mapping")
        if data.get("product_id") is None:
            raise InvalidOrderItemError(data, "missing product_id")
        price = data.get("price")
        quantity = data.get("quantity")
        if not _is_number(price):
            raise InvalidOrderItemError(data, "price must be a number")
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise InvalidOrderItemError(data, "quantity must be an integer")
        return cls(
            product_id=data["product_id"],
            price=price,
            quantity=quantity,
            name=data.get("name", ""),
        )


@dataclass(frozen=True)
class TimelineEntry:
    """One status change in an order's history."""

    status: str
    timestamp: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimelineEntry":
        return cls(
            status=data["status"],
            timestamp=data["timestamp"],
            message=data.get("message", ""),
        )


@dataclass
class Order:
    """A customer order with its computed totals and status timeline."""

    id: str
    customer_id: str | None
    customer_name: str
    customer_phone: str
    items: list[OrderItem]
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    payment_method: str
    status: str
    customer_email: str = ""
    customer_address: str = ""
    notes: str = ""
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)
    timeline: list[TimelineEntry] = field(default_factory=list)
    coupon_code: str | None = None
    coupon_description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "items": [i.to_dict() for i in self.items],
            "subtotal": self.subtotal,
            "tax": self.tax,
            "shipping": self.shipping,
            "discount": self.discount,
            "total": self.total,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "timeline": [t.to_dict() for t in self.timeline],
        }
        if self.coupon_code is not None:
            result["coupon_code"] = self.coupon_code
        if self.coupon_description is not None:
            result["coupon_description"] = self.coupon_description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name", ""),
            customer_phone=data.get("customer_phone", ""),
            customer_email=data.get("customer_email", ""),
            customer_address=data.get("customer_address", ""),
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            subtotal=data.get("subtotal", 0),
            tax=data.get("tax", 0),
            shipping=data.get("shipping", 0),
            discount=data.get("discount", 0),
            total=data.get("total", 0),
            payment_method=data.get("payment_method", PaymentMethod.WHATSAPP.value),
            notes=data.get("notes", ""),
            status=data.get("status", OrderStatus.PENDING.value),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            timeline=[TimelineEntry.from_dict(t) for t in data.get("timeline", [])],
            coupon_code=data.get("coupon_code"),
            coupon_description=data.get("coupon_description"),
        )


@dataclass
class Product:
    """A catalog product. Only products with stock > 0 are listed to shoppers."""

    id: str | int
    name: str
    category: str
    price: float
    stock: int
    rating: float = 0.0
    images: list[str] = field(default_factory=list)
    merchant_id: str | None = None

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "stock": self.stock,
            "rating": self.rating,
            "images": list(self.images),
            "merchant_id": self.merchant_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            category=data.get("category", ""),
            price=data.get("price", 0),
            stock=data.get("stock", 0),
            rating=data.get("rating", 0.0),
            images=list(data.get("images") or []),
            merchant_id=data.get("merchant_id"),
        )


@dataclass
class CartItem:
    """A product line in the shopping cart."""

    product_id: str | int
    name: str
    price: float
    quantity: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartItem":
        return cls(
            product_id=data["product_id"],
            name=data.get("name", ""),
            price=data["price"],
            quantity=data.get("quantity", 1),
        )


# Models for analytics


@dataclass(frozen=True)
class DeviceInfo:
    """Browser/device descriptor captured when a session starts."""

    user_agent: str = ""
    language: str = ""
    platform: str = ""
    screen_resolution: str = ""
    timezone: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_agent": self.user_agent,
            "language": self.language,
            "platform": self.platform,
            "screen_resolution": self.screen_resolution,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeviceInfo":
        return cls(
            user_agent=data.get("user_agent", ""),
            language=data.get("language", ""),
            platform=data.get("platform", ""),
            screen_resolution=data.get("screen_resolution", ""),
            timezone=data.get("timezone", ""),
        )


@dataclass(frozen=True)
class ClientContext:
    """Where tracked records originate: page URL, referrer and device."""

    url: str = ""
    referrer: str = ""
    user_agent: str = ""
    device_info: DeviceInfo = field(default_factory=DeviceInfo)


@dataclass(frozen=True)
class TrackedEvent:
    """A behavioral event such as addToCart, search or checkout."""

    id: str
    type: str
    data: dict[str, Any]
    timestamp: str
    url: str = ""
    user_agent: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
            "url": self.url,
            "user_agent": self.user_agent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackedEvent":
        return cls(
            id=data["id"],
            type=data["type"],
            data=data.get("data") or {},
            timestamp=data["timestamp"],
            url=data.get("url", ""),
            user_agent=data.get("user_agent", ""),
        )


@dataclass(frozen=True)
class PageView:
    id: str
    page_name: str
    page_url: str
    timestamp: str
    referrer: str = ""
    user_agent: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "page_name": self.page_name,
            "page_url": self.page_url,
            "timestamp": self.timestamp,
            "referrer": self.referrer,
            "user_agent": self.user_agent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageView":
        return cls(
            id=data["id"],
            page_name=data["page_name"],
            page_url=data.get("page_url", ""),
            timestamp=data["timestamp"],
            referrer=data.get("referrer", ""),
            user_agent=data.get("user_agent", ""),
        )


@dataclass
class UserSession:
    """A browsing session. Closed exactly once, which fixes end_time and duration."""

    id: str
    user_id: str | None
    start_time: str
    end_time: str | None = None
    duration: int = 0  # milliseconds
    device_info: DeviceInfo = field(default_factory=DeviceInfo)
    page_views: list[str] = field(default_factory=list)
    events: list[str] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "device_info": self.device_info.to_dict(),
            "page_views": self.page_views,
            "events": self.events,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserSession":
        return cls(
            id=data["id"],
            user_id=data.get("user_id"),
            start_time=data["start_time"],
            end_time=data.get("end_time"),
            duration=data.get("duration", 0),
            device_info=DeviceInfo.from_dict(data.get("device_info") or {}),
            page_views=data.get("page_views", []),
            events=data.get("events", []),
        )


# Models for statistics


@dataclass
class CustomerTotals:
    count: int = 0
    total: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "total": self.total}


@dataclass
class OrderStatistics:
    """Aggregate view over every order in the ledger."""

    total_orders: int
    total_revenue: float
    average_order_value: float
    orders_by_status: dict[str, int]
    orders_by_payment_method: dict[str, int]
    top_customers: dict[str, CustomerTotals]
    recent_orders: list[Order]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_orders": self.total_orders,
            "total_revenue": self.total_revenue,
            "average_order_value": self.average_order_value,
            "orders_by_status": self.orders_by_status,
            "orders_by_payment_method": self.orders_by_payment_method,
            "top_customers": {k: v.to_dict() for k, v in self.top_customers.items()},
            "recent_orders": [o.to_dict() for o in self.recent_orders],
        }


@dataclass
class VisitStatistics:
    total_page_views: int
    unique_pages: int
    total_sessions: int
    average_session_duration: int
    top_pages: dict[str, int]
    referrers: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_page_views": self.total_page_views,
            "unique_pages": self.unique_pages,
            "total_sessions": self.total_sessions,
            "average_session_duration": self.average_session_duration,
            "top_pages": self.top_pages,
            "referrers": self.referrers,
        }


@dataclass
class EventStatistics:
    total_events: int
    events_by_type: dict[str, int]
    events_by_date: dict[str, int]
    top_events: list[tuple[str, int]]  # (type, count), highest first

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "events_by_type": self.events_by_type,
            "events_by_date": self.events_by_date,
            "top_events": [list(e) for e in self.top_events],
        }


@dataclass
class UserBehavior:
    most_viewed_products: dict[str, int]
    most_searched_terms: dict[str, int]
    abandoned_carts: int  # addToCart minus checkout; negative when checkouts outnumber adds
    completed_purchases: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "most_viewed_products": self.most_viewed_products,
            "most_searched_terms": self.most_searched_terms,
            "abandoned_carts": self.abandoned_carts,
            "completed_purchases": self.completed_purchases,
        }


@dataclass
class CleanupCounts:
    events_deleted: int
    page_views_deleted: int
    sessions_deleted: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "events_deleted": self.events_deleted,
            "page_views_deleted": self.page_views_deleted,
            "sessions_deleted": self.sessions_deleted,
        }


@dataclass
class ReportSummary:
    total_events: int
    total_page_views: int
    total_sessions: int
    data_retention_days: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "total_page_views": self.total_page_views,
            "total_sessions": self.total_sessions,
            "data_retention_days": self.data_retention_days,
        }


@dataclass
class AnalyticsReport:
    """Everything the admin dashboard shows about traffic and behavior."""

    generated_at: str
    visit_statistics: VisitStatistics
    event_statistics: EventStatistics
    user_behavior: UserBehavior
    conversion_rate: float
    summary: ReportSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "visit_statistics": self.visit_statistics.to_dict(),
            "event_statistics": self.event_statistics.to_dict(),
            "user_behavior": self.user_behavior.to_dict(),
            "conversion_rate": self.conversion_rate,
            "summary": self.summary.to_dict(),
        }
