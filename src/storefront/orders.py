"""Order ledger: creation, status lifecycle, coupons, search and statistics."""

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import structlog

from .errors import InvalidPaymentMethodError
from .models import (
    ORDER_STATUSES,
    PAYMENT_METHODS,
    CustomerTotals,
    Order,
    OrderItem,
    OrderStatistics,
    OrderStatus,
    PaymentMethod,
    TimelineEntry,
    _parse_timestamp,
    _utc_now,
    generate_order_id,
)
from .pricing import (
    COUPONS,
    ORDER_CREATED_MESSAGE,
    calculate_subtotal,
    calculate_tax,
    calculate_total,
    coupon_discount,
    status_message,
)
from .storage import ORDERS_KEY, KeyValueStore

logger = structlog.get_logger(__name__)

ORDER_RETENTION_DAYS = 180
RECENT_ORDERS_LIMIT = 10


class OrderLedger:
    """
    Owns the order collection.

    The collection is loaded once from the store and rewritten in full after
    every mutation. Lookups that miss return None or False rather than raising.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._orders: list[Order] = [
            Order.from_dict(o) for o in (store.get(ORDERS_KEY) or [])
        ]

    @property
    def orders(self) -> list[Order]:
        """All orders in insertion order."""
        return list(self._orders)

    def _save(self) -> None:
        self.store.set(ORDERS_KEY, [o.to_dict() for o in self._orders])

    def create_order(self, data: Mapping[str, Any]) -> Order:
        """
        Create, store and return a new pending order.

        Args:
            data: Mapping with customer_name, customer_phone, customer_address
                and optionally customer_id, customer_email, items, shipping,
                discount, payment_method, notes. Missing text fields default
                to "" and missing amounts to 0.

        Raises:
            InvalidOrderItemError: If an item lacks a numeric price or quantity.
            InvalidPaymentMethodError: If payment_method is not supported.
        """
        items = [OrderItem.from_dict(i) for i in data.get("items") or []]

        payment_method = data.get("payment_method") or PaymentMethod.WHATSAPP.value
        if payment_method not in PAYMENT_METHODS:
            raise InvalidPaymentMethodError(payment_method, PAYMENT_METHODS)

        shipping = data.get("shipping") or 0
        discount = data.get("discount") or 0
        subtotal = calculate_subtotal(items)
        tax = calculate_tax(subtotal)
        now = _utc_now()

        order = Order(
            id=generate_order_id(),
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name", ""),
            customer_phone=data.get("customer_phone", ""),
            customer_email=data.get("customer_email") or "",
            customer_address=data.get("customer_address", ""),
            items=items,
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount,
            total=calculate_total(subtotal, tax, shipping, discount),
            payment_method=payment_method,
            notes=data.get("notes") or "",
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            timeline=[
                TimelineEntry(
                    status=OrderStatus.PENDING.value,
                    timestamp=now,
                    message=ORDER_CREATED_MESSAGE,
                )
            ],
        )

        self._orders.append(order)
        self._save()

        logger.info(
            "Order created",
            order_id=order.id,
            customer_id=order.customer_id,
            item_count=len(items),
            total=order.total,
        )
        return order

    def get_order(self, order_id: str) -> Order | None:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    def get_customer_orders(self, customer_id: str) -> list[Order]:
        return [o for o in self._orders if o.customer_id == customer_id]

    def update_order_status(self, order_id: str, new_status: str, message: str = "") -> bool:
        """
        Move an order to new_status and record it on the timeline.

        Any status may follow any other. Returns False without touching
        anything if the order is missing or new_status is not an order status.
        """
        order = self.get_order(order_id)
        if order is None:
            logger.warning("Status update for unknown order", order_id=order_id)
            return False

        if new_status not in ORDER_STATUSES:
            logger.warning(
                "Rejected invalid order status", order_id=order_id, status=new_status
            )
            return False

        now = _utc_now()
        previous = order.status
        order.status = new_status
        order.updated_at = now
        order.timeline.append(
            TimelineEntry(
                status=new_status,
                timestamp=now,
                message=message or status_message(new_status),
            )
        )

        self._save()
        logger.info(
            "Order status changed",
            order_id=order_id,
            from_status=previous,
            to_status=new_status,
        )
        return True

    def apply_coupon(self, order_id: str, code: str) -> bool:
        """
        Apply a coupon to an order, replacing any earlier coupon discount.

        Returns False if the order or the code is unknown.
        """
        order = self.get_order(order_id)
        if order is None:
            logger.warning("Coupon for unknown order", order_id=order_id)
            return False

        coupon = COUPONS.get(code)
        if coupon is None:
            logger.warning("Unknown coupon code", order_id=order_id, code=code)
            return False

        order.discount = coupon_discount(order.subtotal, coupon)
        order.total = calculate_total(order.subtotal, order.tax, order.shipping, order.discount)
        order.coupon_code = coupon.code
        order.coupon_description = coupon.description
        order.updated_at = _utc_now()

        self._save()
        logger.info(
            "Coupon applied",
            order_id=order_id,
            code=code,
            discount=order.discount,
            total=order.total,
        )
        return True

    def add_note(self, order_id: str, text: str) -> bool:
        """Append a timestamped line to the order notes."""
        order = self.get_order(order_id)
        if order is None:
            logger.warning("Note for unknown order", order_id=order_id)
            return False

        now = _utc_now()
        order.notes = f"{order.notes or ''}\n[{now}]: {text}"
        order.updated_at = now

        self._save()
        return True

    def search_orders(self, filters: Mapping[str, Any] | None = None) -> list[Order]:
        """
        Filter orders. Every supplied filter must match.

        Supported filters: status, customer_id, payment_method, min_total,
        max_total, search. A filter set to None is ignored. search matches
        the order ID and customer name case-insensitively, and the phone as
        a plain substring.
        """
        filters = filters or {}
        status = filters.get("status")
        customer_id = filters.get("customer_id")
        payment_method = filters.get("payment_method")
        min_total = filters.get("min_total")
        max_total = filters.get("max_total")
        search = filters.get("search")

        def matches(order: Order) -> bool:
            if status is not None and order.status != status:
                return False
            if customer_id is not None and order.customer_id != customer_id:
                return False
            if payment_method is not None and order.payment_method != payment_method:
                return False
            if min_total is not None and order.total < min_total:
                return False
            if max_total is not None and order.total > max_total:
                return False
            if search is not None:
                term = search.lower()
                return (
                    term in order.id.lower()
                    or term in (order.customer_name or "").lower()
                    or term in (order.customer_phone or "")
                )
            return True

        return [o for o in self._orders if matches(o)]

    def get_order_statistics(self) -> OrderStatistics:
        by_status = {s: 0 for s in ORDER_STATUSES}
        by_payment = {m: 0 for m in PAYMENT_METHODS}
        customers: dict[str, CustomerTotals] = {}
        revenue: float = 0

        for order in self._orders:
            revenue += order.total
            by_status[order.status] = by_status.get(order.status, 0) + 1
            by_payment[order.payment_method] = by_payment.get(order.payment_method, 0) + 1

            totals = customers.setdefault(order.customer_name, CustomerTotals())
            totals.count += 1
            totals.total += order.total

        count = len(self._orders)
        recent = sorted(
            self._orders, key=lambda o: _parse_timestamp(o.created_at), reverse=True
        )[:RECENT_ORDERS_LIMIT]

        return OrderStatistics(
            total_orders=count,
            total_revenue=revenue,
            average_order_value=revenue / count if count else 0,
            orders_by_status=by_status,
            orders_by_payment_method=by_payment,
            top_customers=customers,
            recent_orders=recent,
        )

    def delete_order(self, order_id: str) -> bool:
        for i, order in enumerate(self._orders):
            if order.id == order_id:
                self._orders.pop(i)
                self._save()
                logger.info("Order deleted", order_id=order_id)
                return True
        return False

    def cleanup_old_orders(
        self,
        retention_days: int = ORDER_RETENTION_DAYS,
        now: datetime | None = None,
    ) -> int:
        """
        Remove orders created more than retention_days before now.

        An order created exactly at the cutoff is kept.

        Returns:
            Number of orders removed.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - timedelta(days=retention_days)
        initial = len(self._orders)
        self._orders = [
            o for o in self._orders if _parse_timestamp(o.created_at) >= cutoff
        ]
        self._save()

        removed = initial - len(self._orders)
        logger.info(
            "Old orders cleaned up", retention_days=retention_days, removed=removed
        )
        return removed
