"""Custom exceptions for storefront."""


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class StorageCorruptedError(StorefrontError):
    """Raised when a stored value cannot be decoded as JSON."""

    def __init__(self, key: str, path: str | None = None):
        self.key = key
        self.path = path
        msg = f"Stored value for '{key}' is not valid JSON"
        if path:
            msg = f"{msg} ({path})"
        super().__init__(msg)


class InvalidOrderItemError(StorefrontError):
    """Raised when a line item is missing a numeric price or quantity."""

    def __init__(self, item: object, reason: str):
        self.item = item
        self.reason = reason
        super().__init__(f"Invalid order item {item!r}: {reason}")


class InvalidPaymentMethodError(StorefrontError):
    """Raised when an order is created with an unknown payment method."""

    def __init__(self, method: str, supported: list[str]):
        self.method = method
        self.supported = supported
        super().__init__(
            f"Unknown payment method '{method}'. Supported: {', '.join(supported)}"
        )


class OrderNotFoundError(StorefrontError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class SessionNotFoundError(StorefrontError):
    """Raised when a session ID doesn't exist."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class InvalidStatusError(StorefrontError):
    """Raised when a status is not one of the order statuses."""

    def __init__(self, status: str, supported: list[str]):
        self.status = status
        self.supported = supported
        super().__init__(
            f"Invalid status '{status}'. Expected one of: {', '.join(supported)}"
        )


class UnknownCouponError(StorefrontError):
    """Raised when a coupon code is not in the coupon table."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unknown coupon code: {code}")


class EmptyCartError(StorefrontError):
    """Raised when checking out a cart with no items."""

    def __init__(self):
        super().__init__("Cart is empty. Add items before checking out.")


class InsufficientStockError(StorefrontError):
    """Raised when a cart quantity would exceed the available stock."""

    def __init__(self, product_id: object, requested: int, stock: int):
        self.product_id = product_id
        self.requested = requested
        self.stock = stock
        super().__init__(
            f"Not enough stock for product {product_id}: "
            f"requested {requested}, available {stock}"
        )


class ProductNotFoundError(StorefrontError):
    """Raised when a product ID is not in the catalog."""

    def __init__(self, product_id: object):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class InvalidProductError(StorefrontError):
    """Raised when a product has a negative or non-numeric price or stock."""

    def __init__(self, product: object, reason: str):
        self.product = product
        self.reason = reason
        super().__init__(f"Invalid product {product!r}: {reason}")


class CartItemNotFoundError(StorefrontError):
    """Raised when a product is not in the cart."""

    def __init__(self, product_id: object):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not in the cart")
