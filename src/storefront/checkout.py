"""The storefront container: one catalog, ledger, aggregator and cart over one store."""

from typing import Any

import structlog

from .analytics import ADD_TO_CART, CHECKOUT, SEARCH, VIEW_PRODUCT, AnalyticsAggregator
from .cart import ShoppingCart
from .catalog import ProductCatalog
from .errors import EmptyCartError, InsufficientStockError, ProductNotFoundError
from .models import CartItem, ClientContext, Order, PaymentMethod, Product
from .orders import OrderLedger
from .pricing import calculate_shipping
from .storage import KeyValueStore

logger = structlog.get_logger(__name__)


class Storefront:
    """
    Composes the catalog, the ledger, the aggregator and the cart.

    Neither the ledger nor the aggregator knows about the other; flows that
    touch both (adding to the cart, checking out) live here. Cart lines take
    their name, price and stock limit from the catalog.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        ledger: OrderLedger,
        analytics: AnalyticsAggregator,
        cart: ShoppingCart,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.analytics = analytics
        self.cart = cart

    def _require_product(self, product_id: str | int) -> Product:
        product = self.catalog.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def add_to_cart(self, product_id: str | int, quantity: int = 1) -> CartItem:
        """
        Add a catalog product to the cart and record an addToCart event.

        Raises:
            ProductNotFoundError: If the product is not in the catalog.
            InsufficientStockError: If the product is out of stock or the
                cart quantity would exceed its stock.
        """
        product = self._require_product(product_id)
        if not product.in_stock:
            raise InsufficientStockError(product.id, quantity, product.stock)

        item = self.cart.add_item(
            product.id, product.name, product.price, quantity=quantity, stock=product.stock
        )
        self.analytics.track_event(ADD_TO_CART, {"productId": product.id})
        return item

    def update_cart_item(self, product_id: str | int, quantity: int) -> bool:
        """
        Set a cart line's quantity, capped by the product's current stock.

        Returns False if the product is not in the cart. A line whose product
        has left the catalog can still be changed, without a stock check.
        """
        product = self.catalog.get_product(product_id)
        stock = product.stock if product is not None else None
        return self.cart.update_quantity(product_id, quantity, stock=stock)

    def remove_from_cart(self, product_id: str | int) -> bool:
        return self.cart.remove_item(product_id)

    def browse(self, category: str | None = None) -> list[Product]:
        return self.catalog.list_products(category=category)

    def search(self, term: str, category: str | None = None) -> list[Product]:
        """Record a search event and return the in-stock products whose name matches."""
        self.analytics.track_event(SEARCH, {"searchTerm": term})
        return self.catalog.list_products(category=category, search=term)

    def view_product(self, product_id: str | int) -> Product:
        """
        Return a product and record a viewProduct event.

        Raises:
            ProductNotFoundError: If the product is not in the catalog.
        """
        product = self._require_product(product_id)
        self.analytics.track_event(VIEW_PRODUCT, {"productId": product.id})
        return product

    def checkout(
        self,
        customer_name: str,
        customer_phone: str = "",
        customer_address: str = "",
        customer_id: str | None = None,
        payment_method: str = PaymentMethod.WHATSAPP.value,
        notes: str = "",
    ) -> Order:
        """
        Turn the cart into a pending order and empty the cart.

        Shipping is priced from the delivery address.

        Raises:
            EmptyCartError: If the cart has no items.
            InvalidPaymentMethodError: If payment_method is not supported.
        """
        if self.cart.is_empty():
            raise EmptyCartError()

        order = self.ledger.create_order(
            {
                "customer_id": customer_id,
                "customer_name": customer_name,
                "customer_phone": customer_phone,
                "customer_address": customer_address,
                "items": [i.to_dict() for i in self.cart.items],
                "shipping": calculate_shipping(customer_address),
                "payment_method": payment_method,
                "notes": notes,
            }
        )
        self.analytics.track_event(CHECKOUT, {"orderId": order.id})
        self.cart.clear()

        logger.info("Checkout completed", order_id=order.id, total=order.total)
        return order

    def dashboard_overview(self) -> dict[str, Any]:
        """Order statistics and the analytics report, for the admin dashboard."""
        return {
            "orders": self.ledger.get_order_statistics().to_dict(),
            "analytics": self.analytics.generate_comprehensive_report().to_dict(),
        }


def open_storefront(store: KeyValueStore, context: ClientContext | None = None) -> Storefront:
    """Build a Storefront whose components all persist to store."""
    return Storefront(
        catalog=ProductCatalog(store),
        ledger=OrderLedger(store),
        analytics=AnalyticsAggregator(store, context=context),
        cart=ShoppingCart(store),
    )
