"""Shopping cart storage."""

from .catalog import same_product_id
from .errors import InsufficientStockError, InvalidOrderItemError
from .models import CartItem
from .storage import CART_KEY, KeyValueStore


class ShoppingCart:
    """Manages the cart lines for one browsing client."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._items = [CartItem.from_dict(i) for i in store.get(CART_KEY) or []]

    def _save(self) -> None:
        self.store.set(CART_KEY, [i.to_dict() for i in self._items])

    def _find(self, product_id: str | int) -> CartItem | None:
        for item in self._items:
            if same_product_id(item.product_id, product_id):
                return item
        return None

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self._items)

    @property
    def total(self) -> float:
        return sum(i.price * i.quantity for i in self._items)

    def is_empty(self) -> bool:
        return not self._items

    def add_item(
        self,
        product_id: str | int,
        name: str,
        price: float,
        quantity: int = 1,
        stock: int | None = None,
    ) -> CartItem:
        """
        Add a product, or increase its quantity if it is already in the cart.

        Args:
            stock: Available units. When given, the resulting quantity may not exceed it.

        Raises:
            InvalidOrderItemError: If quantity is less than 1.
            InsufficientStockError: If the new quantity exceeds stock.
        """
        if quantity < 1:
            raise InvalidOrderItemError(
                {"product_id": product_id, "quantity": quantity}, "quantity must be at least 1"
            )

        existing = self._find(product_id)
        requested = quantity + (existing.quantity if existing else 0)
        if stock is not None and requested > stock:
            raise InsufficientStockError(product_id, requested, stock)

        if existing:
            existing.quantity = requested
            item = existing
        else:
            item = CartItem(product_id=product_id, name=name, price=price, quantity=quantity)
            self._items.append(item)

        self._save()
        return item

    def update_quantity(
        self, product_id: str | int, quantity: int, stock: int | None = None
    ) -> bool:
        """
        Set a line's quantity. A quantity of zero or less removes the line.

        Returns False if the product is not in the cart.

        Raises:
            InsufficientStockError: If quantity exceeds stock.
        """
        item = self._find(product_id)
        if item is None:
            return False

        if quantity <= 0:
            return self.remove_item(product_id)

        if stock is not None and quantity > stock:
            raise InsufficientStockError(product_id, quantity, stock)

        item.quantity = quantity
        self._save()
        return True

    def remove_item(self, product_id: str | int) -> bool:
        remaining = [i for i in self._items if not same_product_id(i.product_id, product_id)]
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        self._save()
        return True

    def clear(self) -> None:
        self._items = []
        self._save()
