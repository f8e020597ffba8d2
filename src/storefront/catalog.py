"""Product catalog: the products shoppers browse, search and add to the cart."""

from typing import Any

import structlog

from .errors import InvalidProductError
from .models import Product, _is_number
from .storage import PRODUCTS_KEY, KeyValueStore

logger = structlog.get_logger(__name__)

ALL_CATEGORIES = "all"
DEFAULT_RATING = 4.5


def same_product_id(a: str | int, b: str | int) -> bool:
    """Compare product IDs so that 7 and "7" (a URL path segment) match."""
    return str(a) == str(b)


def _validate(product: Product) -> None:
    if not _is_number(product.price) or product.price < 0:
        raise InvalidProductError(product.to_dict(), "price must be a non-negative number")
    if not isinstance(product.stock, int) or isinstance(product.stock, bool) or product.stock < 0:
        raise InvalidProductError(product.to_dict(), "stock must be a non-negative integer")


class ProductCatalog:
    """
    Owns the product collection.

    Like the ledger, the collection is loaded once and rewritten whole after
    every change. Lookups that miss return None or False.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._products = [Product.from_dict(p) for p in store.get(PRODUCTS_KEY) or []]

    @property
    def products(self) -> list[Product]:
        """Every product, including those out of stock."""
        return list(self._products)

    def _save(self) -> None:
        self.store.set(PRODUCTS_KEY, [p.to_dict() for p in self._products])

    def get_product(self, product_id: str | int) -> Product | None:
        for product in self._products:
            if same_product_id(product.id, product_id):
                return product
        return None

    def list_products(
        self,
        category: str | None = None,
        search: str | None = None,
        include_out_of_stock: bool = False,
    ) -> list[Product]:
        """
        Products a shopper can see.

        Args:
            category: Keep only this category. None or "all" keeps every category.
            search: Case-insensitive substring of the product name.
            include_out_of_stock: Also list products whose stock is 0.
        """
        products = [p for p in self._products if include_out_of_stock or p.in_stock]
        if category and category != ALL_CATEGORIES:
            products = [p for p in products if p.category == category]
        if search:
            term = search.lower()
            products = [p for p in products if term in p.name.lower()]
        return products

    def categories(self) -> list[str]:
        """Distinct categories in first-seen order."""
        return list(dict.fromkeys(p.category for p in self._products))

    def add_product(
        self,
        name: str,
        category: str,
        price: float,
        stock: int,
        rating: float = DEFAULT_RATING,
        images: list[str] | None = None,
        merchant_id: str | None = None,
    ) -> Product:
        """
        Add a product with the next numeric ID.

        Raises:
            InvalidProductError: If price or stock is negative or not a number.
        """
        numeric_ids = [p.id for p in self._products if isinstance(p.id, int)]
        product = Product(
            id=max(numeric_ids, default=0) + 1,
            name=name,
            category=category,
            price=price,
            stock=stock,
            rating=rating,
            images=list(images or []),
            merchant_id=merchant_id,
        )
        _validate(product)

        self._products.append(product)
        self._save()

        logger.info("Product added", product_id=product.id, category=category)
        return product

    def update_product(self, product_id: str | int, **changes: Any) -> Product | None:
        """
        Change fields of an existing product. The ID never changes.

        Returns None if the product does not exist.

        Raises:
            InvalidProductError: If the new price or stock is invalid.
        """
        product = self.get_product(product_id)
        if product is None:
            return None

        data = product.to_dict()
        data.update({k: v for k, v in changes.items() if v is not None and k != "id"})
        updated = Product.from_dict(data)
        _validate(updated)

        index = self._products.index(product)
        self._products[index] = updated
        self._save()
        return updated

    def delete_product(self, product_id: str | int) -> bool:
        product = self.get_product(product_id)
        if product is None:
            return False

        self._products.remove(product)
        self._save()

        logger.info("Product deleted", product_id=product.id)
        return True
