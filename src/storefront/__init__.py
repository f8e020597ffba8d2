"""storefront: order ledger, analytics and cart for a small online store."""

__version__ = "0.1.0"
