"""storefront: checkout, hosted payment reconciliation and order administration."""

__version__ = "0.1.0"
