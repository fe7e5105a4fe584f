"""Storefront back end: catalog, checkout and order fulfillment."""

__version__ = "0.1.0"
