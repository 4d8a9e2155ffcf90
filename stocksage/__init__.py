"""StockSage educational stock insight service."""

__version__ = "0.1.0"
