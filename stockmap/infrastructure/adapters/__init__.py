"""Infrastructure adapters for data sources."""

from .file_loader import StockFileLoader

__all__ = ["StockFileLoader"]
