"""Core data models."""

from .heatmap import LayoutNode, SectorGroup, StockItem

__all__ = ["StockItem", "SectorGroup", "LayoutNode"]
