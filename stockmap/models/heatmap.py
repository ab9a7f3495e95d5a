"""
Heatmap Data Model.

Pure data structures shared by the layout engine and the renderer:

    StockItem (one record per ticker, normalized)
        ↓
    SectorGroup (ephemeral aggregation, rebuilt every render)
        ↓
    LayoutNode (geometry produced by the layout engine)

Nothing here is persisted; items are rebuilt from the upstream API payload
on every refresh and the layout tree is recomputed on every render.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class StockItem:
    """
    Single weighted treemap item (a stock).

    `weight` is market capitalization; it is always >= 0 after
    normalization. Items with zero weight degenerate to zero area and are
    dropped by the layout engine.
    """

    symbol: str
    label: str
    weight: float
    change_percent: float
    sector: Optional[str] = None

    # Tooltip extras
    volume: Optional[float] = None
    price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON/frontend consumption."""
        return {
            "symbol": self.symbol,
            "label": self.label,
            "weight": self.weight,
            "change_percent": self.change_percent,
            "sector": self.sector,
            "volume": self.volume,
            "price": self.price,
        }


@dataclass
class SectorGroup:
    """Grouping of stocks by sector."""

    name: str
    items: List[StockItem] = field(default_factory=list)

    @property
    def total_weight(self) -> float:
        # Computed on access so it follows membership changes.
        return sum(item.weight for item in self.items)

    def add(self, item: StockItem) -> None:
        self.items.append(item)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON."""
        return {
            "name": self.name,
            "total_weight": self.total_weight,
            "items": [i.to_dict() for i in self.items],
        }


@dataclass
class LayoutNode:
    """
    One placed rectangle in the treemap.

    Can represent:
    - A stock (leaf node, no children)
    - A sector (group node; children are its placed stocks, laid out below
      a header strip of `header_height`)

    Coordinates are absolute within the container passed to the layout call.
    """

    ref: Union[StockItem, SectorGroup]
    x: float
    y: float
    width: float
    height: float
    children: List["LayoutNode"] = field(default_factory=list)
    header_height: float = 0.0

    @property
    def is_group(self) -> bool:
        return isinstance(self.ref, SectorGroup)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, px: float, py: float) -> bool:
        """Half-open hit test so shared edges belong to exactly one node."""
        return self.x <= px < self.right and self.y <= py < self.bottom

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON export."""
        ref_id = self.ref.name if isinstance(self.ref, SectorGroup) else self.ref.symbol
        return {
            "id": ref_id,
            "kind": "sector" if self.is_group else "stock",
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "header_height": self.header_height,
            "children": [c.to_dict() for c in self.children],
        }
