"""
Sector grouping and market statistics.

Groups are rebuilt from the flat item list on every render. Statistics
mirror the dashboard's summary bar (advancers/decliners/average change)
and the per-sector aggregation (market-cap weighted change).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from ...models.heatmap import SectorGroup, StockItem

DEFAULT_SECTOR = "Other"


@dataclass
class MarketStats:
    """Summary across all items."""

    total: int = 0
    advancers: int = 0
    decliners: int = 0
    unchanged: int = 0
    avg_change_pct: float = 0.0
    weighted_change_pct: float = 0.0
    total_market_cap: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "advancers": self.advancers,
            "decliners": self.decliners,
            "unchanged": self.unchanged,
            "avg_change_pct": self.avg_change_pct,
            "weighted_change_pct": self.weighted_change_pct,
            "total_market_cap": self.total_market_cap,
        }


@dataclass
class SectorStats:
    """Aggregation for a single sector."""

    sector: str
    count: int
    advancers: int
    decliners: int
    total_market_cap: float
    total_volume: float
    weighted_change_pct: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sector": self.sector,
            "count": self.count,
            "advancers": self.advancers,
            "decliners": self.decliners,
            "total_market_cap": self.total_market_cap,
            "total_volume": self.total_volume,
            "weighted_change_pct": self.weighted_change_pct,
        }


def group_by_sector(items: Sequence[StockItem], default_sector: str = DEFAULT_SECTOR) -> List[SectorGroup]:
    """Group items by sector, keeping first-seen sector order."""
    groups: Dict[str, SectorGroup] = {}
    for item in items:
        name = item.sector or default_sector
        group = groups.get(name)
        if group is None:
            group = SectorGroup(name=name)
            groups[name] = group
        group.add(item)
    return list(groups.values())


def filter_sector(
    items: Sequence[StockItem], sector: str, default_sector: str = DEFAULT_SECTOR
) -> List[StockItem]:
    """Items belonging to one sector (for sector drill-down)."""
    return [i for i in items if (i.sector or default_sector) == sector]


def sector_slug(name: str) -> str:
    """File-name-safe sector key: 'Communication Services' -> 'communication_services'."""
    return "".join(ch.lower() if ch.isalnum() else "_" for ch in name).strip("_")


def items_to_frame(items: Sequence[StockItem]) -> pd.DataFrame:
    """Tabular view of items for aggregation."""
    columns = ["symbol", "sector", "weight", "change_percent", "volume"]
    if not items:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        {
            "symbol": [i.symbol for i in items],
            "sector": [i.sector or DEFAULT_SECTOR for i in items],
            "weight": [i.weight for i in items],
            "change_percent": [i.change_percent for i in items],
            "volume": [i.volume or 0.0 for i in items],
        },
        columns=columns,
    )


def _weighted_change(weights: pd.Series, changes: pd.Series) -> float:
    total = float(weights.sum())
    if total <= 0:
        return 0.0
    return round(float((weights * changes).sum()) / total, 2)


def compute_market_stats(items: Sequence[StockItem]) -> MarketStats:
    """Advancers/decliners and average changes over all items."""
    df = items_to_frame(items)
    if df.empty:
        return MarketStats()

    changes = df["change_percent"].astype(float)
    weights = df["weight"].astype(float)
    return MarketStats(
        total=len(df),
        advancers=int((changes > 0).sum()),
        decliners=int((changes < 0).sum()),
        unchanged=int((changes == 0).sum()),
        avg_change_pct=round(float(changes.mean()), 2),
        weighted_change_pct=_weighted_change(weights, changes),
        total_market_cap=float(weights.sum()),
    )


def compute_sector_stats(items: Sequence[StockItem]) -> List[SectorStats]:
    """Per-sector aggregation, largest sector (by market cap) first."""
    df = items_to_frame(items)
    if df.empty:
        return []

    stats: List[SectorStats] = []
    for sector, frame in df.groupby("sector", sort=False):
        changes = frame["change_percent"].astype(float)
        weights = frame["weight"].astype(float)
        stats.append(
            SectorStats(
                sector=str(sector),
                count=len(frame),
                advancers=int((changes > 0).sum()),
                decliners=int((changes < 0).sum()),
                total_market_cap=float(weights.sum()),
                total_volume=float(frame["volume"].astype(float).sum()),
                weighted_change_pct=_weighted_change(weights, changes),
            )
        )

    stats.sort(key=lambda s: s.total_market_cap, reverse=True)
    return stats


def find_sector_stats(stats: Sequence[SectorStats], sector: str) -> Optional[SectorStats]:
    for entry in stats:
        if entry.sector == sector:
            return entry
    return None
