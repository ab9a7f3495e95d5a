"""
Plain-text formatting for heatmap cells and tooltips.

Market caps follow the upstream convention: millions of USD.
"""

from __future__ import annotations

import math
from typing import Optional

from ....models.heatmap import StockItem


def format_change(change_pct: Optional[float]) -> str:
    """Signed percent with two decimals, e.g. '+1.23%'. Missing or non-finite: '—'."""
    if change_pct is None or not math.isfinite(change_pct):
        return "—"
    sign = "+" if change_pct >= 0 else ""
    return f"{sign}{change_pct:.2f}%"


def format_market_cap(cap_millions: Optional[float]) -> str:
    """Human readable market cap from millions: '$2.95T', '$170.00B', '$850.0M'."""
    if cap_millions is None or cap_millions <= 0:
        return "N/A"
    if cap_millions >= 1_000_000:
        return f"${cap_millions / 1_000_000:.2f}T"
    if cap_millions >= 1_000:
        return f"${cap_millions / 1_000:.2f}B"
    return f"${cap_millions:.1f}M"


def format_volume(volume: Optional[float]) -> str:
    if volume is None or volume <= 0:
        return "N/A"
    if volume >= 1_000_000_000:
        return f"{volume / 1_000_000_000:.2f}B"
    if volume >= 1_000_000:
        return f"{volume / 1_000_000:.2f}M"
    if volume >= 1_000:
        return f"{volume / 1_000:.1f}K"
    return f"{volume:.0f}"


def format_tooltip(item: StockItem, default_sector: str = "N/A") -> str:
    """
    Multi-line tooltip text for a stock cell (market cap in billions).

    Example:
        AAPL - Apple Inc.
        Change: +1.23%
        Market Cap: $2,950.00B
        Sector: Technology
    """
    lines = [
        f"{item.symbol} - {item.label}",
        f"Change: {format_change(item.change_percent)}",
        f"Market Cap: ${item.weight / 1000:,.2f}B",
        f"Sector: {item.sector or default_sector}",
    ]
    if item.price is not None:
        lines.append(f"Price: ${item.price:,.2f}")
    if item.volume:
        lines.append(f"Volume: {format_volume(item.volume)}")
    return "\n".join(lines)
