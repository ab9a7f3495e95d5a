"""
Formatting utilities for the Terminal Dashboard.

Uses Textual markup syntax (same as Rich markup).
"""

from __future__ import annotations

import math
from typing import Optional

from ..domain.heatmap.grouping import MarketStats
from ..infrastructure.reporting.heatmap.formatters import format_change, format_market_cap


def format_change_markup(change_pct: float | None) -> str:
    """Signed percent colored green/red."""
    text = format_change(change_pct)
    if change_pct is None or not math.isfinite(change_pct):
        return f"[dim]{text}[/]"
    if change_pct > 0:
        return f"[green]{text}[/]"
    elif change_pct < 0:
        return f"[red]{text}[/]"
    return text


def format_stats_line(stats: MarketStats, sector: Optional[str] = None, grouped: bool = True) -> str:
    """One-line market summary for the dashboard header."""
    if sector:
        scope = f"[bold cyan]{sector}[/] [dim](esc: market view)[/]"
    else:
        scope = "[bold cyan]Market[/]" + (" [dim]by sector[/]" if grouped else " [dim]flat[/]")

    return (
        f"{scope}  "
        f"{stats.total} stocks  "
        f"[green]▲ {stats.advancers}[/]  "
        f"[red]▼ {stats.decliners}[/]  "
        f"[dim]= {stats.unchanged}[/]  "
        f"avg {format_change_markup(stats.avg_change_pct)}  "
        f"cap-wtd {format_change_markup(stats.weighted_change_pct)}  "
        f"cap {format_market_cap(stats.total_market_cap)}"
    )
