"""
HTML Template - Generates the complete heatmap HTML page.

Page layout: header (title, timestamp, optional back link), market
statistics bar, heatmap container with tooltip and delegated script,
color legend.
"""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import List, Optional, Tuple

from ....domain.heatmap.grouping import MarketStats
from .formatters import format_change, format_market_cap


def _signed_class(value: float) -> str:
    if value > 0:
        return "up"
    if value < 0:
        return "down"
    return ""


def render_stats_bar(stats: MarketStats) -> str:
    """Market statistics bar: counts, breadth and average changes."""
    entries = [
        ("Stocks", str(stats.total), ""),
        ("Advancers", str(stats.advancers), "up"),
        ("Decliners", str(stats.decliners), "down"),
        ("Unchanged", str(stats.unchanged), ""),
        ("Avg Change", format_change(stats.avg_change_pct), _signed_class(stats.avg_change_pct)),
        ("Cap-Weighted", format_change(stats.weighted_change_pct), _signed_class(stats.weighted_change_pct)),
        ("Total Cap", format_market_cap(stats.total_market_cap), ""),
    ]
    items = "".join(
        f'<div class="hm-stat"><span>{label}:</span>'
        f'<span class="hm-stat-value {css}">{escape(value)}</span></div>'
        for label, value, css in entries
    )
    return f'<div class="hm-stats">{items}</div>'


def render_legend(entries: List[Tuple[str, str]]) -> str:
    """Color legend from (label, color) pairs, deepest loss first."""
    items = "".join(
        f'<div class="hm-legend-item" style="background-color:{color};">{escape(label)}</div>'
        for label, color in entries
    )
    return f'<div class="hm-legend">{items}</div>'


def render_heatmap_page(
    title: str,
    heatmap_html: str,
    css_path: str,
    generated_at: Optional[datetime] = None,
    stats_html: str = "",
    legend_html: str = "",
    back_href: Optional[str] = None,
) -> str:
    """
    Render the full page around pre-rendered fragments.

    Args:
        title: Page title (sector name in sector view)
        heatmap_html: Container markup, tooltip and script from HtmlSurface
        css_path: Relative path to external CSS file
        generated_at: Timestamp shown in the header
        stats_html: Market statistics bar (optional)
        legend_html: Color legend (optional)
        back_href: Link back to the market view (sector view only)

    Returns:
        Complete HTML page content
    """
    generated = generated_at.strftime("%Y-%m-%d %H:%M") if generated_at else "N/A"
    back_link = (
        f'<a class="hm-back" href="{escape(back_href)}">&larr; Back to market</a>' if back_href else ""
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{escape(title)}</title>
    <link rel="stylesheet" href="{escape(css_path)}">
</head>
<body class="stockmap">
    <div class="hm-header">
        <h1>{escape(title)}</h1>
        {back_link}
        <div class="meta">Generated: {generated}</div>
    </div>

    {stats_html}

    {heatmap_html}

    {legend_html}
</body>
</html>
"""
