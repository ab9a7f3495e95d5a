"""
Heatmap theme CSS.

Written to assets/heatmap-theme.css next to the generated page. Bucket
background rules come from the active ColorScale so the stylesheet and
the inline cell colors always agree.
"""

from __future__ import annotations

from typing import Optional

from ....domain.heatmap.color_scale import ColorScale

HEATMAP_CSS = """
body.stockmap {
    margin: 0;
    padding: 0 16px 16px;
    background: #1a1c22;
    color: #e6e6e6;
    font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
}

.hm-header {
    display: flex;
    align-items: baseline;
    justify-content: space-between;
    padding: 12px 0;
}

.hm-header h1 {
    margin: 0;
    font-size: 20px;
}

.hm-header .meta {
    color: #9aa0a6;
    font-size: 12px;
}

.hm-back {
    color: #8ab4f8;
    font-size: 13px;
    text-decoration: none;
}

.hm-stats {
    display: flex;
    flex-wrap: wrap;
    gap: 16px;
    padding: 8px 0 12px;
    font-size: 13px;
}

.hm-stat-value { font-weight: 600; margin-left: 4px; }
.hm-stat-value.up { color: #30cc5a; }
.hm-stat-value.down { color: #f63538; }

.treemap-container {
    overflow: hidden;
    background: #262931;
}

.treemap-sector,
.treemap-stock {
    position: absolute;
    box-sizing: border-box;
    overflow: hidden;
}

.treemap-sector {
    border: 1px solid #1a1c22;
}

.treemap-sector-title {
    display: block;
    padding: 4px 6px;
    color: #e6e6e6;
    font-weight: 600;
    text-decoration: none;
    white-space: nowrap;
    overflow: hidden;
    text-overflow: ellipsis;
    cursor: pointer;
}

.treemap-stock {
    display: flex;
    flex-direction: column;
    align-items: center;
    justify-content: center;
    border: 1px solid #1a1c22;
    color: #ffffff;
    text-align: center;
    cursor: pointer;
    line-height: 1.15;
}

.treemap-stock:hover { outline: 2px solid #ffffff; z-index: 1; }

.treemap-stock .stock-name {
    opacity: 0.85;
    white-space: nowrap;
    overflow: hidden;
    text-overflow: ellipsis;
    max-width: 95%;
}

.treemap-stock .stock-ticker { font-weight: 700; }

.treemap-stock.detail-xs span { display: none; }

.treemap-placeholder,
.treemap-error {
    position: absolute;
    inset: 0;
    display: flex;
    flex-direction: column;
    align-items: center;
    justify-content: center;
    color: #9aa0a6;
    font-size: 14px;
}

.treemap-retry {
    padding: 6px 16px;
    border: 1px solid #8ab4f8;
    border-radius: 4px;
    background: transparent;
    color: #8ab4f8;
    cursor: pointer;
}

.heatmap-tooltip {
    position: fixed;
    z-index: 10;
    padding: 8px 10px;
    border-radius: 4px;
    background: rgba(20, 22, 28, 0.95);
    color: #e6e6e6;
    font-size: 12px;
    white-space: pre-line;
    pointer-events: none;
}

.hm-legend {
    display: flex;
    gap: 2px;
    padding-top: 12px;
    font-size: 11px;
}

.hm-legend-item {
    padding: 4px 8px;
    color: #ffffff;
}
"""


def build_theme_css(color_scale: Optional[ColorScale] = None) -> str:
    """Base stylesheet plus bucket background rules for the scale."""
    scale = color_scale or ColorScale()
    return HEATMAP_CSS + "\n/* Change buckets */\n" + scale.css_rules(".treemap-stock") + "\n"
