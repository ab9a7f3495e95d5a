"""Configuration data models."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional


@dataclass
class LayoutConfig:
    """Treemap layout configuration."""
    header_height: float  # Sector title strip, px
    sort_by_weight: bool
    group_by_sector: bool
    default_sector: str  # Sector name for items without one


@dataclass
class RenderConfig:
    """Renderer configuration."""
    batch_size: int  # Leaf cells painted per event-loop turn
    min_cell_px: float  # Leaves narrower/shorter than this are not painted
    resize_debounce_ms: float
    show_labels: bool
    empty_message: str
    error_message: str
    detail_url_template: Optional[str]  # e.g. "/?page=stock&symbol={symbol}"
    sector_url_template: Optional[str]  # {sector} or {slug}, e.g. "heatmap_{slug}.html"


@dataclass
class ColorConfig:
    """Color scale configuration."""
    scheme: str  # "default", "blue_red", "green_red"
    thresholds: List[float]  # Four ascending |change%| bucket bounds
    flat_epsilon: float


@dataclass
class DetailTierConfig:
    """Area thresholds (px^2) between label detail tiers."""
    sm: float
    md: float
    lg: float
    xl: float


@dataclass
class DashboardConfig:
    """Dashboard configuration."""
    title: str
    data_file: Optional[str]
    refresh_interval_sec: int  # Data file reload interval for the TUI
    default_preset: str
    output_dir: str


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    directory: str
    console: bool
    timezone: str  # Timezone for log timestamps (e.g., "America/New_York", "UTC", or "local")


@dataclass
class AppConfig:
    """Complete application configuration."""
    layout: LayoutConfig
    render: RenderConfig
    color: ColorConfig
    detail_tiers: DetailTierConfig
    dashboard: DashboardConfig
    logging: LoggingConfig
    presets: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # Per-preset field overrides
    raw: Dict[str, Any] = field(default_factory=dict)  # Raw merged config dict
