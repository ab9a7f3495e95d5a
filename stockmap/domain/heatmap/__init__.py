"""
Heatmap domain: layout engine, color scale, detail tiers and record
normalization. Pure functions only; no rendering or I/O.
"""

from __future__ import annotations

from .aliases import FIELD_ALIASES, coerce_float, normalize_record, normalize_records, resolve_field
from .color_scale import COLOR_SCHEMES, ColorScale, ColorScheme, bucket_for, color_for, get_color_scheme
from .detail_tiers import DetailTier, TierProfile, TierThresholds, profile_for_area, tier_for_area
from .errors import DataFileError, HeatmapError, InvalidBoundsError
from .grouping import (
    DEFAULT_SECTOR,
    MarketStats,
    SectorStats,
    compute_market_stats,
    compute_sector_stats,
    filter_sector,
    group_by_sector,
    sector_slug,
)
from .layout import iter_leaves, layout, layout_sectors, leaf_area

__all__ = [
    # Layout
    "layout",
    "layout_sectors",
    "iter_leaves",
    "leaf_area",
    # Color
    "ColorScale",
    "ColorScheme",
    "COLOR_SCHEMES",
    "color_for",
    "bucket_for",
    "get_color_scheme",
    # Tiers
    "DetailTier",
    "TierProfile",
    "TierThresholds",
    "tier_for_area",
    "profile_for_area",
    # Records
    "FIELD_ALIASES",
    "resolve_field",
    "coerce_float",
    "normalize_record",
    "normalize_records",
    # Grouping
    "DEFAULT_SECTOR",
    "MarketStats",
    "SectorStats",
    "group_by_sector",
    "filter_sector",
    "sector_slug",
    "compute_market_stats",
    "compute_sector_stats",
    # Errors
    "HeatmapError",
    "InvalidBoundsError",
    "DataFileError",
]
