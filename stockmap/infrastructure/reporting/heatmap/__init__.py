"""
Heatmap reporting: surfaces, renderer, presets and the HTML builder.

Usage:
    surface = InMemorySurface(1200, 800)
    renderer = HeatmapRenderer(surface, RenderOptions(on_cell_click=open_detail))
    outcome = await renderer.render(records)

    HeatmapBuilder(config, preset="mobile").save_heatmap(records, Path("reports"))
"""

from .builder import HeatmapBuilder
from .formatters import format_change, format_market_cap, format_tooltip, format_volume
from .html_surface import HtmlSurface
from .presets import PRESETS, ViewPreset, get_preset, list_presets
from .renderer import HeatmapRenderer, RenderOptions, RenderOutcome, RenderState, coerce_items
from .surface import (
    EVENT_CLICK,
    EVENT_HOVER,
    EVENT_LEAVE,
    EVENT_RETRY,
    CellKind,
    CellSpec,
    InMemorySurface,
    Label,
    LabelRole,
    SurfaceEvent,
    VisualSurface,
)

__all__ = [
    # Renderer
    "HeatmapRenderer",
    "RenderOptions",
    "RenderOutcome",
    "RenderState",
    "coerce_items",
    # Surfaces
    "VisualSurface",
    "InMemorySurface",
    "HtmlSurface",
    "CellSpec",
    "CellKind",
    "Label",
    "LabelRole",
    "SurfaceEvent",
    "EVENT_CLICK",
    "EVENT_HOVER",
    "EVENT_LEAVE",
    "EVENT_RETRY",
    # Presets
    "ViewPreset",
    "PRESETS",
    "get_preset",
    "list_presets",
    # Builder
    "HeatmapBuilder",
    # Formatting
    "format_change",
    "format_market_cap",
    "format_tooltip",
    "format_volume",
]
