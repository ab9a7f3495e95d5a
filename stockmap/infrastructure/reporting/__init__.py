"""
Reporting Package.

- Heatmap: treemap renderer, visual surfaces, view presets and the HTML
  report builder
"""

from .heatmap import HeatmapBuilder, HeatmapRenderer, RenderOptions

__all__ = ["HeatmapBuilder", "HeatmapRenderer", "RenderOptions"]
