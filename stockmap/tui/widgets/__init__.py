"""
Textual widgets for the Stockmap dashboard.
"""

from .heatmap_panel import HeatmapPanel, TerminalSurface

__all__ = ["HeatmapPanel", "TerminalSurface"]
