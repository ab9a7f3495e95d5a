"""Presentation layer - Terminal UI using Textual."""

from .app import HeatmapApp

__all__ = ["HeatmapApp"]
