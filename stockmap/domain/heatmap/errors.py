"""Heatmap exception hierarchy."""

from __future__ import annotations


class HeatmapError(Exception):
    """Base class for heatmap errors."""


class InvalidBoundsError(HeatmapError, ValueError):
    """Container rectangle is zero-size, negative or not finite."""

    def __init__(self, width: float, height: float):
        self.width = width
        self.height = height
        super().__init__(f"Invalid layout bounds: width={width!r}, height={height!r}")


class DataFileError(HeatmapError):
    """Stock data file could not be parsed."""
