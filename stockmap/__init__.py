"""Stockmap - stock market treemap heatmap dashboard."""

__version__ = "0.3.0"
