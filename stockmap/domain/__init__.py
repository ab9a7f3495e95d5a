"""Domain layer - pure heatmap logic."""
