"""Infrastructure layer: data adapters and report rendering."""
