"""Display formatting helpers."""
