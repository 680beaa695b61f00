"""Observation of long-running backend generation runs (poll + push)."""
