"""Notification inbox mirror and navigation targets."""
