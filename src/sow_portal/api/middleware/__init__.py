"""ASGI middleware for the BFF."""
