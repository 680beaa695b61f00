"""Version 1 BFF routes."""
