"""BFF HTTP surface over the SOW backend."""
