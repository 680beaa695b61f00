"""Client-side state: optimistic overrides of server-owned values."""
