"""Push channel: WebSocket listener and event classification."""
