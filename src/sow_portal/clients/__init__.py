"""SOW backend REST client, wire schemas, error helpers and uploads."""
