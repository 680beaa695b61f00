"""Cross-cutting infrastructure: logging configuration and Prometheus metrics."""
