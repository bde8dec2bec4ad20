"""Per-node metrics collector."""
