"""HTTP API for triggering sheet syncs."""
