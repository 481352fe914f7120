"""CLI setup helpers."""
