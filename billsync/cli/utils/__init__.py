"""CLI display utilities."""
