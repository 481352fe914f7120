"""Command line interface for billsync."""
