"""Service modules for BigQuery and Sheets access."""
