"""billsync - sync Cloud Billing export costs into Google Sheets."""

__version__ = "0.1.0"
