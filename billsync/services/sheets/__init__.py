"""Sheets service module for spreadsheet sync."""

from .writer import SheetsSyncWriter, build_sheets_service

__all__ = [
    "SheetsSyncWriter",
    "build_sheets_service",
]
