"""Shared API serializers for converting domain objects to response dicts."""

from typing import Any, Dict

from billsync.types import RunRecord


def run_record_to_dict(record: RunRecord) -> Dict[str, Any]:
    """Convert RunRecord to API response dict."""
    return {
        "spreadsheet_id": record.target.spreadsheet_id,
        "sheet_name": record.target.sheet_name,
        "state": record.state.value,
        "run_id": record.run_id,
        "start_date": record.date_range.start.isoformat() if record.date_range else None,
        "end_date": record.date_range.end.isoformat() if record.date_range else None,
        "started_at": record.started_at.isoformat() if record.started_at else None,
        "finished_at": record.finished_at.isoformat() if record.finished_at else None,
        "duration_seconds": record.duration_seconds,
        "rows_written": record.rows_written,
        "error": record.error,
        "details": record.details,
    }