"""Sheet sync API routes."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from billsync.api.config import get_runner
from billsync.api.serializers import run_record_to_dict
from billsync.core import SyncRunner
from billsync.exceptions import BillSyncError
from billsync.types import SyncTarget
from billsync.utils.helpers import resolve_date_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/update-sheets", tags=["sheets"])


def _target(spreadsheet_id: str, sheet_name: Optional[str], runner: SyncRunner) -> SyncTarget:
    try:
        return SyncTarget(spreadsheet_id, sheet_name or runner.config.sheet_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("")
def update_sheets(
    spreadsheet_id: str = Query(..., description="Target spreadsheet id"),
    sheet_name: Optional[str] = Query(None, description="Tab to overwrite (defaults to configured sheet)"),
    start_date: Optional[str] = Query(None, description="First usage date, YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="Last usage date, YYYY-MM-DD"),
    project_id: Optional[List[str]] = Query(None, description="Restrict to project(s)"),
    runner: SyncRunner = Depends(get_runner),
):
    """Aggregate billing costs and overwrite the target sheet."""
    target = _target(spreadsheet_id, sheet_name, runner)
    date_range = None
    if start_date or end_date:
        try:
            date_range = resolve_date_range(start_date, end_date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid date range: {str(e)}")
    if project_id is not None and any(not p.strip() for p in project_id):
        raise HTTPException(status_code=400, detail="Invalid project filter: empty project id")

    try:
        record = runner.run(target, date_range=date_range, project_ids=project_id)
    except BillSyncError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Unexpected failure syncing {target}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to update sheets: {str(e)}")

    return run_record_to_dict(record)


@router.get("/status")
def get_sync_status(
    spreadsheet_id: str = Query(..., description="Target spreadsheet id"),
    sheet_name: Optional[str] = Query(None, description="Tab name (defaults to configured sheet)"),
    runner: SyncRunner = Depends(get_runner),
):
    """Get the latest run for a target."""
    target = _target(spreadsheet_id, sheet_name, runner)
    return run_record_to_dict(runner.registry.get(target))
