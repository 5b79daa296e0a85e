import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from core.clock import parse_start_date
from core.config import SyncConfig
from dashboard.schemas import SyncRequest, SyncResponse
from dashboard.services import get_store, get_sync_config
from ledger.base import LedgerStore
from orchestrator.pipeline import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("", response_model=SyncResponse)
async def trigger_sync(
    request: Optional[SyncRequest] = None,
    store: LedgerStore = Depends(get_store),
    config: SyncConfig = Depends(get_sync_config),
):
    """
    Run one sync and return its report.

    Runs are not serialised; callers must not trigger overlapping runs.
    """
    request = request or SyncRequest()
    start_time = None
    if request.start_date:
        try:
            start_time = parse_start_date(request.start_date)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=f"Invalid start_date: {e}")

    report = await SyncOrchestrator(store, config).run(
        start_time=start_time,
        credentials=request.credentials,
    )
    logger.info(f"Sync via API finished: {report.message}")
    return SyncResponse(success=report.success, message=report.message, data=report.to_dict())
