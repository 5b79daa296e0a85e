from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from dashboard.schemas import (
    LedgerRowsResponse,
    RecycleBinResponse,
    StatusResponse,
    SummaryResponse,
)
from dashboard.services import PARTITIONS, LedgerService, get_store
from ledger.base import LedgerStore
from ledger.exceptions import LedgerError

router = APIRouter(prefix="/ledger", tags=["Ledger"])


def _rows_response(partition_key: str, limit: Optional[int], store: LedgerStore) -> LedgerRowsResponse:
    service = LedgerService(store)
    try:
        rows = service.get_rows(PARTITIONS[partition_key], limit=limit)
    except LedgerError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return LedgerRowsResponse(
        success=True,
        partition=PARTITIONS[partition_key],
        count=len(rows),
        data=rows,
    )


@router.get("/deposits", response_model=LedgerRowsResponse)
def get_deposits(limit: Optional[int] = Query(None, ge=1), store: LedgerStore = Depends(get_store)):
    """
    Deposit rows in ledger order (the most recent ``limit`` if given).
    """
    return _rows_response("deposits", limit, store)


@router.get("/withdrawals", response_model=LedgerRowsResponse)
def get_withdrawals(limit: Optional[int] = Query(None, ge=1), store: LedgerStore = Depends(get_store)):
    """
    Withdrawal rows in ledger order (the most recent ``limit`` if given).
    """
    return _rows_response("withdrawals", limit, store)


@router.get("/recycle-bin", response_model=RecycleBinResponse)
def get_recycle_bin(limit: Optional[int] = Query(None, ge=1), store: LedgerStore = Depends(get_store)):
    """
    Transactions discarded by the value filter, with the reason.
    """
    service = LedgerService(store)
    try:
        rows = service.get_recycle_bin(limit=limit)
    except LedgerError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return RecycleBinResponse(success=True, count=len(rows), data=rows)


@router.get("/status", response_model=StatusResponse)
def get_status(store: LedgerStore = Depends(get_store)):
    """
    Last-run outcome of every source.
    """
    service = LedgerService(store)
    try:
        data = service.get_status()
    except LedgerError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return StatusResponse(success=True, data=data)


@router.get("/summary", response_model=SummaryResponse)
def get_summary(store: LedgerStore = Depends(get_store)):
    """
    Row counts and per-asset totals for each partition.
    """
    service = LedgerService(store)
    try:
        data = service.get_summary()
    except LedgerError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return SummaryResponse(success=True, data=data)
