"""
Pydantic schemas for Ledger API responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.clock import now_utc

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=now_utc)

# =======================
# 1. LEDGER PARTITIONS
# =======================

class LedgerRow(BaseModel):
    platform: str
    asset: str
    amount: str
    timestamp: str  # YYYY-MM-DD HH:MM (UTC)
    from_address: str
    to_address: str
    tx_id: str

class LedgerRowsResponse(BaseResponse):
    partition: str
    count: int
    data: List[LedgerRow]

# =======================
# 2. RECYCLE BIN
# =======================

class RecycleBinRow(BaseModel):
    date_time: str
    platform: str
    type: str
    asset: str
    amount: str
    calculated_value: str
    used_default_rate: str  # YES / NO
    filter_reason: str
    from_address: str
    to_address: str
    tx_id: str
    status: str
    network: str

class RecycleBinResponse(BaseResponse):
    count: int
    data: List[RecycleBinRow]

# =======================
# 3. SOURCE STATUS
# =======================

class SourceStatusRecord(BaseModel):
    platform: str
    kind: str
    status: str  # Active, Working, Error, Not Working
    last_sync: datetime
    auto_update: str
    notes: str
    transaction_count: int
    failed_sub_fetches: List[str] = []

class StatusResponse(BaseResponse):
    data: List[SourceStatusRecord]

# =======================
# 4. SUMMARY
# =======================

class PartitionSummary(BaseModel):
    rows: int
    totals: Dict[str, str]  # asset -> decimal string

class LedgerSummary(BaseModel):
    partitions: Dict[str, PartitionSummary]
    recycle_bin_rows: int
    sources: int

class SummaryResponse(BaseResponse):
    data: LedgerSummary

# =======================
# 5. SYNC
# =======================

class SyncRequest(BaseModel):
    start_date: Optional[str] = None  # YYYY-MM-DD or ISO 8601
    credentials: Optional[Dict[str, Dict[str, str]]] = None  # keyed by credential key

class SyncResponse(BaseResponse):
    data: Dict[str, Any]
