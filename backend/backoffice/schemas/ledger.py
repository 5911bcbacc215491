from pydantic import BaseModel
from datetime import datetime
from typing import Any


class LedgerEntryOut(BaseModel):
    id: int
    date: str
    receivable_vp: float
    payable_vp: float
    receivable_tgn: float
    payable_tgn: float
    total_receivable: float
    total_payable: float
    daily_balance: float
    cumulative_balance: float
    uploaded_by: int | None
    uploaded_by_name: str | None = None
    source_file_name: str
    uploaded_at: datetime

    class Config:
        from_attributes = True


class LedgerPageOut(BaseModel):
    items: list[LedgerEntryOut]
    total: int
    page: int
    total_pages: int


class IngestionErrorOut(BaseModel):
    line: int | None = None
    date: str | None = None
    reason: str
    raw: dict[str, Any] = {}


class IngestionReportOut(BaseModel):
    message: str = ""
    file_name: str
    uploaded_by: int | None
    uploaded_at: datetime
    separator: str
    rows_parsed: int
    rows_accepted: int
    rows_rejected: int
    rows_skipped: int
    created: int
    updated: int
    unique_dates: list[str]
    error_count: int
    errors: list[IngestionErrorOut]

    class Config:
        from_attributes = True


class AnalyticsRow(BaseModel):
    date: str
    total_receivable: float
    total_payable: float
    daily_balance: float
    cumulative_balance: float
    count: int
