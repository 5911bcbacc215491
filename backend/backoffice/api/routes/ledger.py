from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy import String, func, select
from sqlalchemy.orm import Session

from backoffice.api.deps import db, current_user, ledger_store, require_admin, require_roles
from backoffice.core.config import settings
from backoffice.models.ledger_entry import LedgerEntry
from backoffice.models.user import User
from backoffice.schemas.ledger import AnalyticsRow, IngestionReportOut, LedgerEntryOut, LedgerPageOut
from backoffice.services.audit import log_event
from backoffice.services.ingestion import EmptyUploadError, IngestionStreamError, ingest
from backoffice.services.ledger_store import LedgerStore
from backoffice.utils.timezone import utcnow

log = logging.getLogger(__name__)

router = APIRouter(prefix="/client-data", tags=["ledger"])

CSV_TYPES = ("text/csv", "application/csv")
UPLOAD_ROLES = ("admin", "manager", "financial")


def _chronological():
    # DD/MM/YYYY -> YYYYMMDD
    d = LedgerEntry.date
    return (
        func.substr(d, 7, 4, type_=String)
        + func.substr(d, 4, 2, type_=String)
        + func.substr(d, 1, 2, type_=String)
    )


def _is_csv(f: UploadFile) -> bool:
    return (f.content_type or "") in CSV_TYPES or (f.filename or "").lower().endswith(".csv")


@router.post("/upload", response_model=IngestionReportOut)
def upload(
    file: UploadFile | None = File(None, alias="csvFile"),
    s: Session = Depends(db),
    store: LedgerStore = Depends(ledger_store),
    u: User = Depends(require_roles(*UPLOAD_ROLES)),
):
    if file is None:
        raise HTTPException(status_code=400, detail="no_file_uploaded")
    if not _is_csv(file):
        raise HTTPException(status_code=400, detail="csv_only")

    try:
        data = file.file.read(settings.upload_max_bytes + 1)
    except OSError:
        log.exception("upload read failed file=%s", file.filename)
        raise HTTPException(status_code=500, detail="csv_read_failed")
    if len(data) > settings.upload_max_bytes:
        raise HTTPException(status_code=413, detail="file_too_large")

    file_name = file.filename or "upload.csv"
    try:
        report = ingest(store, data, u.id, file_name)
    except EmptyUploadError:
        raise HTTPException(status_code=400, detail="empty_file")
    except IngestionStreamError:
        log.exception("upload stream failed file=%s", file_name)
        raise HTTPException(status_code=500, detail="csv_read_failed")

    log_event(
        s,
        actor=u,
        action="ledger.upload",
        details={
            "file_name": file_name,
            "rows_parsed": report.rows_parsed,
            "rows_accepted": report.rows_accepted,
            "rows_rejected": report.rows_rejected,
            "created": report.created,
            "updated": report.updated,
        },
    )

    message = f"CSV file processed successfully. {report.rows_accepted} records processed"
    if report.error_count:
        message += f", {report.error_count} rows had errors"
    return IngestionReportOut.model_validate(report).model_copy(update={"message": message})


@router.get("", response_model=LedgerPageOut)
def list_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    s: Session = Depends(db),
    u: User = Depends(current_user),
):
    conds = []
    if start_date is not None and end_date is not None:
        conds = [LedgerEntry.uploaded_at >= start_date, LedgerEntry.uploaded_at <= end_date]

    total = s.execute(select(func.count(LedgerEntry.id)).where(*conds)).scalar_one()
    rows = s.execute(
        select(LedgerEntry, User.name)
        .outerjoin(User, User.id == LedgerEntry.uploaded_by)
        .where(*conds)
        .order_by(_chronological().asc(), LedgerEntry.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    items = [
        LedgerEntryOut.model_validate(e).model_copy(update={"uploaded_by_name": name})
        for (e, name) in rows
    ]
    return {
        "items": items,
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/analytics", response_model=list[AnalyticsRow])
def analytics(
    period: int = Query(30, ge=1, le=3650),
    s: Session = Depends(db),
    u: User = Depends(current_user),
):
    since = utcnow() - timedelta(days=period)
    rows = s.execute(
        select(
            LedgerEntry.date,
            func.sum(LedgerEntry.total_receivable),
            func.sum(LedgerEntry.total_payable),
            func.sum(LedgerEntry.daily_balance),
            func.max(LedgerEntry.cumulative_balance),
            func.count(LedgerEntry.id),
        )
        .where(LedgerEntry.uploaded_at >= since)
        .group_by(LedgerEntry.date)
        .order_by(_chronological().asc())
    ).all()
    return [
        {
            "date": d,
            "total_receivable": float(rec or 0),
            "total_payable": float(pay or 0),
            "daily_balance": float(daily or 0),
            "cumulative_balance": float(cum or 0),
            "count": int(n),
        }
        for (d, rec, pay, daily, cum, n) in rows
    ]


@router.delete("/{entry_id}")
def delete_entry(entry_id: int, s: Session = Depends(db), admin: User = Depends(require_admin)):
    e = s.execute(select(LedgerEntry).where(LedgerEntry.id == entry_id)).scalar_one_or_none()
    if e is None:
        raise HTTPException(status_code=404, detail="ledger_entry_not_found")
    details = {"date": e.date, "source_file_name": e.source_file_name}
    s.delete(e)
    s.commit()
    log_event(
        s,
        actor=admin,
        action="ledger.delete",
        entity_id=entry_id,
        details=details,
    )
    return {"ok": True}
