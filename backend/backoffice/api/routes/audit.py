from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from backoffice.api.deps import db, require_admin
from backoffice.models.audit_log import AuditLog
from backoffice.schemas.audit import AuditPageOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditPageOut)
def list_audit(
    s: Session = Depends(db),
    admin=Depends(require_admin),
    actor: str | None = Query(default=None, description="actor email"),
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    since: datetime | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=200, ge=1, le=1000),
):
    conds = []
    if actor:
        conds.append(AuditLog.actor_email == actor.strip().lower())
    if action:
        conds.append(AuditLog.action == action)
    if entity_type:
        conds.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        conds.append(AuditLog.entity_id == entity_id)
    if since is not None:
        conds.append(AuditLog.created_at >= since)

    total = s.execute(select(func.count(AuditLog.id)).where(*conds)).scalar_one()
    items = s.execute(
        select(AuditLog)
        .where(*conds)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return {"items": items, "total": total}
