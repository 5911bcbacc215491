from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from backoffice.api.deps import db, require_admin
from backoffice.core.config import settings
from backoffice.core.security import hash_password
from backoffice.schemas.pending_user import PendingUserCreate, PendingUserOut, PendingUserReject, CleanupOut
from backoffice.schemas.user import UserOut
from backoffice.models.pending_user import PendingUser
from backoffice.models.user import User
from backoffice.services.audit import log_event
from backoffice.utils.timezone import utcnow

router = APIRouter(prefix="/pending-users", tags=["pending-users"])

def _get_pending(s: Session, request_id: int) -> PendingUser:
    p = s.execute(select(PendingUser).where(PendingUser.id == request_id)).scalar_one_or_none()
    if p is None:
        raise HTTPException(status_code=404, detail="request_not_found")
    if p.status != "pending":
        raise HTTPException(status_code=409, detail="request_already_processed")
    return p

@router.post("/request", response_model=PendingUserOut, status_code=201)
def submit_request(body: PendingUserCreate, s: Session = Depends(db)):
    if s.execute(select(User.id).where(User.email == body.email)).first() is not None:
        raise HTTPException(status_code=409, detail="user_exists")
    pending = s.execute(
        select(PendingUser.id).where(PendingUser.email == body.email, PendingUser.status == "pending")
    ).first()
    if pending is not None:
        raise HTTPException(status_code=409, detail="request_already_pending")

    # old approved/rejected requests would shadow the new one
    s.execute(
        delete(PendingUser).where(
            PendingUser.email == body.email,
            PendingUser.status.in_(("approved", "rejected")),
        )
    )
    p = PendingUser(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
        department=body.department or "",
        position=body.position or "",
        status="pending",
        requested_at=utcnow(),
    )
    s.add(p)
    s.commit()
    s.refresh(p)
    return p

@router.get("", response_model=list[PendingUserOut])
def list_pending(s: Session = Depends(db), admin: User = Depends(require_admin)):
    return s.execute(
        select(PendingUser).where(PendingUser.status == "pending").order_by(PendingUser.requested_at.desc())
    ).scalars().all()

@router.get("/all", response_model=list[PendingUserOut])
def list_all(s: Session = Depends(db), admin: User = Depends(require_admin)):
    return s.execute(select(PendingUser).order_by(PendingUser.requested_at.desc())).scalars().all()

@router.put("/{request_id}/approve", response_model=UserOut)
def approve(request_id: int, s: Session = Depends(db), admin: User = Depends(require_admin)):
    p = _get_pending(s, request_id)
    if s.execute(select(User.id).where(User.email == p.email)).first() is not None:
        raise HTTPException(status_code=409, detail="user_exists")

    user = User(
        name=p.name,
        email=p.email,
        password_hash=p.password_hash,
        role=p.role,
        department=p.department,
        position=p.position,
        is_active=True,
    )
    s.add(user)
    p.status = "approved"
    p.reviewed_at = utcnow()
    p.reviewed_by = admin.id
    s.add(p)
    s.commit()
    s.refresh(user)

    log_event(
        s,
        actor=admin,
        action="pending_user.approve",
        entity_id=p.id,
        details={"email": p.email, "role": p.role, "user_id": user.id},
    )
    return user

@router.put("/{request_id}/reject", response_model=PendingUserOut)
def reject(request_id: int, body: PendingUserReject, s: Session = Depends(db), admin: User = Depends(require_admin)):
    p = _get_pending(s, request_id)
    p.status = "rejected"
    p.reviewed_at = utcnow()
    p.reviewed_by = admin.id
    p.rejection_reason = (body.reason or "").strip() or "No reason provided"
    s.add(p)
    s.commit()
    s.refresh(p)

    log_event(
        s,
        actor=admin,
        action="pending_user.reject",
        entity_id=p.id,
        details={"email": p.email, "reason": p.rejection_reason},
    )
    return p

@router.delete("/cleanup", response_model=CleanupOut)
def cleanup(s: Session = Depends(db), admin: User = Depends(require_admin)):
    cutoff = utcnow() - timedelta(days=settings.pending_cleanup_days)
    res = s.execute(
        delete(PendingUser).where(
            PendingUser.status.in_(("approved", "rejected")),
            PendingUser.reviewed_at < cutoff,
        )
    )
    s.commit()
    return {"deleted_count": res.rowcount or 0}

@router.delete("/{request_id}")
def delete_request(request_id: int, s: Session = Depends(db), admin: User = Depends(require_admin)):
    p = s.execute(select(PendingUser).where(PendingUser.id == request_id)).scalar_one_or_none()
    if p is None:
        raise HTTPException(status_code=404, detail="request_not_found")
    s.delete(p)
    s.commit()
    return {"ok": True}
