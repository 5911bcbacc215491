from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from backoffice.api.deps import db, require_admin, current_user
from backoffice.schemas.auth import MessageOut
from backoffice.schemas.user import UserCreate, UserUpdate, UserOut, ProfileUpdate, PasswordChange
from backoffice.models.pending_user import PendingUser
from backoffice.models.user import User
from backoffice.core.security import hash_password, verify_password
from backoffice.services.audit import log_event

router = APIRouter(prefix="/users", tags=["users"])

def _email_taken(s: Session, email: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(User.email == email)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return s.execute(q).first() is not None

@router.get("/profile", response_model=UserOut)
def get_profile(me: User = Depends(current_user)):
    return me

@router.put("/profile", response_model=UserOut)
def update_profile(body: ProfileUpdate, s: Session = Depends(db), me: User = Depends(current_user)):
    if body.name:
        me.name = body.name
    if body.department:
        me.department = body.department.strip()
    if body.position:
        me.position = body.position.strip()
    s.add(me)
    s.commit()
    s.refresh(me)
    return me

@router.put("/change-password", response_model=MessageOut)
def change_password(body: PasswordChange, s: Session = Depends(db), me: User = Depends(current_user)):
    if not verify_password(body.current_password, me.password_hash):
        raise HTTPException(status_code=401, detail="current_password_incorrect")
    me.password_hash = hash_password(body.new_password)
    s.add(me)
    s.commit()
    return {"message": "Password changed successfully"}

@router.get("", response_model=list[UserOut])
def list_users(s: Session = Depends(db), admin: User = Depends(require_admin)):
    return s.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars().all()

@router.post("/create", response_model=UserOut, status_code=201)
def create_user(body: UserCreate, s: Session = Depends(db), admin: User = Depends(require_admin)):
    if _email_taken(s, body.email):
        raise HTTPException(status_code=409, detail="user_exists")
    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
        department=body.department or "",
        position=body.position or "",
        is_active=True,
    )
    s.add(user)
    s.commit()
    s.refresh(user)
    log_event(
        s,
        actor=admin,
        action="user.create",
        entity_id=user.id,
        details={"email": user.email, "role": user.role},
    )
    return user

@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: int, body: UserUpdate, s: Session = Depends(db), admin: User = Depends(require_admin)):
    user = s.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="user_not_found")
    if body.email is not None and _email_taken(s, body.email, exclude_id=user.id):
        raise HTTPException(status_code=409, detail="user_exists")

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for k, v in changes.items():
        setattr(user, k, v)
    s.add(user)
    s.commit()
    s.refresh(user)
    log_event(
        s,
        actor=admin,
        action="user.update",
        entity_id=user.id,
        details=changes,
    )
    return user

@router.delete("/{user_id}")
def delete_user(user_id: int, s: Session = Depends(db), admin: User = Depends(require_admin)):
    user = s.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="user_not_found")
    if user.id == admin.id:
        raise HTTPException(status_code=409, detail="cannot_delete_self")
    details = {"email": user.email, "role": user.role}
    s.delete(user)
    # lets the same address go through the request flow again
    res = s.execute(delete(PendingUser).where(PendingUser.email == details["email"]))
    s.commit()
    details["pending_requests_removed"] = res.rowcount or 0
    log_event(
        s,
        actor=admin,
        action="user.delete",
        entity_id=user_id,
        details=details,
    )
    return {"ok": True}
