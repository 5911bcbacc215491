from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from sqlalchemy import select
from backoffice.api.deps import db
from backoffice.core.config import settings
from backoffice.schemas.auth import LoginIn, TokenOut
from backoffice.models.user import User
from backoffice.core.security import verify_password, create_access_token
from backoffice.utils.timezone import utcnow

router = APIRouter(prefix="/users", tags=["auth"])

@router.post("/register")
def register():
    raise HTTPException(
        status_code=400,
        detail={
            "code": "registration_moved",
            "message": "Direct registration is no longer available. Please use the registration request system.",
            "redirect_to": f"{settings.api_prefix}/pending-users/request",
        },
    )

@router.post("/login", response_model=TokenOut)
def login(body: LoginIn, response: Response, s: Session = Depends(db)):
    u = s.execute(select(User).where(User.email == body.email.strip().lower())).scalar_one_or_none()
    if not u or not verify_password(body.password, u.password_hash):
        raise HTTPException(status_code=401, detail="bad_credentials")
    if not u.is_active:
        raise HTTPException(status_code=401, detail="account_deactivated")
    if (body.user_type or "").strip().lower() != (u.role or "").lower():
        raise HTTPException(status_code=403, detail="user_type_mismatch")

    u.last_login = utcnow()
    s.add(u)
    s.commit()
    s.refresh(u)

    token = create_access_token(sub=str(u.id), role=u.role)
    response.set_cookie(
        "token",
        token,
        max_age=settings.jwt_expires_min * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return {"access_token": token, "role": u.role, "user": u}

@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token", httponly=True, samesite="lax")
    return {"ok": True}
