from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlalchemy import select
from sqlalchemy.orm import Session
from backoffice.db.session import SessionLocal
from backoffice.core.security import decode_token
from backoffice.models.user import User
from backoffice.services.ledger_store import LedgerStore
from backoffice.services.mailer import Mailer

bearer = HTTPBearer(auto_error=False)

def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()

def mailer(request: Request) -> Mailer:
    return request.app.state.mailer

def ledger_store(s: Session = Depends(db)) -> LedgerStore:
    return LedgerStore(s)

def current_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    s: Session = Depends(db),
) -> User:
    token = creds.credentials if creds else request.cookies.get("token")
    if not token:
        raise HTTPException(status_code=401, detail="not_authenticated")
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="token_expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="invalid_token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="invalid_token")

    u = s.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if u is None:
        raise HTTPException(status_code=401, detail="user_not_found")
    if not u.is_active:
        raise HTTPException(status_code=401, detail="account_deactivated")
    return u

def require_roles(*roles: str):
    def dep(u: User = Depends(current_user)) -> User:
        if u.role not in roles:
            raise HTTPException(status_code=403, detail="role_not_allowed")
        return u
    return dep

def require_admin(u: User = Depends(current_user)) -> User:
    if u.role != "admin":
        raise HTTPException(status_code=403, detail="admin_only")
    return u
