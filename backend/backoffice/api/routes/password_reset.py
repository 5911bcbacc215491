import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
from sqlalchemy import select
from backoffice.api.deps import db, mailer
from backoffice.core.security import hash_password
from backoffice.schemas.auth import ForgotPasswordIn, MessageOut
from backoffice.models.user import User
from backoffice.services.mailer import Mailer, MailDeliveryError
from backoffice.services.password_reset import (
    issue_token,
    find_valid_token,
    reset_url,
    reset_email_html,
    reset_form_html,
    error_html,
    success_html,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["password-reset"])
pages = APIRouter(tags=["password-reset"])

@router.post("/forgot-password", response_model=MessageOut)
def forgot_password(body: ForgotPasswordIn, s: Session = Depends(db), m: Mailer = Depends(mailer)):
    email = (body.email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="email_required")

    u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if u is None:
        # same answer as success so addresses can't be probed
        return {"message": "If an account with that email exists, a password reset link has been sent"}
    if not u.is_active:
        raise HTTPException(status_code=400, detail="account_deactivated")
    if u.role != "admin":
        raise HTTPException(status_code=403, detail="reset_admin_only")

    row = issue_token(s, u)
    try:
        m.send(u.email, "Password Reset Request - VP Engenharia", reset_email_html(u.name, reset_url(row.token)))
    except MailDeliveryError:
        log.exception("password reset mail failed email=%s", u.email)
        s.delete(row)
        s.commit()
        raise HTTPException(status_code=500, detail="reset_mail_failed")

    log.info("password reset requested email=%s", u.email)
    return {"message": "Password reset link has been sent to your email address"}

@pages.get("/reset-password", response_class=HTMLResponse)
def show_reset_form(token: str | None = Query(None), s: Session = Depends(db)):
    if not token:
        return HTMLResponse(error_html("Reset token is missing."), status_code=400)
    row = find_valid_token(s, token)
    if row is None:
        return HTMLResponse(error_html("Invalid or expired reset token."), status_code=400)
    return HTMLResponse(reset_form_html(token, row.email))

@pages.post("/reset-password", response_class=HTMLResponse)
def reset_password(
    token: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    s: Session = Depends(db),
):
    if not token or not password or not confirm_password:
        return HTMLResponse(error_html("Missing required fields"), status_code=400)
    if password != confirm_password:
        return HTMLResponse(error_html("Passwords do not match"), status_code=400)
    if len(password) < 6:
        return HTMLResponse(error_html("Password must be at least 6 characters long"), status_code=400)

    row = find_valid_token(s, token)
    u = s.execute(select(User).where(User.id == row.user_id)).scalar_one_or_none() if row else None
    if row is None or u is None:
        return HTMLResponse(error_html("Invalid or expired reset token"), status_code=400)

    u.password_hash = hash_password(password)
    row.used = True
    s.add_all([u, row])
    s.commit()
    log.info("password reset done email=%s", u.email)
    return HTMLResponse(success_html(u.name))
