from __future__ import annotations

import secrets
from datetime import timedelta
from html import escape
from urllib.parse import quote

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.models.password_reset import PasswordReset
from backoffice.models.user import User
from backoffice.utils.timezone import utcnow


def issue_token(s: Session, user: User) -> PasswordReset:
    # one live token per user
    s.execute(delete(PasswordReset).where(PasswordReset.user_id == user.id))
    row = PasswordReset(
        user_id=user.id,
        email=user.email,
        token=secrets.token_hex(32),
        expires_at=utcnow() + timedelta(minutes=settings.password_reset_ttl_min),
        used=False,
    )
    s.add(row)
    s.commit()
    s.refresh(row)
    return row


def find_valid_token(s: Session, token: str) -> PasswordReset | None:
    if not token:
        return None
    return s.execute(
        select(PasswordReset).where(
            PasswordReset.token == token,
            PasswordReset.used.is_(False),
            PasswordReset.expires_at > utcnow(),
        )
    ).scalar_one_or_none()


def reset_url(token: str) -> str:
    return f"{settings.server_url.rstrip('/')}/reset-password?token={quote(token)}"


_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title} - VP Engenharia</title>
<style>
body {{ font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background: #0c1527; color: #f8fafc; }}
main {{ max-width: 480px; margin: 60px auto; padding: 32px; background: #1e293b; border-radius: 16px; }}
input {{ width: 100%; padding: 10px; margin: 6px 0 14px; border-radius: 8px; border: 1px solid #334155; }}
button, .btn {{ background: #3b82f6; color: #fff; border: 0; padding: 12px 20px; border-radius: 8px; text-decoration: none; }}
.muted {{ color: #94a3b8; font-size: 14px; }}
</style>
</head>
<body><main>{body}</main></body>
</html>
"""


def _page(title: str, body: str) -> str:
    return _PAGE.format(title=escape(title), body=body)


def reset_email_html(name: str, url: str) -> str:
    return _page(
        "Password Reset",
        f"<h1>Password reset</h1>"
        f"<p>Hello {escape(name)},</p>"
        f"<p>We received a request to reset your administrator password.</p>"
        f'<p><a class="btn" href="{escape(url)}">Reset password</a></p>'
        f'<p class="muted">This link expires in {settings.password_reset_ttl_min} minutes. '
        f"If you did not ask for it you can ignore this message.</p>",
    )


def reset_form_html(token: str, email: str) -> str:
    return _page(
        "Reset Password",
        f"<h1>Choose a new password</h1>"
        f'<p class="muted">Account: {escape(email)}</p>'
        f'<form method="post" action="/reset-password">'
        f'<input type="hidden" name="token" value="{escape(token)}">'
        f'<label>New password<input type="password" name="password" minlength="6" required></label>'
        f'<label>Confirm password<input type="password" name="confirm_password" minlength="6" required></label>'
        f'<button type="submit">Reset password</button>'
        f"</form>",
    )


def error_html(message: str) -> str:
    return _page("Error", f"<h1>Something went wrong</h1><p>{escape(message)}</p>")


def success_html(name: str) -> str:
    return _page(
        "Password Updated",
        f"<h1>Password updated</h1><p>{escape(name)}, your password was changed. You can now log in.</p>",
    )
