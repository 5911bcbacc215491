from pydantic import BaseModel, field_validator
from datetime import datetime

from backoffice.schemas.user import Role, clean_name, clean_email, validate_password, clean_role, clean_text


class PendingUserCreate(BaseModel):
    name: str
    email: str
    password: str
    role: Role
    department: str | None = None
    position: str | None = None

    name_ok = field_validator("name")(clean_name)
    email_ok = field_validator("email")(clean_email)
    password_ok = field_validator("password")(validate_password)
    role_ok = field_validator("role", mode="before")(clean_role)
    dept_ok = field_validator("department", "position")(clean_text)


class PendingUserReject(BaseModel):
    reason: str | None = None


class PendingUserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    department: str | None
    position: str | None
    status: str
    requested_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: int | None = None
    rejection_reason: str | None = None

    class Config:
        from_attributes = True


class CleanupOut(BaseModel):
    deleted_count: int
