import re
from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import Literal

Role = Literal["admin", "manager", "financial", "engineering", "hr", "commercial", "purchasing"]

EMAIL_RE = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")


def clean_name(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("name is required")
    if len(v) > 50:
        raise ValueError("name cannot be more than 50 characters")
    return v


def clean_email(v: str) -> str:
    v = (v or "").strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("please enter a valid email")
    return v


def validate_password(v: str) -> str:
    v = str(v)
    if len(v) < 6:
        raise ValueError("password must be at least 6 characters")
    return v


def clean_role(v: str) -> str:
    return (v or "").strip().lower()


def clean_text(v: str | None) -> str:
    return (v or "").strip()


class UserCreate(BaseModel):
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


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    role: Role | None = None
    department: str | None = None
    position: str | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str | None):
        return None if v is None else clean_name(v)

    @field_validator("email")
    @classmethod
    def email_normalize(cls, v: str | None):
        return None if v is None else clean_email(v)

    @field_validator("role", mode="before")
    @classmethod
    def role_normalize(cls, v: str | None):
        return None if v is None else clean_role(v)


class ProfileUpdate(BaseModel):
    name: str | None = None
    department: str | None = None
    position: str | None = None

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str | None):
        return None if v is None else clean_name(v)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    password_ok = field_validator("new_password")(validate_password)


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    department: str | None
    position: str | None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
