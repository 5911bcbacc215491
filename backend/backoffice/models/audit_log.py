from datetime import datetime

from sqlalchemy import Integer, DateTime, ForeignKey, String, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from backoffice.db.base import Base
from backoffice.utils.timezone import utcnow


class AuditLog(Base):
    """Who changed what. Rows outlive the acting user, so the email is copied."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_email: Mapped[str] = mapped_column(String(255), index=True)

    action: Mapped[str] = mapped_column(String(64), index=True)
    entity_type: Mapped[str] = mapped_column(String(64))
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
