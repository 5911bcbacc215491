from sqlalchemy import Integer, DateTime, ForeignKey, Float, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from backoffice.db.base import Base

AMOUNT_FIELDS = (
    "receivable_vp",
    "payable_vp",
    "receivable_tgn",
    "payable_tgn",
    "total_receivable",
    "total_payable",
    "daily_balance",
    "cumulative_balance",
)


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # DD/MM/YYYY
    date: Mapped[str] = mapped_column(String(10))

    receivable_vp: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    payable_vp: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    receivable_tgn: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    payable_tgn: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    total_receivable: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    total_payable: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    daily_balance: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    cumulative_balance: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")

    uploaded_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    source_file_name: Mapped[str] = mapped_column(String(255))
    uploaded_at: Mapped[DateTime] = mapped_column(DateTime, index=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("date", name="uq_ledger_entries_date"),
    )
