from __future__ import annotations

from sqlalchemy import select, func, literal_column
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from backoffice.models.ledger_entry import LedgerEntry, AMOUNT_FIELDS
from backoffice.services.row_mapper import LedgerCandidate
from backoffice.utils.timezone import utcnow

OVERWRITTEN = (*AMOUNT_FIELDS, "uploaded_by", "source_file_name", "uploaded_at")


class LedgerStore:
    """Date-keyed persistence for ledger entries.

    Every write is one ``INSERT ... ON CONFLICT (date) DO UPDATE`` statement
    committed on its own, so the unique constraint on ``date`` decides the
    winner when two uploads race for the same day.
    """

    def __init__(self, s: Session):
        self.s = s

    def find_one_by_date(self, date: str) -> LedgerEntry | None:
        return self.s.execute(select(LedgerEntry).where(LedgerEntry.date == date)).scalar_one_or_none()

    def count(self) -> int:
        return int(self.s.execute(select(func.count(LedgerEntry.id))).scalar_one())

    def upsert_by_date(self, c: LedgerCandidate) -> bool:
        """Write ``c`` over whatever is stored for its date. Returns True if created."""
        values = {
            **c.amounts(),
            "date": c.date,
            "uploaded_by": c.uploaded_by,
            "source_file_name": c.source_file_name,
            "uploaded_at": utcnow(),
        }
        try:
            created = self._upsert(values)
            self.s.commit()
        except Exception:
            self.s.rollback()
            raise
        return created

    def _upsert(self, values: dict) -> bool:
        overwrite = {k: values[k] for k in OVERWRITTEN}

        dialect = self.s.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = (
                pg_insert(LedgerEntry)
                .values(values)
                .on_conflict_do_update(index_elements=["date"], set_=overwrite)
                .returning(literal_column("(xmax = 0)"))
            )
            return bool(self.s.execute(stmt).scalar_one())
        if dialect != "sqlite":
            raise NotImplementedError(f"ledger upsert not supported on {dialect}")

        existed = self.s.execute(select(LedgerEntry.id).where(LedgerEntry.date == values["date"])).first() is not None
        stmt = (
            sqlite_insert(LedgerEntry)
            .values(values)
            .on_conflict_do_update(index_elements=["date"], set_=overwrite)
        )
        self.s.execute(stmt)
        return not existed
