from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, BinaryIO, Iterator

from backoffice.core.config import settings
from backoffice.services.ledger_store import LedgerStore
from backoffice.services.parsing import detect_separator
from backoffice.services.row_mapper import Accepted, LedgerCandidate, Rejected, map_row
from backoffice.utils.timezone import utcnow

log = logging.getLogger(__name__)


class EmptyUploadError(ValueError):
    pass


class IngestionStreamError(RuntimeError):
    pass


@dataclass
class IngestionReport:
    file_name: str
    uploaded_by: int | None
    uploaded_at: datetime
    separator: str = ","
    rows_parsed: int = 0
    rows_accepted: int = 0
    rows_rejected: int = 0
    rows_skipped: int = 0
    created: int = 0
    updated: int = 0
    unique_dates: list[str] = field(default_factory=list)
    error_count: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


def _header(rec: list[str]) -> list[str]:
    return [(c or "").strip() or f"_{i}" for i, c in enumerate(rec)]


def _as_row(header: list[str], rec: list[str]) -> dict[str, str]:
    row: dict[str, str] = {}
    for i, key in enumerate(header):
        row[key] = rec[i] if i < len(rec) else ""
    for i in range(len(header), len(rec)):
        row[f"_{i}"] = rec[i]
    return row


def iter_rows(text: str, separator: str) -> Iterator[tuple[int, dict[str, str] | csv.Error]]:
    """Yield ``(line, row)`` for each data record of ``text``.

    The first non-empty record is the header. A record the csv module cannot
    read is yielded as the ``csv.Error`` itself so the caller can reject it
    and keep going.
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=separator)
    header: list[str] | None = None
    while True:
        try:
            rec = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            yield reader.line_num, e
            continue

        if header is None:
            if rec:
                header = _header(rec)
            continue
        if not any((c or "").strip() for c in rec):
            continue
        yield reader.line_num, _as_row(header, rec)


def _source_line(text: str, line: int) -> str:
    # same line splitting as the csv reader above
    lines = io.StringIO(text, newline="").readlines()
    return lines[line - 1].rstrip("\r\n") if 0 < line <= len(lines) else ""


def _read_all(raw: bytes | BinaryIO) -> bytes:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    try:
        return raw.read()
    except OSError as e:
        raise IngestionStreamError(f"could not read upload: {e}") from e


def ingest(store: LedgerStore, raw: bytes | BinaryIO, uploaded_by: int | None, file_name: str) -> IngestionReport:
    """Parse an uploaded CSV and upsert one ledger entry per date.

    Row and per-date failures end up in the report; only an unreadable
    input stream raises.
    """
    data = _read_all(raw)
    if not data or not data.strip():
        raise EmptyUploadError("empty_file")

    separator = detect_separator(data)
    text = data.decode("utf-8-sig", errors="replace")
    log.info("ingest file=%s separator=%r bytes=%s", file_name, separator, len(data))

    report = IngestionReport(file_name=file_name, uploaded_by=uploaded_by, uploaded_at=utcnow(), separator=separator)
    accepted: list[LedgerCandidate] = []
    rejections: list[Rejected] = []

    for line, row in iter_rows(text, separator):
        if isinstance(row, csv.Error):
            report.rows_parsed += 1
            rejections.append(
                Rejected(
                    line=line,
                    reason=f"Error processing file line {line}: {row}",
                    raw={"text": _source_line(text, line)},
                )
            )
            continue

        try:
            res = map_row(row, line, uploaded_by, file_name)
        except Exception as e:
            log.exception("ingest row failed file=%s line=%s", file_name, line)
            report.rows_parsed += 1
            rejections.append(Rejected(line=line, reason=f"Error processing file line {line}: {e}", raw=row))
            continue

        if res is None:
            report.rows_skipped += 1
            continue

        report.rows_parsed += 1
        if isinstance(res, Accepted):
            accepted.append(res.entry)
        else:
            rejections.append(res)

    report.rows_accepted = len(accepted)
    report.rows_rejected = len(rejections)

    # later rows for the same date replace earlier ones wholesale
    by_date: dict[str, LedgerCandidate] = {}
    for c in accepted:
        if c.date in by_date:
            log.info("ingest duplicate date=%s line=%s replaces line=%s", c.date, c.line, by_date[c.date].line)
        by_date[c.date] = c

    for date, c in by_date.items():
        try:
            created = store.upsert_by_date(c)
        except Exception as e:
            log.exception("ingest upsert failed date=%s", date)
            rejections.append(
                Rejected(line=c.line, date=date, reason=f"Error saving record for date {date}: {e}", raw=asdict(c))
            )
            continue
        report.unique_dates.append(date)
        if created:
            report.created += 1
        else:
            report.updated += 1

    report.error_count = len(rejections)
    report.errors = [asdict(r) for r in rejections[: settings.ingest_error_sample]]

    log.info(
        "ingest done file=%s parsed=%s accepted=%s rejected=%s created=%s updated=%s",
        file_name,
        report.rows_parsed,
        report.rows_accepted,
        report.rows_rejected,
        report.created,
        report.updated,
    )
    return report
