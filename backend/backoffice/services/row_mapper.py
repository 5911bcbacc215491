from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from backoffice.services.parsing import normalize_date, parse_currency, resolve_column

DATE_ALIASES = ("DATA", "Date", "date")

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "receivable_vp": ("RECEBER_VP", "RECEBER VP", "RECEBER", "VP_RECEBER"),
    "payable_vp": ("PAGAR_VP", "PAGAR VP", "PAGAR", "VP_PAGAR"),
    "receivable_tgn": ("RECEBER_TGN", "RECEBER TGN", "TGN_RECEBER"),
    "payable_tgn": ("PAGAR_TGN", "PAGAR TGN", "TGN_PAGAR"),
    "total_receivable": ("TOTAL_RECEBER", "TOTAL RECEBER", "TOTAL_REC"),
    "total_payable": ("TOTAL_A_PAGAR", "TOTAL A PAGAR", "TOTAL_PAGAR"),
    "daily_balance": ("SALDO_DIARIO", "SALDO DIARIO", "SALDO_DIA"),
    "cumulative_balance": ("SALDO_ACUMULADO", "SALDO ACUMULADO", "SALDO_ACUM"),
}

PLACEHOLDER_KEY = re.compile(r"^_\d+$")
_DATE_LIKE = re.compile(r"\d{1,2}[/-]\d{1,2}[/-]\d{4}")


@dataclass
class LedgerCandidate:
    date: str
    uploaded_by: int | None
    source_file_name: str
    line: int
    receivable_vp: float = 0.0
    payable_vp: float = 0.0
    receivable_tgn: float = 0.0
    payable_tgn: float = 0.0
    total_receivable: float = 0.0
    total_payable: float = 0.0
    daily_balance: float = 0.0
    cumulative_balance: float = 0.0

    def amounts(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in FIELD_ALIASES}


@dataclass
class Accepted:
    entry: LedgerCandidate


@dataclass
class Rejected:
    line: int | None
    reason: str
    raw: dict[str, Any] = field(default_factory=dict)
    date: str | None = None


RowResult = Union[Accepted, Rejected]


def is_placeholder_row(row: Mapping[str, Any]) -> bool:
    return all(PLACEHOLDER_KEY.match(k) for k in row.keys())


def find_date_value(row: Mapping[str, Any]) -> Any:
    v = resolve_column(row, DATE_ALIASES)
    if v != 0:
        return v
    for val in row.values():
        if isinstance(val, str) and _DATE_LIKE.search(val):
            return val
    return None


def map_row(
    row: Mapping[str, Any],
    line: int,
    uploaded_by: int | None,
    file_name: str,
) -> RowResult | None:
    """Turn one parsed CSV record into a ledger candidate.

    Returns None for rows made only of parser placeholder columns (a file
    without a usable header line); those are not data errors.
    """
    if is_placeholder_row(row):
        return None

    date_value = find_date_value(row)
    date = normalize_date(date_value)
    if date is None:
        shown = date_value if date_value not in (None, "") else "MISSING"
        return Rejected(
            line=line,
            reason=f'Invalid or missing date on file line {line}. Original date value: "{shown}"',
            raw=dict(row),
        )

    amounts = {name: parse_currency(resolve_column(row, aliases)) for name, aliases in FIELD_ALIASES.items()}
    return Accepted(
        LedgerCandidate(
            date=date,
            uploaded_by=uploaded_by,
            source_file_name=file_name,
            line=line,
            **amounts,
        )
    )
