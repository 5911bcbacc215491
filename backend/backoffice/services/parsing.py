from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Mapping, Sequence

from dateutil import parser as dtparser

SEPARATORS = (",", ";", "\t")

_CURRENCY_SYMBOLS = re.compile(r"R\$|US\$|[$€£]")
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

_DMY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_DASH = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_YMD_DASH = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")

_DEFAULT_A = datetime(1999, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


def detect_separator(raw: bytes) -> str:
    """Pick the field delimiter from the first line of an upload.

    Counts commas, semicolons and tabs on the first line only. The most
    frequent one wins; ties go to the earlier entry of ``SEPARATORS`` so an
    empty or single-column file falls back to a comma.
    """
    if not raw:
        return ","
    first_line = raw.split(b"\n", 1)[0].decode("utf-8", errors="replace")
    best = SEPARATORS[0]
    best_count = first_line.count(best)
    for sep in SEPARATORS[1:]:
        n = first_line.count(sep)
        if n > best_count:
            best, best_count = sep, n
    return best


def parse_currency(value: Any) -> float:
    """Parse a pt-BR money string ("R$ 1.234,56") into a float.

    Lenient on purpose: empty, missing or unparseable input gives 0.0.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    s = _CURRENCY_SYMBOLS.sub("", str(value))
    s = "".join(s.split())
    s = s.replace(".", "").replace(",", ".")
    if not s:
        return 0.0

    m = _NUMBER_PREFIX.match(s)
    if m is None:
        return 0.0
    try:
        return float(m.group(0))
    except ValueError:
        return 0.0


def _canonical(day: str, month: str, year: str) -> str:
    return f"{int(day):02d}/{int(month):02d}/{year}"


def normalize_date(value: Any) -> str | None:
    """Return the canonical DD/MM/YYYY key for ``value`` or None.

    The three numeric layouts are matched first. Anything else goes through
    dateutil, which must find a full day, month and year; an aware result is
    shifted into the local timezone before the calendar fields are read, so
    the day can move near midnight.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None

    m = _DMY_SLASH.match(s) or _DMY_DASH.match(s)
    if m:
        return _canonical(m.group(1), m.group(2), m.group(3))

    m = _YMD_DASH.match(s)
    if m:
        return _canonical(m.group(3), m.group(2), m.group(1))

    # parse against two unrelated defaults: any field dateutil had to fill in
    # (day, month, year or a weekday shift) makes the results disagree
    try:
        dt: datetime = dtparser.parse(s, default=_DEFAULT_A)
        other: datetime = dtparser.parse(s, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if dt.date() != other.date():
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return f"{dt.day:02d}/{dt.month:02d}/{dt.year:04d}"


def resolve_column(row: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    # first alias with a non-empty value, else 0
    for name in aliases:
        v = row.get(name)
        if v is not None and v != "":
            return v
    return 0
