"""Date/amount coercion and dedup-key derivation shared by the producers.

Dates are normalized to ``YYYY-MM-DD`` with three attempts in order:

1. ``YYYY[-/]M[-/]D`` (month/day zero-padded),
2. ``D[-/]M[-/]YYYY`` (day first, the common non-US statement layout),
3. a general calendar-string parse via ``python-dateutil``.

When every attempt fails the input string is returned verbatim. Callers that
care can test the result with :func:`is_iso_date`.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser

from .models import TransactionType

_YMD_RE = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$")
_DMY_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Two distinct defaults: a component dateutil filled in from the default
# differs between them, which marks the input as incomplete.
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)

_INCOME_TYPE_VALUES = frozenset({"income", "credit", "cr"})
_CURRENCY_PREFIXES = ("$", "€", "£", "¥", "฿", "₹")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _calendar_iso(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _general_parse(s: str) -> str | None:
    try:
        a = date_parser.parse(s, dayfirst=True, default=_DEFAULT_A)
        b = date_parser.parse(s, dayfirst=True, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if a.date() != b.date():
        return None
    return a.date().isoformat()


def coerce_date(value: str) -> str:
    """Return ``value`` as ``YYYY-MM-DD`` or, failing every attempt, unchanged."""

    s = value.strip()
    if not s:
        return value

    m = _YMD_RE.match(s)
    if m:
        iso = _calendar_iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if iso:
            return iso

    m = _DMY_RE.match(s)
    if m:
        iso = _calendar_iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if iso:
            return iso

    return _general_parse(s) or value


def is_iso_date(value: str | None) -> bool:
    if not value or not _ISO_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


def parse_amount(raw: str | None) -> Decimal:
    """Parse a signed statement amount into a finite ``Decimal``.

    Accepts leading ``+``/``-``, a leading currency symbol, surrounding
    parentheses (negative) and ``,`` thousands separators. Raises
    ``ValueError`` for blank, unparsable or non-finite input.
    """

    if raw is None:
        raise ValueError("amount is required")
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")
    negative = False

    # Strip sign, currency symbol and parentheses in any order until stable.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith(_CURRENCY_PREFIXES):
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    return -abs(d) if negative else d


def format_amount_key(amount: Decimal) -> str:
    """Shortest plain decimal form (``500.00`` -> ``500``, ``12.50`` -> ``12.5``)."""

    normalized = abs(amount).normalize()
    return format(normalized, "f")


def infer_type(raw_amount: Decimal, type_cell: str | None = None) -> TransactionType:
    """Direction from an explicit type cell, else from the amount sign."""

    if type_cell is not None and type_cell.strip():
        if type_cell.strip().lower() in _INCOME_TYPE_VALUES:
            return TransactionType.INCOME
        return TransactionType.EXPENSE
    return TransactionType.EXPENSE if raw_amount < 0 else TransactionType.INCOME


# ---------------------------------------------------------------------------
# Dedup keys
# ---------------------------------------------------------------------------


def csv_reference_id(
    *,
    date_text: str,
    amount: Decimal,
    row_index: int,
    reference: str | None = None,
    use_reference_column: bool = False,
) -> str:
    """Parse-time key for a delimited-text row.

    ``date_text`` is the trimmed raw date cell and ``row_index`` the zero-based
    post-header position, so the key is stable across re-parses of one file.
    """

    if use_reference_column:
        return (reference or "").strip() or f"csv-{date_text}-{row_index}"
    return f"csv-{date_text}-{format_amount_key(amount)}-{row_index}"


def commit_reference_id(*, date_text: str, amount: Decimal, index: int, timestamp_ms: int) -> str:
    """Commit-time key, unique across repeated commits of one parsed batch."""

    return f"llm-{date_text}-{format_amount_key(amount)}-{index}-{timestamp_ms}"


__all__ = [
    "coerce_date",
    "is_iso_date",
    "parse_amount",
    "format_amount_key",
    "infer_type",
    "csv_reference_id",
    "commit_reference_id",
]
