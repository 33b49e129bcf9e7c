"""Cleanup and validation of extraction-collaborator output.

The collaborator is asked for a bare JSON array, but model output is handled
defensively:

- Markdown code-fence markers are stripped.
- When a direct JSON parse does not yield the array, the text between the
  first ``[`` and the last ``]`` is parsed instead.
- A ``{"transactions": [...]}`` envelope is unwrapped.

Each element then passes a row filter (non-empty ``date`` and
``description``, truthy ``amount``, ``type`` of ``income``/``expense``).
Failing elements are dropped and counted on the result; they do not fail the
run. An empty filtered result does.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from .coercion import is_iso_date, parse_amount
from .errors import ExtractionError
from .logging_setup import get_logger
from .models import CategoryRef, ExtractionResult, ParsedTransaction, TransactionType

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_VALID_TYPES = frozenset(t.value for t in TransactionType)

NO_TRANSACTIONS_MESSAGE = "No transactions found in the file"

_logger = get_logger("statement_import.extraction")


# ---------------------------------------------------------------------------
# Response cleanup
# ---------------------------------------------------------------------------


def clean_response_text(text: str) -> str:
    """Remove Markdown fence markers and surrounding whitespace."""

    return _FENCE_RE.sub("", text).strip()


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def _unwrap_rows(decoded: Any) -> list[Any] | None:
    if isinstance(decoded, list):
        return decoded
    if isinstance(decoded, Mapping):
        inner = decoded.get("transactions")
        if isinstance(inner, list):
            return inner
    return None


def parse_extraction_response(text: str) -> list[Any]:
    """Recover the JSON array of row objects from raw model output.

    Raises :class:`ExtractionError` (with ``raw_text`` set) when no array can
    be recovered.
    """

    cleaned = clean_response_text(text or "")
    rows = _unwrap_rows(_try_json(cleaned))
    if rows is None:
        first = cleaned.find("[")
        last = cleaned.rfind("]")
        if first != -1 and last > first:
            rows = _unwrap_rows(_try_json(cleaned[first : last + 1]))
    if rows is None:
        _logger.warning("extract:unparsable_response chars=%d", len(text or ""))
        raise ExtractionError(
            "Failed to parse the extraction response as a JSON array", raw_text=text
        )
    return rows


# ---------------------------------------------------------------------------
# Row validation
# ---------------------------------------------------------------------------


def _truthy(v: Any) -> bool:
    if isinstance(v, str):
        return bool(v.strip())
    return bool(v)


def passes_row_filter(item: Any) -> bool:
    """The minimum every extracted element must satisfy to be kept."""

    if not isinstance(item, Mapping):
        return False
    return (
        _truthy(item.get("date"))
        and _truthy(item.get("description"))
        and _truthy(item.get("amount"))
        and isinstance(item.get("type"), str)
        and item["type"] in _VALID_TYPES
    )


class _ExtractedRow(BaseModel):
    """Typed view of one extracted element.

    ``ValidationInfo.context`` carries ``allowed_categories`` (a set of ids);
    suggestions outside it are cleared rather than rejected.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    date: str
    time: str | None = None
    description: str
    amount: Decimal
    type: TransactionType
    category: str | None = None

    @field_validator("date", "description", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int | float) and not isinstance(v, bool) else v

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any) -> Decimal:
        if isinstance(v, bool):
            raise ValueError("amount must be a number")
        if isinstance(v, int | float):
            d = Decimal(str(v))
        elif isinstance(v, str):
            d = parse_amount(v)
        else:
            raise ValueError("amount must be a number")
        if not d.is_finite() or d == 0:
            raise ValueError("amount must be a finite non-zero number")
        # Direction travels on ``type``; a stray sign is dropped.
        return abs(d)

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, v: Any) -> str | None:
        if v is None or not isinstance(v, str):
            return None
        m = _TIME_RE.match(v.strip())
        if not m:
            return None
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour > 23 or minute > 59:
            return None
        return f"{hour:02d}:{minute:02d}"

    @field_validator("category", mode="before")
    @classmethod
    def _category_in_lookup(cls, v: Any, info: ValidationInfo) -> str | None:
        if v is None:
            return None
        s = str(v).strip()
        allowed = info.context.get("allowed_categories") if info.context else None
        if not s or not allowed or s not in allowed:
            return None
        return s


def validate_extracted_rows(
    rows: Sequence[Any],
    *,
    categories: Sequence[CategoryRef] = (),
    raw_text: str | None = None,
) -> ExtractionResult:
    """Filter and convert extracted elements into parsed transactions.

    Raises :class:`ExtractionError` when nothing survives the filter.
    """

    allowed = {c.id for c in categories}
    kept: list[ParsedTransaction] = []
    dropped = 0
    for item in rows:
        if not passes_row_filter(item):
            dropped += 1
            continue
        try:
            row = _ExtractedRow.model_validate(item, context={"allowed_categories": allowed})
            kept.append(
                ParsedTransaction(
                    date=row.date,
                    time=row.time,
                    description=row.description,
                    amount=row.amount,
                    type=row.type,
                    category=row.category,
                )
            )
        except (PydanticValidationError, ValueError):
            dropped += 1

    if dropped:
        _logger.info("extract:dropped_rows count=%d kept=%d", dropped, len(kept))
    if not kept:
        raise ExtractionError(NO_TRANSACTIONS_MESSAGE, raw_text=raw_text)

    unparsed = [i for i, tx in enumerate(kept) if not is_iso_date(tx.date)]
    return ExtractionResult(
        transactions=kept,
        dropped_rows=dropped,
        unparsed_dates=unparsed,
        raw_text=raw_text,
    )


def extract_transactions(
    text: str, *, categories: Sequence[CategoryRef] = ()
) -> ExtractionResult:
    """Cleanup + validation in one step, as applied to a collaborator response."""

    rows = parse_extraction_response(text)
    return validate_extracted_rows(rows, categories=categories, raw_text=text)


__all__ = [
    "NO_TRANSACTIONS_MESSAGE",
    "clean_response_text",
    "parse_extraction_response",
    "passes_row_filter",
    "validate_extracted_rows",
    "extract_transactions",
]
