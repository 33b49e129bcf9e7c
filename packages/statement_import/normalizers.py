"""Delimited-text (CSV) statement normalizer.

Turns raw tabular text into :class:`~statement_import.models.ParsedTransaction`
rows using a caller-supplied :class:`~statement_import.models.ColumnMapping`.
Parsing follows RFC 4180 rules via the stdlib :mod:`csv` module (quoted fields
with embedded delimiters and newlines, doubled quotes). The header row is
mandatory and names the fields of every subsequent row.

The normalizer performs no column auto-detection itself; callers resolve the
mapping once with :func:`detect_column_mapping` before parsing.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterator, Sequence
from io import StringIO

from .coercion import coerce_date, csv_reference_id, infer_type, is_iso_date, parse_amount
from .errors import ParseError, StructuralParseError
from .logging_setup import get_logger
from .models import ColumnMapping, ParsedTransaction, ParseResult

PLACEHOLDER_DESCRIPTION = "CSV Import"

_DATE_HEADER_RE = re.compile(r"date", re.IGNORECASE)
_DESCRIPTION_HEADER_RE = re.compile(r"desc|detail|memo|narration", re.IGNORECASE)
_AMOUNT_HEADER_RE = re.compile(r"amount|value|sum", re.IGNORECASE)

_logger = get_logger("statement_import.normalizers")


# ---------------------------------------------------------------------------
# Header handling
# ---------------------------------------------------------------------------


def _iter_rows(content: str, delimiter: str) -> Iterator[list[str]]:
    # Drop a UTF-8 BOM so the first header name matches what users see.
    text = content[1:] if content.startswith("\ufeff") else content
    with StringIO(text, newline="") as f:
        reader = csv.reader(f, delimiter=delimiter)
        try:
            yield from reader
        except csv.Error as exc:
            raise StructuralParseError(
                f"Failed to parse delimited text near line {reader.line_num}: {exc}"
            ) from exc


def _is_blank(cells: Sequence[str]) -> bool:
    return all(not (c or "").strip() for c in cells)


def read_headers(content: str, *, delimiter: str = ",") -> list[str]:
    """Return the trimmed header row of ``content``.

    Raises :class:`StructuralParseError` when the text has no header row.
    """

    for cells in _iter_rows(content, delimiter):
        if _is_blank(cells):
            continue
        return [c.strip() for c in cells]
    raise StructuralParseError("Delimited text appears to have no header row")


def _first_match(headers: Sequence[str], pattern: re.Pattern[str]) -> str | None:
    for h in headers:
        if pattern.search(h):
            return h
    return None


def detect_column_mapping(headers: Sequence[str]) -> ColumnMapping:
    """Guess date/description/amount columns from header names.

    Each field takes the first header matching its pattern (case-insensitive);
    without a match it falls back to the header at position 0/1/2.
    """

    def _positional(i: int) -> str:
        return headers[i] if len(headers) > i else ""

    return ColumnMapping(
        date_column=_first_match(headers, _DATE_HEADER_RE) or _positional(0),
        description_column=_first_match(headers, _DESCRIPTION_HEADER_RE) or _positional(1),
        amount_column=_first_match(headers, _AMOUNT_HEADER_RE) or _positional(2),
    )


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class DelimitedTextNormalizer:
    """Parse statement text into parsed transactions.

    Usage
    -----
    result = DelimitedTextNormalizer().parse(csv_text, mapping)  # -> ParseResult
    """

    def __init__(
        self,
        *,
        delimiter: str = ",",
        placeholder_description: str = PLACEHOLDER_DESCRIPTION,
    ) -> None:
        self.delimiter = delimiter
        self.placeholder_description = placeholder_description

    def parse(self, content: str, mapping: ColumnMapping) -> ParseResult:
        """Parse ``content`` with ``mapping``; bad rows are counted, not raised.

        Raises :class:`StructuralParseError` when the text has no header row,
        when a mapped column is absent from the header, or when the reader
        cannot continue past a malformed record.
        """

        rows = _iter_rows(content, self.delimiter)
        headers: list[str] | None = None
        for cells in rows:
            if not _is_blank(cells):
                headers = [c.strip() for c in cells]
                break
        if headers is None:
            raise StructuralParseError("Delimited text appears to have no header row")

        missing = [c for c in mapping.required_columns() if c not in headers]
        if missing:
            raise StructuralParseError(
                "Column mapping does not match the header row. Missing columns: "
                + ", ".join(missing)
            )

        result = ParseResult(headers=headers)
        row_index = 0
        for cells in rows:
            if _is_blank(cells):
                continue
            if len(cells) != len(headers):
                kind = "Too few fields" if len(cells) < len(headers) else "Too many fields"
                result.errors.append(
                    f"Row {row_index + 1}: {kind}: expected {len(headers)} fields "
                    f"but parsed {len(cells)}"
                )
            record = {h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers)}
            result.total_rows += 1
            try:
                tx = self._convert_row(record, mapping, row_index)
            except ParseError as exc:
                result.errors.append(str(exc))
                result.skipped_rows += 1
            else:
                if tx is None:
                    result.skipped_rows += 1
                else:
                    if not is_iso_date(tx.date):
                        result.unparsed_dates.append(row_index)
                    result.transactions.append(tx)
            row_index += 1

        _logger.debug(
            "parse:done total_rows=%d parsed=%d skipped=%d errors=%d",
            result.total_rows,
            len(result.transactions),
            result.skipped_rows,
            len(result.errors),
        )
        return result

    def _convert_row(
        self, record: dict[str, str], mapping: ColumnMapping, row_index: int
    ) -> ParsedTransaction | None:
        """Return the parsed row, ``None`` for a silently rejected row."""

        date_text = (record.get(mapping.date_column) or "").strip()
        amount_text = (record.get(mapping.amount_column) or "").strip()
        if not date_text or not amount_text:
            return None

        try:
            raw_amount = parse_amount(amount_text)
        except ValueError:
            return None
        if raw_amount == 0:
            return None

        try:
            type_cell = record.get(mapping.type_column) if mapping.type_column else None
            amount = abs(raw_amount)
            reference_id = csv_reference_id(
                date_text=date_text,
                amount=amount,
                row_index=row_index,
                reference=record.get(mapping.reference_column) if mapping.reference_column else None,
                use_reference_column=bool(mapping.reference_column),
            )
            description = (record.get(mapping.description_column) or "").strip()
            return ParsedTransaction(
                date=coerce_date(date_text),
                description=description or self.placeholder_description,
                amount=amount,
                type=infer_type(raw_amount, type_cell),
                reference_id=reference_id,
                raw_row=record,
            )
        except ValueError as exc:
            raise ParseError(row_index + 1, "Failed to parse row") from exc


def parse_delimited_text(
    content: str, mapping: ColumnMapping, *, delimiter: str = ","
) -> ParseResult:
    """Functional shorthand for ``DelimitedTextNormalizer(...).parse``."""

    return DelimitedTextNormalizer(delimiter=delimiter).parse(content, mapping)


__all__ = [
    "PLACEHOLDER_DESCRIPTION",
    "DelimitedTextNormalizer",
    "detect_column_mapping",
    "parse_delimited_text",
    "read_headers",
]
