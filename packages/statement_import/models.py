"""Data models and type aliases for ``statement_import``.

Two record shapes cross the pipeline:

- :class:`ParsedTransaction` is produced by either producer (delimited-text
  normalizer or extraction orchestrator), may be edited in place, and is
  discarded once committed.
- :class:`CanonicalTransactionInput` is the commit boundary handed to the
  transaction store. Its shape is owned by the store; the pipeline must
  produce it exactly.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from os import PathLike
from pathlib import Path
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


class SourceTag(StrEnum):
    """Provenance tag, always set by the producing component."""

    MANUAL = "manual"
    CSV_IMPORT = "csv_import"
    LLM_IMPORT = "llm_import"


FileKind: TypeAlias = Literal["document", "image"]


# ---------------------------------------------------------------------------
# Parsed (transient) records
# ---------------------------------------------------------------------------


class ParsedTransaction(BaseModel):
    """A transaction produced by a parser, prior to account assignment.

    ``raw_row`` is kept for diagnostics on the CSV path only and is excluded
    from every dump, so it never reaches the store or the recovery slot.
    """

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    date: str = Field(min_length=1)
    time: str | None = None
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    type: TransactionType = TransactionType.EXPENSE
    category: str | None = None
    reference_id: str | None = None
    raw_row: dict[str, str] | None = Field(default=None, exclude=True, repr=False)

    @field_validator("time", "category", "reference_id", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_iso_date(self) -> bool:
        """False when date coercion failed and ``date`` holds the raw input."""

        from .coercion import is_iso_date

        return is_iso_date(self.date)


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Header names of the columns feeding each parsed field.

    ``type_column`` and ``reference_column`` are optional; when absent the
    direction is inferred from the amount sign and a reference key is
    synthesized.
    """

    date_column: str
    description_column: str
    amount_column: str
    type_column: str | None = None
    reference_column: str | None = None

    def __post_init__(self) -> None:
        for name in ("date_column", "description_column", "amount_column"):
            if not str(getattr(self, name) or "").strip():
                raise ValueError(f"ColumnMapping.{name} must be a non-empty header name")

    def required_columns(self) -> tuple[str, ...]:
        cols = [self.date_column, self.description_column, self.amount_column]
        cols.extend(c for c in (self.type_column, self.reference_column) if c)
        return tuple(cols)


@dataclass(slots=True)
class ParseResult:
    """Outcome of a delimited-text parse.

    Attributes
    ----------
    transactions:
        Rows that passed validation, in file order.
    headers:
        Trimmed header names.
    total_rows:
        Non-blank data rows after the header.
    skipped_rows:
        Rows rejected (blank date/amount, zero or unparsable amount, failure).
    errors:
        Row-level messages formatted as ``"Row {n}: {message}"``.
    unparsed_dates:
        Zero-based row indices whose date could not be coerced to ISO and was
        kept verbatim.
    """

    transactions: list[ParsedTransaction] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    total_rows: int = 0
    skipped_rows: int = 0
    errors: list[str] = field(default_factory=list)
    unparsed_dates: list[int] = field(default_factory=list)


@dataclass(slots=True)
class ExtractionResult:
    """Validated output of one extraction call.

    ``dropped_rows`` counts elements removed by the row filter;
    ``unparsed_dates`` holds indices (into ``transactions``) of non-ISO dates.
    """

    transactions: list[ParsedTransaction]
    dropped_rows: int = 0
    unparsed_dates: list[int] = field(default_factory=list)
    raw_text: str | None = None


# ---------------------------------------------------------------------------
# Lookups and sources
# ---------------------------------------------------------------------------


class CategoryRef(BaseModel):
    """The ``{id, name, type}`` view of a stored category."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str = Field(min_length=1)
    name: str
    type: TransactionType

    def to_prompt_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "type": self.type.value}


def coerce_categories(categories: Sequence[CategoryRef | Any] | None) -> list[CategoryRef]:
    """Reduce a category collection (models or mappings) to :class:`CategoryRef`."""

    out: list[CategoryRef] = []
    for c in categories or ():
        if isinstance(c, CategoryRef):
            out.append(c)
        elif isinstance(c, BaseModel):
            out.append(CategoryRef.model_validate(c.model_dump()))
        else:
            out.append(CategoryRef.model_validate(c))
    return out


@dataclass(frozen=True, slots=True)
class StatementSource:
    """A selected statement file: name, bytes and declared media type."""

    filename: str
    content: bytes = field(repr=False)
    media_type: str

    @classmethod
    def from_path(cls, path: str | PathLike[str], media_type: str | None = None) -> StatementSource:
        p = Path(path)
        guessed, _enc = mimetypes.guess_type(p.name)
        return cls(
            filename=p.name,
            content=p.read_bytes(),
            media_type=media_type or guessed or "application/octet-stream",
        )

    @property
    def kind(self) -> FileKind:
        return "image" if self.media_type.lower().startswith("image/") else "document"

    @property
    def is_pdf(self) -> bool:
        return self.media_type.lower() == "application/pdf"


# ---------------------------------------------------------------------------
# Commit boundary
# ---------------------------------------------------------------------------


class CanonicalTransactionInput(BaseModel):
    """The record shape accepted by the transaction store."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    account_id: str = Field(min_length=1)
    category_id: str | None = None
    type: TransactionType
    amount: Decimal = Field(gt=0)
    description: str | None = None
    transaction_date: str = Field(min_length=1)
    source: SourceTag = SourceTag.MANUAL
    reference_id: str | None = None

    def to_store_dict(self) -> dict[str, Any]:
        """Render the camelCase wire shape used by store collaborators."""

        return {
            "accountId": self.account_id,
            "categoryId": self.category_id,
            "type": self.type.value,
            "amount": self.amount,
            "description": self.description,
            "transactionDate": self.transaction_date,
            "source": self.source.value,
            "referenceId": self.reference_id,
        }


@dataclass(frozen=True, slots=True)
class CommitResult:
    committed: int
    reference_ids: tuple[str, ...]
    source: SourceTag


@dataclass(frozen=True, slots=True)
class BatchUpdateResult:
    applied: tuple[str, ...]
    category_id: str | None


__all__ = [
    "TransactionType",
    "SourceTag",
    "FileKind",
    "ParsedTransaction",
    "ColumnMapping",
    "ParseResult",
    "ExtractionResult",
    "CategoryRef",
    "coerce_categories",
    "StatementSource",
    "CanonicalTransactionInput",
    "CommitResult",
    "BatchUpdateResult",
]
