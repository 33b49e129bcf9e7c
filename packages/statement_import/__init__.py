"""Public interface for the ``statement_import`` package.

This module exposes the pipeline's entry points and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .errors import (
    PASSWORD_REQUIRED,
    BatchUpdateError,
    CommitError,
    DecryptionError,
    EncryptionError,
    ExtractionError,
    InvalidTransitionError,
    ParseError,
    PasswordRequiredError,
    StatementImportError,
    StructuralParseError,
    ValidationError,
)
from .models import (
    BatchUpdateResult,
    CanonicalTransactionInput,
    CategoryRef,
    ColumnMapping,
    CommitResult,
    ExtractionResult,
    ParsedTransaction,
    ParseResult,
    SourceTag,
    StatementSource,
    TransactionType,
)
from .normalizers import DelimitedTextNormalizer, detect_column_mapping, parse_delimited_text
from .orchestrator import ImportStatus, StatementImportSession
from .reconciliation import commit, reassign_category

__all__ = [
    # Operations
    "DelimitedTextNormalizer",
    "detect_column_mapping",
    "parse_delimited_text",
    "StatementImportSession",
    "ImportStatus",
    "commit",
    "reassign_category",
    # Models
    "BatchUpdateResult",
    "CanonicalTransactionInput",
    "CategoryRef",
    "ColumnMapping",
    "CommitResult",
    "ExtractionResult",
    "ParsedTransaction",
    "ParseResult",
    "SourceTag",
    "StatementSource",
    "TransactionType",
    # Errors
    "PASSWORD_REQUIRED",
    "StatementImportError",
    "ParseError",
    "StructuralParseError",
    "EncryptionError",
    "PasswordRequiredError",
    "DecryptionError",
    "ExtractionError",
    "ValidationError",
    "CommitError",
    "BatchUpdateError",
    "InvalidTransitionError",
]
