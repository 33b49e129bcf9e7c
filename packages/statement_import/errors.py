"""Exception hierarchy for the statement import pipeline.

Row-level problems on the delimited-text path are accumulated as strings on
:class:`~statement_import.models.ParseResult` and never raised; every other
failure kind below is fatal to the attempt that raised it.
"""

from __future__ import annotations

PASSWORD_REQUIRED = "PASSWORD_REQUIRED"


class StatementImportError(Exception):
    """Base class for all pipeline errors."""


class ParseError(StatementImportError, ValueError):
    """A single delimited-text row could not be converted.

    Caught inside the normalizer and rendered as ``"Row {n}: {message}"``.
    """

    def __init__(self, row: int, message: str) -> None:
        self.row = row
        self.message = message
        super().__init__(f"Row {row}: {message}")


class StructuralParseError(StatementImportError, ValueError):
    """The whole source is unreadable (no header row, unknown columns, bad PDF)."""


class EncryptionError(StatementImportError):
    """Base class for encrypted-document failures."""


class PasswordRequiredError(EncryptionError):
    """The document is encrypted and no (valid) password was supplied.

    ``code`` is always ``PASSWORD_REQUIRED``; a missing and an incorrect
    password differ only in ``str(exc)``.
    """

    code = PASSWORD_REQUIRED


class DecryptionError(EncryptionError):
    """A decryption attempt failed (wrong password or unsupported cipher)."""


class ExtractionError(StatementImportError, ValueError):
    """The extraction collaborator failed or returned no usable rows."""

    def __init__(self, message: str, *, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class ValidationError(StatementImportError, ValueError):
    """Commit preconditions were not met (missing account, empty batch)."""


class CommitError(StatementImportError, RuntimeError):
    """The transaction store rejected a commit."""


class BatchUpdateError(CommitError):
    """A sequential batch update stopped at ``failed_id``.

    ``applied`` lists the ids updated before the failure; they are not rolled
    back.
    """

    def __init__(self, message: str, *, applied: list[str], failed_id: str) -> None:
        super().__init__(message)
        self.applied = applied
        self.failed_id = failed_id


class InvalidTransitionError(StatementImportError, RuntimeError):
    """An import session was asked to move between two unconnected states."""


__all__ = [
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
