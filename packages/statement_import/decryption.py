"""Password handling for encrypted PDF statements.

:class:`PdfDecryptor` probes a PDF for encryption and, given a password,
returns an unencrypted copy that can be handed to an extraction
collaborator. The password is never logged or persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Protocol

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.errors import DependencyError, PdfReadError

from .errors import DecryptionError, StructuralParseError
from .logging_setup import get_logger

_logger = get_logger("statement_import.decryption")


@dataclass(frozen=True, slots=True)
class DecryptionProbe:
    encrypted: bool
    page_count: int | None = None


class DocumentDecryptor(Protocol):
    def probe(self, data: bytes) -> DecryptionProbe: ...

    def decrypt(self, data: bytes, password: str) -> bytes: ...


def _open(data: bytes) -> PdfReader:
    try:
        return PdfReader(BytesIO(data))
    except PdfReadError as e:
        raise StructuralParseError(f"Unreadable PDF: {e}") from e


class PdfDecryptor:
    def probe(self, data: bytes) -> DecryptionProbe:
        """Report whether ``data`` is an encrypted PDF.

        Raises :class:`StructuralParseError` when the bytes are not a PDF.
        """

        reader = _open(data)
        if reader.is_encrypted:
            return DecryptionProbe(encrypted=True)
        return DecryptionProbe(encrypted=False, page_count=len(reader.pages))

    def decrypt(self, data: bytes, password: str) -> bytes:
        """Return an unencrypted re-serialization of ``data``.

        Raises :class:`DecryptionError` for a wrong password or an unsupported
        cipher. Unencrypted input is returned unchanged.
        """

        reader = _open(data)
        if not reader.is_encrypted:
            return data
        try:
            outcome = reader.decrypt(password)
        except (DependencyError, NotImplementedError, PdfReadError) as e:
            _logger.warning("decrypt:unsupported error=%s", e.__class__.__name__)
            raise DecryptionError(f"Unsupported PDF encryption: {e}") from e
        if outcome == PasswordType.NOT_DECRYPTED:
            _logger.info("decrypt:rejected")
            raise DecryptionError("Incorrect password")

        writer = PdfWriter()
        for page in reader.pages:
            writer.add_page(page)
        buf = BytesIO()
        writer.write(buf)
        _logger.info("decrypt:done pages=%d", len(reader.pages))
        return buf.getvalue()


__all__ = ["DecryptionProbe", "DocumentDecryptor", "PdfDecryptor"]
