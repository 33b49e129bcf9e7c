from __future__ import annotations

from io import BytesIO

import pytest
from pypdf import PdfWriter

from statement_import.decryption import PdfDecryptor
from statement_import.errors import DecryptionError, StructuralParseError


def _pdf_bytes(*, password: str | None = None) -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    if password is not None:
        writer.encrypt(password)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_probe_reports_plain_pdf() -> None:
    probe = PdfDecryptor().probe(_pdf_bytes())
    assert probe.encrypted is False
    assert probe.page_count == 1


def test_probe_reports_encrypted_pdf() -> None:
    probe = PdfDecryptor().probe(_pdf_bytes(password="secret"))
    assert probe.encrypted is True
    assert probe.page_count is None


def test_decrypt_with_correct_password_yields_plain_pdf() -> None:
    decryptor = PdfDecryptor()
    plain = decryptor.decrypt(_pdf_bytes(password="secret"), "secret")
    probe = decryptor.probe(plain)
    assert probe.encrypted is False
    assert probe.page_count == 1


def test_decrypt_with_wrong_password_raises() -> None:
    with pytest.raises(DecryptionError, match="Incorrect password"):
        PdfDecryptor().decrypt(_pdf_bytes(password="secret"), "guess")


def test_decrypt_returns_unencrypted_input_unchanged() -> None:
    data = _pdf_bytes()
    assert PdfDecryptor().decrypt(data, "anything") == data


def test_unreadable_bytes_are_structural() -> None:
    with pytest.raises(StructuralParseError):
        PdfDecryptor().probe(b"")
