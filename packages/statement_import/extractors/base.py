"""Request type and protocol shared by the extraction collaborators."""

from __future__ import annotations

import base64
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ..models import CategoryRef, FileKind, StatementSource


@dataclass(frozen=True, slots=True)
class ExtractionRequest:
    """One extraction call: payload bytes, how to present them, and categories.

    ``data`` is already decrypted when the source was an encrypted PDF.
    ``password`` is only forwarded by collaborators that decrypt server-side.
    """

    filename: str
    media_type: str
    data: bytes = field(repr=False)
    categories: tuple[CategoryRef, ...] = ()
    password: str | None = field(default=None, repr=False)

    @classmethod
    def from_source(
        cls,
        source: StatementSource,
        *,
        data: bytes | None = None,
        categories: Sequence[CategoryRef] = (),
        password: str | None = None,
    ) -> ExtractionRequest:
        return cls(
            filename=source.filename,
            media_type=source.media_type,
            data=source.content if data is None else data,
            categories=tuple(categories),
            password=password,
        )

    @property
    def kind(self) -> FileKind:
        return "image" if self.media_type.lower().startswith("image/") else "document"

    @property
    def is_text(self) -> bool:
        mt = self.media_type.lower()
        return mt.startswith("text/") or mt in {"application/csv"}

    def text(self) -> str:
        return self.data.decode("utf-8-sig", errors="replace")

    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


@runtime_checkable
class StatementExtractor(Protocol):
    def extract(self, request: ExtractionRequest) -> str:
        """Return the collaborator's raw response text.

        Raises :class:`~statement_import.errors.ExtractionError` on transport
        or service failure and
        :class:`~statement_import.errors.PasswordRequiredError` when the
        collaborator reports an encrypted document.
        """
        ...


__all__ = ["ExtractionRequest", "StatementExtractor"]
