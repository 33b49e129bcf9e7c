"""In-memory collaborators for orchestrator and reconciliation tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from statement_import.decryption import DecryptionProbe
from statement_import.errors import DecryptionError
from statement_import.extractors import ExtractionRequest
from statement_import.models import CanonicalTransactionInput, CategoryRef

FOOD = CategoryRef(id="cat-food", name="Food", type="expense")
SALARY = CategoryRef(id="cat-salary", name="Salary", type="income")


def rows_json(*rows: Mapping[str, Any]) -> str:
    return json.dumps(list(rows))


class ScriptedExtractor:
    """Returns (or raises) the next scripted outcome on each call.

    An outcome may be a string, an exception, or a callable receiving the
    request (used to interleave a reset with an in-flight call).
    """

    def __init__(self, *outcomes: str | Exception | Callable[[ExtractionRequest], str]) -> None:
        self._outcomes = list(outcomes)
        self.requests: list[ExtractionRequest] = []

    def extract(self, request: ExtractionRequest) -> str:
        self.requests.append(request)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        return outcome


class FakeDecryptor:
    """Treats every payload as encrypted with ``password``."""

    def __init__(self, password: str = "secret", *, encrypted: bool = True) -> None:
        self._password = password
        self._encrypted = encrypted
        self.attempts: list[str] = []

    def probe(self, data: bytes) -> DecryptionProbe:
        return DecryptionProbe(encrypted=self._encrypted)

    def decrypt(self, data: bytes, password: str) -> bytes:
        self.attempts.append(password)
        if password != self._password:
            raise DecryptionError("Incorrect password")
        return b"decrypted:" + data


class RecordingStore:
    """Transaction store that records calls and can be told to fail."""

    def __init__(
        self,
        *,
        fail_bulk: Exception | None = None,
        fail_update_on: set[str] | None = None,
    ) -> None:
        self.bulk_calls: list[list[CanonicalTransactionInput]] = []
        self.update_calls: list[tuple[str, dict[str, Any]]] = []
        self._fail_bulk = fail_bulk
        self._fail_update_on = fail_update_on or set()

    def bulk_insert(self, inputs: Sequence[CanonicalTransactionInput]) -> None:
        self.bulk_calls.append(list(inputs))
        if self._fail_bulk is not None:
            raise self._fail_bulk

    def update_one(self, transaction_id: str, partial: Mapping[str, Any]) -> None:
        self.update_calls.append((transaction_id, dict(partial)))
        if transaction_id in self._fail_update_on:
            raise LookupError(f"Transaction not found: {transaction_id}")


class StaticCategoryLookup:
    def __init__(self, *categories: CategoryRef) -> None:
        self.calls = 0
        self._categories = list(categories)

    def list_categories(self) -> list[CategoryRef]:
        self.calls += 1
        return list(self._categories)
