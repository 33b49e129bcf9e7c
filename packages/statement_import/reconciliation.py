"""Commit of parsed batches and batch category reassignment.

Two deliberately different write paths:

- :func:`commit` maps a parsed batch 1:1 to canonical inputs and hands them
  to the store in a single ``bulk_insert`` call (all-or-nothing).
- :func:`reassign_category` updates stored transactions one at a time in
  selection order and stops at the first failure without rolling back.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from .coercion import commit_reference_id
from .errors import BatchUpdateError, CommitError, ValidationError
from .logging_setup import get_logger
from .models import (
    BatchUpdateResult,
    CanonicalTransactionInput,
    CommitResult,
    ParsedTransaction,
    SourceTag,
)

_logger = get_logger("statement_import.reconciliation")


class TransactionStore(Protocol):
    def bulk_insert(self, inputs: Sequence[CanonicalTransactionInput]) -> None: ...

    def update_one(self, transaction_id: str, partial: Mapping[str, Any]) -> None: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def _transaction_date(tx: ParsedTransaction) -> str:
    return f"{tx.date}T{tx.time}:00" if tx.time else tx.date


def to_transaction_inputs(
    parsed: Sequence[ParsedTransaction],
    account_id: str,
    source_tag: SourceTag | str,
    *,
    timestamp_ms: int,
) -> list[CanonicalTransactionInput]:
    """Map parsed rows to store inputs, one per row, in order.

    Every row gets a fresh ``reference_id`` built from its date, amount,
    position and the shared commit timestamp.
    """

    source = SourceTag(source_tag)
    out: list[CanonicalTransactionInput] = []
    for i, tx in enumerate(parsed):
        out.append(
            CanonicalTransactionInput(
                account_id=account_id,
                category_id=tx.category,
                type=tx.type,
                amount=tx.amount,
                description=tx.description,
                transaction_date=_transaction_date(tx),
                source=source,
                reference_id=commit_reference_id(
                    date_text=tx.date, amount=tx.amount, index=i, timestamp_ms=timestamp_ms
                ),
            )
        )
    return out


def commit(
    parsed: Sequence[ParsedTransaction],
    account_id: str,
    source_tag: SourceTag | str,
    store: TransactionStore,
    *,
    clock: Callable[[], int] | None = None,
) -> CommitResult:
    """Persist ``parsed`` under ``account_id`` with one bulk store call.

    Raises :class:`ValidationError` (before touching the store) for a blank
    account or an empty batch, and :class:`CommitError` when the store fails.
    """

    account = (account_id or "").strip()
    if not account:
        raise ValidationError("Please select an account")
    if not parsed:
        raise ValidationError("No transactions to import")

    timestamp_ms = (clock or _now_ms)()
    try:
        inputs = to_transaction_inputs(parsed, account, source_tag, timestamp_ms=timestamp_ms)
    except (PydanticValidationError, ValueError) as e:
        raise ValidationError(f"Batch cannot be committed: {e}") from e

    _logger.info(
        "commit:start account_id=%s count=%d source=%s", account, len(inputs), inputs[0].source
    )
    try:
        store.bulk_insert(inputs)
    except Exception as e:  # noqa: BLE001 - any store failure fails the whole batch
        _logger.error("commit:failed count=%d error=%s", len(inputs), e.__class__.__name__)
        raise CommitError(f"Failed to import transactions: {e}") from e

    _logger.info("commit:done count=%d", len(inputs))
    return CommitResult(
        committed=len(inputs),
        reference_ids=tuple(i.reference_id or "" for i in inputs),
        source=inputs[0].source,
    )


def reassign_category(
    store: TransactionStore,
    transaction_ids: Iterable[str],
    category_id: str | None,
) -> BatchUpdateResult:
    """Point each transaction at ``category_id``, sequentially.

    Raises :class:`BatchUpdateError` at the first failing id; ``applied``
    holds the ids already updated, which stay updated. Later ids are not
    attempted.
    """

    applied: list[str] = []
    for transaction_id in transaction_ids:
        try:
            store.update_one(transaction_id, {"categoryId": category_id})
        except Exception as e:  # noqa: BLE001 - surfaced with partial progress
            _logger.error(
                "reassign:failed transaction_id=%s applied=%d error=%s",
                transaction_id,
                len(applied),
                e.__class__.__name__,
            )
            raise BatchUpdateError(
                f"Failed to update transaction {transaction_id}: {e}",
                applied=applied,
                failed_id=transaction_id,
            ) from e
        applied.append(transaction_id)

    _logger.info("reassign:done count=%d category_id=%s", len(applied), category_id)
    return BatchUpdateResult(applied=tuple(applied), category_id=category_id)


__all__ = [
    "TransactionStore",
    "to_transaction_inputs",
    "commit",
    "reassign_category",
]
