# ruff: noqa: I001
"""Persistence integration for statement_import.

Functions here write committed batches and category reassignments to the
shared database owned by ``libs/db``. They rely on SQLAlchemy ORM models
defined in ``db.models.finance`` and a session provided by ``db.client``.

Scope:
- Insert canonical transactions into ``transactions``, skipping rows whose
  ``(account_id, reference_id)`` already exists.
- Update single transactions (category reassignment).
- Read the category lookup from ``categories``.

:class:`SqlAlchemyTransactionStore` and :class:`SqlAlchemyCategoryLookup`
wrap these in one ``session_scope`` per call so they satisfy the
reconciliation and orchestrator protocols.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.finance import Category, Transaction
from .logging_setup import get_logger
from .models import CanonicalTransactionInput, CategoryRef

# camelCase partial keys accepted by ``update_one`` -> column names.
_PARTIAL_FIELDS: dict[str, str] = {
    "categoryId": "category_id",
    "description": "description",
    "type": "type",
    "amount": "amount",
    "transactionDate": "transaction_date",
}

_logger = get_logger("statement_import.persistence")


def _insert_for(session: Session) -> tuple[Any, bool]:
    """Return the dialect's insert construct and whether it supports ON CONFLICT."""

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert, True
    if dialect == "sqlite":
        return sqlite_insert, True
    return insert, False


def insert_transactions(session: Session, inputs: Sequence[CanonicalTransactionInput]) -> None:
    """Insert ``inputs`` in one statement.

    Idempotency: rows whose ``(account_id, reference_id)`` already exists are
    skipped (``ON CONFLICT DO NOTHING``) on dialects that support it.
    """

    if not inputs:
        return
    now = func.now()
    payloads: list[dict[str, Any]] = []
    for item in inputs:
        payloads.append(
            {
                "id": str(uuid.uuid4()),
                "account_id": item.account_id,
                "category_id": item.category_id,
                "type": item.type.value,
                "amount": item.amount,
                "description": item.description,
                "transaction_date": item.transaction_date,
                "source": item.source.value,
                "reference_id": item.reference_id,
                "updated_at": now,
            }
        )

    insert_fn, upsert = _insert_for(session)
    stmt = insert_fn(Transaction).values(payloads)
    if upsert:
        stmt = stmt.on_conflict_do_nothing(
            index_elements=[Transaction.account_id, Transaction.reference_id]
        )
    session.execute(stmt)


def update_transaction(session: Session, transaction_id: str, partial: Mapping[str, Any]) -> None:
    """Apply a camelCase ``partial`` to one transaction.

    Raises ``KeyError`` for unknown fields and ``LookupError`` when no row
    has ``transaction_id``.
    """

    values: dict[str, Any] = {}
    for key, value in partial.items():
        column = _PARTIAL_FIELDS.get(key)
        if column is None:
            raise KeyError(f"Unsupported transaction field: {key}")
        values[column] = value
    values["updated_at"] = func.now()

    result = session.execute(
        update(Transaction).where(Transaction.id == transaction_id).values(**values)
    )
    if result.rowcount == 0:
        raise LookupError(f"Transaction not found: {transaction_id}")


def list_categories(session: Session) -> list[CategoryRef]:
    """Categories in picker order: pinned first, then most used, then by name."""

    rows = session.execute(
        select(Category.id, Category.name, Category.type).order_by(
            Category.is_pinned.desc(), Category.use_count.desc(), Category.name
        )
    ).all()
    return [CategoryRef(id=r.id, name=r.name, type=r.type) for r in rows]


class SqlAlchemyTransactionStore:
    """Transaction store backed by the shared database.

    ``bulk_insert`` runs in a single transaction, so a failure leaves nothing
    behind.
    """

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def bulk_insert(self, inputs: Sequence[CanonicalTransactionInput]) -> None:
        with session_scope(database_url=self._database_url) as session:
            insert_transactions(session, inputs)
        _logger.info("store:bulk_insert count=%d", len(inputs))

    def update_one(self, transaction_id: str, partial: Mapping[str, Any]) -> None:
        with session_scope(database_url=self._database_url) as session:
            update_transaction(session, transaction_id, partial)

    def list_for_account(self, account_id: str) -> list[Transaction]:
        with session_scope(database_url=self._database_url) as session:
            rows = session.scalars(
                select(Transaction)
                .where(Transaction.account_id == account_id)
                .order_by(Transaction.transaction_date, Transaction.reference_id)
            ).all()
            return list(rows)


class SqlAlchemyCategoryLookup:
    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def list_categories(self) -> list[CategoryRef]:
        with session_scope(database_url=self._database_url) as session:
            return list_categories(session)


__all__ = [
    "insert_transactions",
    "update_transaction",
    "list_categories",
    "SqlAlchemyTransactionStore",
    "SqlAlchemyCategoryLookup",
]
