"""DB helpers for tests: bootstrap a temporary SQLite DB and seed reference rows."""

from __future__ import annotations

from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from db.models.finance import Account, Category, Transaction
from sqlalchemy import select
from sqlalchemy import text as sql_text

ACCOUNT_ID = "00000000-0000-4000-8000-00000000a001"
OTHER_ACCOUNT_ID = "00000000-0000-4000-8000-00000000a002"

FOOD_ID = "00000000-0000-4000-8000-0000000000c1"
TRAVEL_ID = "00000000-0000-4000-8000-0000000000c2"
SALARY_ID = "00000000-0000-4000-8000-0000000000c3"


def bootstrap_sqlite_db(db_file: Path, *, with_reference_rows: bool = True) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    _assert_foreign_keys_enabled(url)

    if with_reference_rows:
        seed_reference_rows(database_url=url)
    return url


def seed_reference_rows(*, database_url: str) -> None:
    """Two accounts and three categories with distinct picker ordering."""

    with session_scope(database_url=database_url) as session:
        session.add_all(
            [
                Account(id=ACCOUNT_ID, name="Everyday"),
                Account(id=OTHER_ACCOUNT_ID, name="Savings"),
                Category(id=FOOD_ID, name="Food", type="expense", use_count=5),
                Category(id=TRAVEL_ID, name="Travel", type="expense", is_pinned=True),
                Category(id=SALARY_ID, name="Salary", type="income", use_count=1),
            ]
        )


def transactions_for(database_url: str, account_id: str = ACCOUNT_ID) -> list[Transaction]:
    with session_scope(database_url=database_url) as session:
        rows = session.scalars(
            select(Transaction)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.transaction_date, Transaction.reference_id)
        ).all()
        return list(rows)


def _assert_foreign_keys_enabled(database_url: str) -> None:
    """The engine's connect hook must switch SQLite FK enforcement on."""

    with session_scope(database_url=database_url) as session:
        enabled = session.execute(sql_text("PRAGMA foreign_keys")).scalar_one()
    assert enabled == 1, "sqlite foreign_keys pragma is off"
