"""Pytest configuration for test isolation.

The import session persists its recovery slot under a project-relative state
directory (``./.cache/statement_import``). When tests run in the same working
tree, a slot written by one test would be offered for restore in the next, so
every test gets its own state root via an autouse fixture.

The shared SQLAlchemy engine in ``db.client`` is process-wide; the ``sqlite_db``
fixture disposes it afterwards so the next test can bind a fresh file.
"""

# ruff: noqa: E402, I001
from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make the workspace packages importable without an install: `packages/` for
# `statement_import`, `libs/db/src` for `db`, and the repo root for `tests.helpers`.
_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT)]
    if p not in sys.path
]

from db.client import dispose_engine

from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test state root so recovery slots don't leak between tests."""

    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("STATEMENT_IMPORT_STATE_DIR", os.fspath(state_root))
    return state_root


@pytest.fixture
def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    """A migrated SQLite file with one account and the default categories.

    Yields the database URL, which is also exported as ``DATABASE_URL``.
    """

    dispose_engine()
    url = bootstrap_sqlite_db(tmp_path / "statement.db")
    monkeypatch.setenv("DATABASE_URL", url)
    try:
        yield url
    finally:
        dispose_engine()
