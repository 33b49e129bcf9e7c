"""Recovery slot for the most recent successful extraction.

The last parsed batch is kept under a single fixed key so an interrupted
session can be resumed. The slot is overwritten wholesale on every successful
parse and cleared after a successful commit; it is never appended to.

Storage is any :class:`KeyValueStore`. Two ship here:

- :class:`InMemoryKeyValueStore` for tests and embedding.
- :class:`FileKeyValueStore`, one JSON file per key under the state root
  (default ``./.cache/statement_import``, override with
  ``STATEMENT_IMPORT_STATE_DIR``).

Atomicity: file writes target ``.tmp`` first and then ``os.replace`` into
place.
"""

from __future__ import annotations

import contextlib
import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .logging_setup import get_logger
from .models import ParsedTransaction

LAST_IMPORT_KEY = "last_import"

# Bump only when the on-disk snapshot shape changes.
SCHEMA_VERSION: int = 1

_STATE_DIR_ENV = "STATEMENT_IMPORT_STATE_DIR"
_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")

_logger = get_logger("statement_import.recovery")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


def _get_state_root() -> Path:
    root = os.getenv(_STATE_DIR_ENV)
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache" / "statement_import").resolve()


def _validate_key(key: str) -> str:
    """Keys become file names; reject anything that could escape the root."""

    if not _KEY_RE.fullmatch(key) or key.startswith("."):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class FileKeyValueStore:
    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self._root = Path(root).expanduser().resolve() if root is not None else None

    @property
    def root(self) -> Path:
        # Resolved lazily so the environment override is read at call time.
        return self._root if self._root is not None else _get_state_root()

    def _path(self, key: str) -> Path:
        return self.root / f"{_validate_key(key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise

    def clear(self, key: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(key).unlink()


class RecoverySnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = SCHEMA_VERSION
    saved_at: datetime
    transactions: list[ParsedTransaction]


class RecoverySlot:
    """The single last-import slot on top of a :class:`KeyValueStore`."""

    def __init__(self, storage: KeyValueStore | None = None, *, key: str = LAST_IMPORT_KEY) -> None:
        self.storage: KeyValueStore = storage if storage is not None else FileKeyValueStore()
        self.key = key

    def exists(self) -> bool:
        return self.storage.get(self.key) is not None

    def save(self, transactions: list[ParsedTransaction]) -> None:
        snapshot = RecoverySnapshot(saved_at=datetime.now(UTC), transactions=transactions)
        self.storage.set(self.key, snapshot.model_dump_json())
        _logger.debug("recovery:saved key=%s transactions=%d", self.key, len(transactions))

    def load(self) -> list[ParsedTransaction] | None:
        """Return the saved batch, ``None`` when the slot is empty.

        Raises ``ValueError`` when the slot holds something unreadable.
        """

        text = self.storage.get(self.key)
        if text is None:
            return None
        try:
            snapshot = RecoverySnapshot.model_validate_json(text)
        except PydanticValidationError as e:
            raise ValueError(f"Recovery slot {self.key!r} is corrupt") from e
        if snapshot.schema_version != SCHEMA_VERSION:
            raise ValueError(
                f"Recovery slot {self.key!r} has unsupported schema_version "
                f"{snapshot.schema_version}"
            )
        return snapshot.transactions

    def clear(self) -> None:
        self.storage.clear(self.key)
        _logger.debug("recovery:cleared key=%s", self.key)


__all__ = [
    "LAST_IMPORT_KEY",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "FileKeyValueStore",
    "RecoverySnapshot",
    "RecoverySlot",
]
