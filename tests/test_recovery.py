from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from statement_import.models import ParsedTransaction, TransactionType
from statement_import.recovery import (
    LAST_IMPORT_KEY,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    RecoverySlot,
)


def _batch() -> list[ParsedTransaction]:
    return [
        ParsedTransaction(
            date="2024-01-15",
            time="14:30",
            description="Coffee Shop",
            amount=Decimal("85.00"),
            type=TransactionType.EXPENSE,
            category="cat-food",
        ),
        ParsedTransaction(
            date="15 Jan",
            description="Salary",
            amount=Decimal("1200"),
            type=TransactionType.INCOME,
            raw_row={"Date": "15 Jan"},
        ),
    ]


def test_slot_round_trip_in_memory() -> None:
    slot = RecoverySlot(InMemoryKeyValueStore())
    assert not slot.exists()
    assert slot.load() is None

    slot.save(_batch())
    assert slot.exists()
    loaded = slot.load()
    assert loaded is not None
    assert [t.description for t in loaded] == ["Coffee Shop", "Salary"]
    assert loaded[0].amount == Decimal("85.00")
    assert loaded[0].time == "14:30"
    # Diagnostics never reach the slot
    assert loaded[1].raw_row is None

    slot.clear()
    assert not slot.exists()


def test_save_overwrites_wholesale() -> None:
    slot = RecoverySlot(InMemoryKeyValueStore())
    slot.save(_batch())
    slot.save(_batch()[:1])
    assert len(slot.load() or []) == 1


def test_file_store_uses_state_dir_env(_isolate_state_dir: Path) -> None:
    slot = RecoverySlot()
    slot.save(_batch())
    path = _isolate_state_dir / f"{LAST_IMPORT_KEY}.json"
    assert path.exists()
    envelope = json.loads(path.read_text(encoding="utf-8"))
    assert envelope["schema_version"] == 1
    assert len(envelope["transactions"]) == 2
    assert not list(_isolate_state_dir.glob("*.tmp"))


def test_file_store_explicit_root(tmp_path: Path) -> None:
    store = FileKeyValueStore(tmp_path / "elsewhere")
    assert store.get("k") is None
    store.set("k", "v")
    assert store.get("k") == "v"
    store.clear("k")
    store.clear("k")
    assert store.get("k") is None


@pytest.mark.parametrize("key", ["../escape", ".hidden", "a/b", "", "x" * 65])
def test_file_store_rejects_unsafe_keys(tmp_path: Path, key: str) -> None:
    with pytest.raises(ValueError):
        FileKeyValueStore(tmp_path).set(key, "v")


def test_corrupt_slot_raises_value_error() -> None:
    storage = InMemoryKeyValueStore()
    storage.set(LAST_IMPORT_KEY, "{not json")
    with pytest.raises(ValueError, match="corrupt"):
        RecoverySlot(storage).load()


def test_unknown_schema_version_is_rejected() -> None:
    storage = InMemoryKeyValueStore()
    storage.set(
        LAST_IMPORT_KEY,
        json.dumps({"schema_version": 99, "saved_at": "2024-01-01T00:00:00Z", "transactions": []}),
    )
    with pytest.raises(ValueError, match="schema_version"):
        RecoverySlot(storage).load()
