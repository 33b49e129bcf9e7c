from __future__ import annotations

from decimal import Decimal

import pytest

from statement_import.errors import BatchUpdateError, CommitError, ValidationError
from statement_import.models import ParsedTransaction, SourceTag, TransactionType
from statement_import.reconciliation import commit, reassign_category, to_transaction_inputs
from tests.helpers.fakes import RecordingStore

CLOCK_MS = 1_700_000_000_000


def _parsed() -> list[ParsedTransaction]:
    return [
        ParsedTransaction(
            date="2024-01-15",
            time="09:05",
            description="Coffee",
            amount=Decimal("85.00"),
            type=TransactionType.EXPENSE,
            category="cat-food",
            reference_id="csv-15/01/2024-85-0",
        ),
        ParsedTransaction(
            date="2024-01-31",
            description="Salary",
            amount=Decimal("1200"),
            type=TransactionType.INCOME,
        ),
    ]


def test_inputs_map_one_to_one_in_order() -> None:
    inputs = to_transaction_inputs(_parsed(), "acct-1", SourceTag.LLM_IMPORT, timestamp_ms=CLOCK_MS)

    coffee, salary = inputs
    assert coffee.account_id == "acct-1"
    assert coffee.category_id == "cat-food"
    assert coffee.transaction_date == "2024-01-15T09:05:00"
    assert coffee.source is SourceTag.LLM_IMPORT
    assert coffee.reference_id == f"llm-2024-01-15-85-0-{CLOCK_MS}"
    assert salary.transaction_date == "2024-01-31"
    assert salary.category_id is None
    assert salary.reference_id == f"llm-2024-01-31-1200-1-{CLOCK_MS}"


def test_store_dict_is_camel_case() -> None:
    (first, _) = to_transaction_inputs(_parsed(), "acct-1", "csv_import", timestamp_ms=1)
    assert first.to_store_dict() == {
        "accountId": "acct-1",
        "categoryId": "cat-food",
        "type": "expense",
        "amount": Decimal("85.00"),
        "description": "Coffee",
        "transactionDate": "2024-01-15T09:05:00",
        "source": "csv_import",
        "referenceId": "llm-2024-01-15-85-0-1",
    }


def test_commit_makes_one_bulk_call() -> None:
    store = RecordingStore()
    result = commit(_parsed(), " acct-1 ", SourceTag.CSV_IMPORT, store, clock=lambda: CLOCK_MS)

    assert len(store.bulk_calls) == 1
    assert [i.account_id for i in store.bulk_calls[0]] == ["acct-1", "acct-1"]
    assert result.committed == 2
    assert result.source is SourceTag.CSV_IMPORT
    assert result.reference_ids == tuple(i.reference_id for i in store.bulk_calls[0])


def test_repeated_commits_get_distinct_reference_ids() -> None:
    store = RecordingStore()
    ticks = iter([1, 2])
    first = commit(_parsed(), "acct-1", SourceTag.LLM_IMPORT, store, clock=lambda: next(ticks))
    second = commit(_parsed(), "acct-1", SourceTag.LLM_IMPORT, store, clock=lambda: next(ticks))
    assert set(first.reference_ids).isdisjoint(second.reference_ids)


@pytest.mark.parametrize("account_id", ["", "   "])
def test_blank_account_never_reaches_the_store(account_id: str) -> None:
    store = RecordingStore()
    with pytest.raises(ValidationError, match="Please select an account"):
        commit(_parsed(), account_id, SourceTag.LLM_IMPORT, store)
    assert store.bulk_calls == []


def test_empty_batch_never_reaches_the_store() -> None:
    store = RecordingStore()
    with pytest.raises(ValidationError, match="No transactions to import"):
        commit([], "acct-1", SourceTag.LLM_IMPORT, store)
    assert store.bulk_calls == []


def test_store_failure_becomes_commit_error() -> None:
    store = RecordingStore(fail_bulk=RuntimeError("disk full"))
    with pytest.raises(CommitError, match="Failed to import transactions: disk full"):
        commit(_parsed(), "acct-1", SourceTag.LLM_IMPORT, store)


def test_unknown_source_tag_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        commit(_parsed(), "acct-1", "email_import", RecordingStore())


def test_reassign_updates_in_order() -> None:
    store = RecordingStore()
    result = reassign_category(store, ["t1", "t2", "t3"], "cat-travel")
    assert [c[0] for c in store.update_calls] == ["t1", "t2", "t3"]
    assert all(c[1] == {"categoryId": "cat-travel"} for c in store.update_calls)
    assert result.applied == ("t1", "t2", "t3")


def test_reassign_stops_at_first_failure() -> None:
    store = RecordingStore(fail_update_on={"t2"})
    with pytest.raises(BatchUpdateError) as excinfo:
        reassign_category(store, ["t1", "t2", "t3"], None)

    assert excinfo.value.applied == ["t1"]
    assert excinfo.value.failed_id == "t2"
    # t3 is never attempted
    assert [c[0] for c in store.update_calls] == ["t1", "t2"]
