from __future__ import annotations

import json
from decimal import Decimal

import pytest

from statement_import.errors import ExtractionError
from statement_import.extraction import (
    NO_TRANSACTIONS_MESSAGE,
    clean_response_text,
    extract_transactions,
    parse_extraction_response,
    passes_row_filter,
    validate_extracted_rows,
)
from statement_import.models import CategoryRef, TransactionType

FOOD = CategoryRef(id="cat-food", name="Food", type="expense")

ROW = {
    "date": "2024-01-15",
    "time": "14:30",
    "description": "Coffee Shop",
    "amount": 85,
    "type": "expense",
    "category": "cat-food",
}


def test_fenced_json_array_parses() -> None:
    text = "```json\n" + json.dumps([ROW]) + "\n```"
    result = extract_transactions(text, categories=[FOOD])

    (tx,) = result.transactions
    assert tx.date == "2024-01-15"
    assert tx.time == "14:30"
    assert tx.amount == Decimal("85")
    assert tx.type is TransactionType.EXPENSE
    assert tx.category == "cat-food"
    assert tx.reference_id is None
    assert result.dropped_rows == 0
    assert result.raw_text == text


def test_array_is_recovered_from_surrounding_prose() -> None:
    text = "Here are the transactions:\n" + json.dumps([ROW]) + "\nLet me know!"
    assert parse_extraction_response(text) == [ROW]


def test_transactions_envelope_is_unwrapped() -> None:
    assert parse_extraction_response(json.dumps({"transactions": [ROW]})) == [ROW]


@pytest.mark.parametrize("text", ["", "not json at all", '{"rows": 1}', "[1, 2"])
def test_unparseable_response_raises_with_raw_text(text: str) -> None:
    with pytest.raises(ExtractionError) as excinfo:
        parse_extraction_response(text)
    assert excinfo.value.raw_text == text


def test_clean_response_text_strips_fences() -> None:
    assert clean_response_text("```JSON\n[]\n```  ") == "[]"


@pytest.mark.parametrize(
    "item",
    [
        {**ROW, "description": ""},
        {**ROW, "description": None},
        {**ROW, "type": "transfer"},
        {**ROW, "type": ["income"]},
        {**ROW, "type": {"v": "income"}},
        {**ROW, "amount": 0},
        {**ROW, "date": "  "},
        "not an object",
    ],
)
def test_row_filter_rejects(item: object) -> None:
    assert not passes_row_filter(item)


def test_rows_failing_the_filter_are_dropped_and_counted() -> None:
    rows = [ROW, {**ROW, "description": ""}, {**ROW, "type": "transfer"}]
    result = validate_extracted_rows(rows, categories=[FOOD])
    assert len(result.transactions) == 1
    assert result.dropped_rows == 2


def test_unhashable_type_only_drops_that_row() -> None:
    rows = [ROW, {**ROW, "type": ["income"]}]
    result = validate_extracted_rows(rows, categories=[FOOD])
    assert [t.description for t in result.transactions] == ["Coffee Shop"]
    assert result.dropped_rows == 1


def test_empty_filtered_result_is_an_error() -> None:
    with pytest.raises(ExtractionError, match=NO_TRANSACTIONS_MESSAGE):
        validate_extracted_rows([{**ROW, "type": "transfer"}])
    with pytest.raises(ExtractionError, match=NO_TRANSACTIONS_MESSAGE):
        extract_transactions("[]")


def test_unknown_category_is_cleared() -> None:
    result = validate_extracted_rows([{**ROW, "category": "cat-made-up"}], categories=[FOOD])
    assert result.transactions[0].category is None


def test_category_is_cleared_without_a_lookup() -> None:
    result = validate_extracted_rows([ROW])
    assert result.transactions[0].category is None


def test_amount_strings_and_signs_are_normalized() -> None:
    rows = [
        {**ROW, "amount": "1,250.75"},
        {**ROW, "amount": -40},
        {**ROW, "amount": "NaN"},
    ]
    result = validate_extracted_rows(rows)
    assert [t.amount for t in result.transactions] == [Decimal("1250.75"), Decimal("40")]
    assert result.dropped_rows == 1


@pytest.mark.parametrize(
    "raw, expected",
    [("9:05", "09:05"), ("23:59:59", "23:59"), ("25:00", None), ("noon", None), (None, None)],
)
def test_time_is_normalized(raw: str | None, expected: str | None) -> None:
    result = validate_extracted_rows([{**ROW, "time": raw}])
    assert result.transactions[0].time == expected


def test_non_iso_dates_are_kept_and_reported() -> None:
    rows = [ROW, {**ROW, "date": "15 Jan"}]
    result = validate_extracted_rows(rows)
    assert result.transactions[1].date == "15 Jan"
    assert result.unparsed_dates == [1]
