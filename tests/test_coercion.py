from __future__ import annotations

from decimal import Decimal

import pytest

from statement_import.coercion import (
    coerce_date,
    commit_reference_id,
    csv_reference_id,
    format_amount_key,
    infer_type,
    is_iso_date,
    parse_amount,
)
from statement_import.models import TransactionType


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-03-05", "2024-03-05"),
        ("2024/3/5", "2024-03-05"),
        ("05/03/2024", "2024-03-05"),
        ("5-3-2024", "2024-03-05"),
        ("15 Jan 2024", "2024-01-15"),
        ("  2024-12-31 ", "2024-12-31"),
    ],
)
def test_coerce_date_normalizes_known_layouts(raw: str, expected: str) -> None:
    assert coerce_date(raw) == expected


def test_coerce_date_returns_input_verbatim_when_unparseable() -> None:
    assert coerce_date("yesterday-ish") == "yesterday-ish"
    assert not is_iso_date(coerce_date("yesterday-ish"))


def test_coerce_date_rejects_impossible_calendar_dates() -> None:
    # 31/02 is not a real date in either numeric layout
    assert coerce_date("31/02/2024") == "31/02/2024"
    assert coerce_date("2024-02-30") == "2024-02-30"


def test_coerce_date_does_not_invent_missing_components() -> None:
    # A bare month name lacks a day and a year
    assert coerce_date("March") == "March"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("-500.00", Decimal("-500.00")),
        ("1200", Decimal("1200")),
        ("1,234.50", Decimal("1234.50")),
        ("$12.00", Decimal("12.00")),
        ("(45.10)", Decimal("-45.10")),
        ("+7", Decimal("7")),
        ("-$3.25", Decimal("-3.25")),
    ],
)
def test_parse_amount_variants(raw: str, expected: Decimal) -> None:
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "abc", "NaN", "Infinity", None])
def test_parse_amount_rejects_blank_and_non_finite(raw: str | None) -> None:
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_format_amount_key_uses_shortest_form() -> None:
    assert format_amount_key(Decimal("500.00")) == "500"
    assert format_amount_key(Decimal("12.50")) == "12.5"
    assert format_amount_key(Decimal("-3")) == "3"


def test_infer_type_from_sign_and_type_cell() -> None:
    assert infer_type(Decimal("-500")) is TransactionType.EXPENSE
    assert infer_type(Decimal("1200")) is TransactionType.INCOME
    assert infer_type(Decimal("1000"), "cr") is TransactionType.INCOME
    assert infer_type(Decimal("1000"), " Credit ") is TransactionType.INCOME
    assert infer_type(Decimal("1000"), "debit") is TransactionType.EXPENSE
    # Blank type cells fall back to the sign
    assert infer_type(Decimal("-1"), "  ") is TransactionType.EXPENSE


def test_csv_reference_id_is_deterministic() -> None:
    a = csv_reference_id(date_text="05/03/2024", amount=Decimal("500.00"), row_index=2)
    b = csv_reference_id(date_text="05/03/2024", amount=Decimal("500.00"), row_index=2)
    assert a == b == "csv-05/03/2024-500-2"


def test_csv_reference_id_prefers_reference_column() -> None:
    assert (
        csv_reference_id(
            date_text="2024-01-01",
            amount=Decimal("1"),
            row_index=0,
            reference=" TX-9 ",
            use_reference_column=True,
        )
        == "TX-9"
    )
    # Empty reference cell falls back to date + position
    assert (
        csv_reference_id(
            date_text="2024-01-01",
            amount=Decimal("1"),
            row_index=4,
            reference="",
            use_reference_column=True,
        )
        == "csv-2024-01-01-4"
    )


def test_commit_reference_id_includes_timestamp() -> None:
    key = commit_reference_id(
        date_text="2024-01-15", amount=Decimal("85.00"), index=3, timestamp_ms=1700000000000
    )
    assert key == "llm-2024-01-15-85-3-1700000000000"
