"""Prompt construction for statement extraction.

This module builds:
- A deterministic JSON serialization of the category lookup with a fixed
  field order (``id, name, type``).
- The system and user prompts for the extraction task.

The collaborator is asked for a bare JSON array; responses are cleaned and
validated by :mod:`statement_import.extraction` regardless of what comes back.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from .models import CategoryRef

CATEGORY_FIELD_ORDER: tuple[str, ...] = ("id", "name", "type")


def serialize_categories_to_json(categories: Sequence[CategoryRef]) -> str:
    """Serialize the category lookup to a JSON array with a fixed field order."""

    arr = [{k: c.to_prompt_dict()[k] for k in CATEGORY_FIELD_ORDER} for c in categories]
    return json.dumps(arr, ensure_ascii=False)


def build_system_instructions() -> str:
    return (
        "You extract transactions from bank statements and payment slips. "
        "Return ONLY a valid JSON array, without Markdown fences or commentary. "
        "Each element is an object with keys: date, time, description, amount, type, "
        "category. Never invent transactions that are not present in the document."
    )


def build_user_content(
    categories: Sequence[CategoryRef],
    *,
    filename: str | None = None,
) -> str:
    """Build the task text sent alongside the statement payload.

    - Spells out the per-field rules (ISO dates, 24h times, positive amounts).
    - Embeds the category lookup delimited by BEGIN_/END_ markers so the model
      can suggest an ``id`` from it, or ``null`` when none fits.
    """

    lines = [
        "Extract every transaction from the attached statement"
        + (f" ({filename})" if filename else "")
        + ".",
        "",
        "Rules:",
        "- date: the transaction date as YYYY-MM-DD. Convert Buddhist-era years "
        "(e.g. 2567) to the Gregorian calendar by subtracting 543.",
        '- time: the transaction time as HH:mm in 24-hour format, or null if absent.',
        "- description: the most detailed description column available "
        "(counterparty, merchant or memo), not a generic channel label.",
        "- amount: a positive number without currency symbols or thousands separators.",
        '- type: "income" for money received (deposits, credits, incoming transfers), '
        '"expense" for money paid out (withdrawals, debits, purchases). '
        'When unclear, use "expense".',
        "- category: the id of the best-matching category of the same type from the "
        "list below, or null when none fits. Never invent ids.",
        "- Skip balance-only lines, opening/closing balances and running totals.",
        "",
    ]
    if categories:
        lines.extend(
            [
                "BEGIN_CATEGORIES",
                serialize_categories_to_json(categories),
                "END_CATEGORIES",
            ]
        )
    else:
        lines.append("No categories are defined; set category to null for every row.")
    lines.extend(
        [
            "",
            'Example: [{"date": "2024-01-15", "time": "14:30", "description": "Coffee Shop", '
            '"amount": 85, "type": "expense", "category": null}]',
        ]
    )
    return "\n".join(lines)


__all__ = [
    "CATEGORY_FIELD_ORDER",
    "serialize_categories_to_json",
    "build_system_instructions",
    "build_user_content",
]
