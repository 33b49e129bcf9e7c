# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

This module exposes callable command handlers (``cmd_parse_csv``,
``cmd_extract_statement`` ...) and a Typer-based console interface. The root
callback loads a local ``.env`` with ``python-dotenv`` (without overriding the
shell environment) and configures logging before any command runs.

Exit codes: ``0`` success, ``1`` failure, ``2`` password required.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Literal

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .logging_setup import configure_logging
from .models import ColumnMapping, ParsedTransaction, SourceTag

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PASSWORD_REQUIRED = 2


# ---- Small module-level helpers used by CLI commands -------------------------


def _print_transactions(transactions: Sequence[ParsedTransaction]) -> None:
    """One tab-separated line per row: date, time, type, amount, description, category."""

    for tx in transactions:
        print(
            "\t".join(
                [
                    tx.date,
                    tx.time or "",
                    tx.type.value,
                    format(tx.amount, "f"),
                    tx.description,
                    tx.category or "",
                ]
            )
        )


def _has_database(database_url: str | None) -> bool:
    return bool(database_url or os.getenv("DATABASE_URL"))


def _resolve_mapping(
    content: str,
    *,
    delimiter: str,
    date_column: str | None,
    description_column: str | None,
    amount_column: str | None,
    type_column: str | None,
    reference_column: str | None,
) -> ColumnMapping:
    """Explicit column options win; the rest are detected from the header row."""

    from .normalizers import detect_column_mapping, read_headers

    detected = detect_column_mapping(read_headers(content, delimiter=delimiter))
    return ColumnMapping(
        date_column=date_column or detected.date_column,
        description_column=description_column or detected.description_column,
        amount_column=amount_column or detected.amount_column,
        type_column=type_column,
        reference_column=reference_column,
    )


def _parse_csv_file(
    csv_path: str,
    *,
    delimiter: str,
    date_column: str | None,
    description_column: str | None,
    amount_column: str | None,
    type_column: str | None,
    reference_column: str | None,
):
    from .normalizers import DelimitedTextNormalizer

    content = Path(csv_path).read_text(encoding="utf-8-sig")
    mapping = _resolve_mapping(
        content,
        delimiter=delimiter,
        date_column=date_column,
        description_column=description_column,
        amount_column=amount_column,
        type_column=type_column,
        reference_column=reference_column,
    )
    return DelimitedTextNormalizer(delimiter=delimiter).parse(content, mapping)


# ---- Command handlers --------------------------------------------------------


def cmd_parse_csv(
    csv_path: str,
    *,
    delimiter: str = ",",
    date_column: str | None = None,
    description_column: str | None = None,
    amount_column: str | None = None,
    type_column: str | None = None,
    reference_column: str | None = None,
    account_id: str | None = None,
    database_url: str | None = None,
) -> int:
    """Parse a CSV statement; commit it as ``csv_import`` when ``account_id`` is given."""

    from .errors import StatementImportError

    try:
        result = _parse_csv_file(
            csv_path,
            delimiter=delimiter,
            date_column=date_column,
            description_column=description_column,
            amount_column=amount_column,
            type_column=type_column,
            reference_column=reference_column,
        )
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: failed to read CSV: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except (StatementImportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    for message in result.errors:
        print(message, file=sys.stderr)
    _print_transactions(result.transactions)
    print(
        f"parsed={len(result.transactions)} skipped={result.skipped_rows} "
        f"total={result.total_rows} errors={len(result.errors)} "
        f"unparsed_dates={len(result.unparsed_dates)}",
        file=sys.stderr,
    )

    if account_id is None:
        return EXIT_OK

    from .persistence import SqlAlchemyTransactionStore
    from .reconciliation import commit

    try:
        committed = commit(
            result.transactions,
            account_id,
            SourceTag.CSV_IMPORT,
            SqlAlchemyTransactionStore(database_url=database_url),
        )
    except StatementImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    print(f"committed={committed.committed} source={committed.source}", file=sys.stderr)
    return EXIT_OK


def _build_extractor(kind: str, extractor_url: str | None):
    from .extractors import HttpStatementExtractor, OpenAIStatementExtractor

    if kind == "http":
        return HttpStatementExtractor(extractor_url)
    return OpenAIStatementExtractor()


def _build_session(*, extractor, database_url: str | None):
    from .orchestrator import StatementImportSession
    from .persistence import SqlAlchemyCategoryLookup, SqlAlchemyTransactionStore

    if _has_database(database_url):
        return StatementImportSession(
            extractor,
            categories=SqlAlchemyCategoryLookup(database_url=database_url),
            store=SqlAlchemyTransactionStore(database_url=database_url),
        )
    return StatementImportSession(extractor)


def _commit_session(session, account_id: str | None, database_url: str | None) -> int:
    if not account_id:
        print("Error: --account-id is required with --commit", file=sys.stderr)
        return EXIT_FAILURE
    if not _has_database(database_url):
        print("Error: DATABASE_URL is not set; cannot commit", file=sys.stderr)
        return EXIT_FAILURE
    result = session.commit(account_id)
    if result is None:
        print(f"Error: {session.error}", file=sys.stderr)
        return EXIT_FAILURE
    print(f"committed={result.committed} source={result.source}", file=sys.stderr)
    return EXIT_OK


def cmd_extract_statement(
    file: str,
    *,
    password: str | None = None,
    media_type: str | None = None,
    extractor: Literal["openai", "http"] = "openai",
    extractor_url: str | None = None,
    account_id: str | None = None,
    commit: bool = False,
    database_url: str | None = None,
) -> int:
    from .models import StatementSource
    from .orchestrator import ImportStatus

    if extractor == "openai" and not os.getenv("OPENAI_API_KEY"):
        print("Error: OPENAI_API_KEY is not set in the environment.", file=sys.stderr)
        return EXIT_FAILURE

    try:
        source = StatementSource.from_path(file, media_type=media_type)
        collaborator = _build_extractor(extractor, extractor_url)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    session = _build_session(extractor=collaborator, database_url=database_url)
    session.select_file(source)
    if password:
        session.set_password(password)
    status = session.extract()

    if status is ImportStatus.NEEDS_PASSWORD:
        print(f"Error: {session.error} (use --password)", file=sys.stderr)
        return EXIT_PASSWORD_REQUIRED
    if status is not ImportStatus.READY:
        print(f"Error: {session.error}", file=sys.stderr)
        return EXIT_FAILURE

    _print_transactions(session.transactions)
    last = session.last_result
    if last is not None:
        print(
            f"extracted={len(last.transactions)} dropped={last.dropped_rows} "
            f"unparsed_dates={len(last.unparsed_dates)}",
            file=sys.stderr,
        )
    if not commit:
        return EXIT_OK
    return _commit_session(session, account_id, database_url)


def cmd_restore_last(
    *,
    account_id: str | None = None,
    commit: bool = False,
    database_url: str | None = None,
) -> int:
    session = _build_session(extractor=None, database_url=database_url)
    if not session.restore_last_session():
        print(f"Error: {session.error or 'No saved import found'}", file=sys.stderr)
        return EXIT_FAILURE
    _print_transactions(session.transactions)
    if not commit:
        return EXIT_OK
    return _commit_session(session, account_id, database_url)


def cmd_reassign_category(
    transaction_ids: Sequence[str],
    *,
    category_id: str | None,
    database_url: str | None = None,
) -> int:
    from .errors import BatchUpdateError
    from .persistence import SqlAlchemyTransactionStore
    from .reconciliation import reassign_category

    try:
        result = reassign_category(
            SqlAlchemyTransactionStore(database_url=database_url), transaction_ids, category_id
        )
    except BatchUpdateError as e:
        print(
            f"Error: {e} (applied={len(e.applied)} failed_id={e.failed_id})",
            file=sys.stderr,
        )
        return EXIT_FAILURE
    print(f"updated={len(result.applied)}", file=sys.stderr)
    return EXIT_OK


def cmd_seed_categories(*, database_url: str | None = None, file: str | None = None) -> int:
    from .ingest.seed_categories import DEFAULT_SEED_FILE, seed_default_categories

    try:
        added = seed_default_categories(
            database_url=database_url, file=Path(file) if file else DEFAULT_SEED_FILE
        )
    except (OSError, ValueError, RuntimeError) as e:
        print(f"Error: seeding failed: {e}", file=sys.stderr)
        return EXIT_FAILURE
    print(f"added={added}", file=sys.stderr)
    return EXIT_OK


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements (CSV, PDF, images) into transactions. "
        "Loads OPENAI_API_KEY and DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as default values below.
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a delimited-text bank statement",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
TRANSACTION_IDS_ARGUMENT: ArgumentInfo = typer.Argument(
    ..., help="Transaction ids to update, in order."
)

_Column = Annotated[str | None, typer.Option(help="Header name; detected when omitted.")]


@app.command("parse-csv")
def parse_csv_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    date_column: _Column = None,
    description_column: _Column = None,
    amount_column: _Column = None,
    type_column: Annotated[
        str | None, typer.Option(help="Column holding income/expense (credit/cr = income).")
    ] = None,
    reference_column: Annotated[
        str | None, typer.Option(help="Column holding a bank reference to use as dedup key.")
    ] = None,
    delimiter: Annotated[str, typer.Option(help="Field delimiter.")] = ",",
) -> None:
    """Parse a CSV statement and print one tab-separated line per transaction."""

    raise typer.Exit(
        cmd_parse_csv(
            str(csv_path),
            delimiter=delimiter,
            date_column=date_column,
            description_column=description_column,
            amount_column=amount_column,
            type_column=type_column,
            reference_column=reference_column,
        )
    )


@app.command("import-csv")
def import_csv_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    account_id: Annotated[str, typer.Option(help="Account the transactions belong to.")],
    *,
    date_column: _Column = None,
    description_column: _Column = None,
    amount_column: _Column = None,
    type_column: _Column = None,
    reference_column: _Column = None,
    delimiter: Annotated[str, typer.Option(help="Field delimiter.")] = ",",
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Parse a CSV statement and commit it to the database as ``csv_import``."""

    raise typer.Exit(
        cmd_parse_csv(
            str(csv_path),
            delimiter=delimiter,
            date_column=date_column,
            description_column=description_column,
            amount_column=amount_column,
            type_column=type_column,
            reference_column=reference_column,
            account_id=account_id,
            database_url=database_url,
        )
    )


@app.command("extract-statement")
def extract_statement_cmd(
    file: Annotated[Path, typer.Option("--file", help="Statement file (PDF, image, CSV).")],
    *,
    password: Annotated[
        str | None, typer.Option(help="Password for an encrypted PDF.")
    ] = None,
    media_type: Annotated[
        str | None, typer.Option(help="Override the media type guessed from the file name.")
    ] = None,
    extractor: Annotated[
        str, typer.Option(help="Extraction collaborator: openai or http.")
    ] = "openai",
    extractor_url: Annotated[
        str | None,
        typer.Option(help="Service URL for --extractor http (falls back to env var)."),
    ] = None,
    account_id: Annotated[str | None, typer.Option(help="Account for --commit.")] = None,
    commit: Annotated[bool, typer.Option(help="Commit the extracted batch.")] = False,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Extract transactions from a statement with an LLM collaborator."""

    if extractor not in ("openai", "http"):
        print("Error: --extractor must be 'openai' or 'http'", file=sys.stderr)
        raise typer.Exit(EXIT_FAILURE)
    raise typer.Exit(
        cmd_extract_statement(
            str(file),
            password=password,
            media_type=media_type,
            extractor=extractor,  # type: ignore[arg-type]
            extractor_url=extractor_url,
            account_id=account_id,
            commit=commit,
            database_url=database_url,
        )
    )


@app.command("restore-last")
def restore_last_cmd(
    *,
    account_id: Annotated[str | None, typer.Option(help="Account for --commit.")] = None,
    commit: Annotated[bool, typer.Option(help="Commit the saved batch.")] = False,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Show (and optionally commit) the last extracted, uncommitted batch."""

    raise typer.Exit(
        cmd_restore_last(account_id=account_id, commit=commit, database_url=database_url)
    )


@app.command("reassign-category")
def reassign_category_cmd(
    transaction_ids: Annotated[list[str], TRANSACTION_IDS_ARGUMENT],
    *,
    category_id: Annotated[
        str | None, typer.Option(help="Target category id; omit to clear.")
    ] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Move stored transactions to another category, one at a time."""

    raise typer.Exit(
        cmd_reassign_category(
            transaction_ids, category_id=category_id, database_url=database_url
        )
    )


@app.command("seed-categories")
def seed_categories_cmd(
    *,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    file: Annotated[str | None, typer.Option(help="Seed JSON (defaults to the bundled set).")] = None,
) -> None:
    """Insert the default income/expense categories (idempotent)."""

    raise typer.Exit(cmd_seed_categories(database_url=database_url, file=file))


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:  # pragma: no cover - console script entrypoint
    app()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m statement_import.cli`
    app()
