"""CLI for the ``carbon_ledger`` package.

Command handlers (``cmd_estimate``, ``cmd_summarize``, ``cmd_score``) are
plain functions returning an exit code; the Typer commands below only parse
options and delegate. Results are printed to stdout as JSON. Errors are
printed to stderr as ``Error: ...`` with exit status 1.

Environment is loaded from a local ``.env`` (without overriding variables
already set) before any command runs.
"""

from __future__ import annotations

import json
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from typer.models import OptionInfo

from .logging_setup import configure_logging

# ---- Handlers ----------------------------------------------------------------


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _load(path: Path) -> list:
    from .ingest import load_transactions

    return load_transactions(path)


def cmd_estimate(
    *,
    file: Path | None = None,
    fields: dict[str, Any] | None = None,
    max_workers: int | None = None,
) -> int:
    """Estimate every transaction in ``file``, or one built from ``fields``."""

    from .api import calculate
    from .estimator import estimate_all

    try:
        if file is not None:
            estimated = estimate_all(_load(file), max_workers=max_workers)
            _emit([item.to_dict() for item in estimated])
        else:
            _emit(calculate(fields or {}).to_dict())
    except FileNotFoundError:
        return _fail(f"File not found: {file}")
    except PermissionError:
        return _fail(f"Permission denied: {file}")
    except ValidationError as e:
        return _fail(f"invalid transaction: {e}")
    except ValueError as e:
        return _fail(str(e))
    return 0


def cmd_summarize(
    file: Path,
    *,
    window: str,
    reference_date: date | None,
    top_n: int | None,
    max_workers: int | None = None,
) -> int:
    from .aggregate import summarize

    try:
        result = summarize(
            _load(file),
            reference_date=reference_date or date.today(),
            window=window,
            top_n=top_n,
            max_workers=max_workers,
        )
    except FileNotFoundError:
        return _fail(f"File not found: {file}")
    except PermissionError:
        return _fail(f"Permission denied: {file}")
    except ValueError as e:
        return _fail(str(e))
    _emit(result.to_dict())
    return 0


def cmd_score(
    file: Path,
    *,
    reference_date: date | None,
    max_workers: int | None = None,
) -> int:
    from .estimator import estimate_all
    from .scoring import eco_score

    try:
        estimated = estimate_all(_load(file), max_workers=max_workers)
    except FileNotFoundError:
        return _fail(f"File not found: {file}")
    except PermissionError:
        return _fail(f"Permission denied: {file}")
    except ValueError as e:
        return _fail(str(e))
    _emit(eco_score(estimated, reference_date=reference_date or date.today()).to_dict())
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Estimate transaction emissions, summarize them over a window, and compute "
        "the Eco Score. Loads settings from a local .env before running."
    ),
)

# Module-level option objects keep calls out of parameter defaults (ruff B008).
# Inside ``Annotated`` the default stays ``...``; the real default is set with ``=``.
FILE_OPTION: OptionInfo = typer.Option(
    ...,
    "--file",
    "-f",
    help="Path to a .json or .csv transaction file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
REFERENCE_DATE_OPTION: OptionInfo = typer.Option(
    ...,
    "--reference-date",
    formats=["%Y-%m-%d"],
    help="Day treated as 'today' (YYYY-MM-DD). Defaults to the current date.",
)
WORKERS_OPTION: OptionInfo = typer.Option(
    ...,
    "--max-workers",
    min=1,
    help="Thread count for batch estimation (falls back to CARBON_LEDGER_MAX_WORKERS).",
)
ESTIMATE_FILE_OPTION: OptionInfo = typer.Option(
    ...,
    "--file",
    "-f",
    help="Estimate every transaction in a .json/.csv file.",
    dir_okay=False,
    file_okay=True,
    exists=False,
)


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


@app.command("estimate")
def estimate_cmd(
    *,
    file: Annotated[Path | None, ESTIMATE_FILE_OPTION] = None,
    amount: Annotated[float | None, typer.Option(help="Transaction amount in dollars.")] = None,
    merchant: Annotated[
        str | None, typer.Option(help="Merchant name as it appears on the statement.")
    ] = None,
    category: Annotated[
        str | None, typer.Option(help="Category already assigned by the caller.")
    ] = None,
    mcc: Annotated[str | None, typer.Option(help="4-digit merchant category code.")] = None,
    unit: Annotated[
        str | None, typer.Option(help="Physical unit (e.g. gallon, kWh, therm).")
    ] = None,
    unit_quantity: Annotated[
        float | None, typer.Option(help="Quantity paired with --unit.")
    ] = None,
    distance_km: Annotated[
        float | None, typer.Option(help="Trip distance for rideshare merchants.")
    ] = None,
    max_workers: Annotated[int | None, WORKERS_OPTION] = None,
) -> None:
    """Estimate one transaction from options, or a whole file with --file."""

    if file is None and amount is None:
        typer.echo("Either --file or --amount is required.", err=True)
        raise typer.Exit(1)
    fields = {
        "amount": amount,
        "merchant": merchant,
        "category": category,
        "mcc": mcc,
        "unit": unit,
        "unit_quantity": unit_quantity,
        "distance_km": distance_km,
    }
    code = cmd_estimate(
        file=file,
        fields={k: v for k, v in fields.items() if v is not None},
        max_workers=max_workers,
    )
    raise typer.Exit(code)


@app.command("summarize")
def summarize_cmd(
    file: Annotated[Path, FILE_OPTION],
    *,
    window: Annotated[str, typer.Option(help="Trailing window: week, month, or quarter.")] = "week",
    reference_date: Annotated[datetime | None, REFERENCE_DATE_OPTION] = None,
    top_n: Annotated[
        int | None,
        typer.Option(min=1, help="Top merchants to keep (falls back to CARBON_LEDGER_TOP_MERCHANTS)."),
    ] = None,
    max_workers: Annotated[int | None, WORKERS_OPTION] = None,
) -> None:
    """Summarize emissions over a trailing window."""

    raise typer.Exit(
        cmd_summarize(
            file,
            window=window,
            reference_date=_as_date(reference_date),
            top_n=top_n,
            max_workers=max_workers,
        )
    )


@app.command("score")
def score_cmd(
    file: Annotated[Path, FILE_OPTION],
    *,
    reference_date: Annotated[datetime | None, REFERENCE_DATE_OPTION] = None,
    max_workers: Annotated[int | None, WORKERS_OPTION] = None,
) -> None:
    """Compute the Eco Score for a transaction history."""

    raise typer.Exit(
        cmd_score(file, reference_date=_as_date(reference_date), max_workers=max_workers)
    )


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option(help="Logging level (falls back to CARBON_LEDGER_LOG_LEVEL, then WARNING)."),
    ] = None,
) -> None:
    """Load ``.env`` from the working directory and configure logging once."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.Exit(_fail(str(e))) from e


def main() -> None:  # pragma: no cover - console script entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
