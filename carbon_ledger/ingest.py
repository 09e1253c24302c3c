"""Load transactions from JSON or CSV files into validated records.

Accepted shapes:

- JSON: a top-level array of transaction objects, or an object with a
  ``"transactions"`` array. Keys may be snake_case or camelCase.
- CSV: a header row naming the same fields (``amount, merchant, category,
  mcc, date, unit, unit_quantity, distance_km, id, country``; camelCase
  headers also work). Empty cells count as absent. Amounts may carry a
  leading ``$`` and thousands separators; parenthesized amounts are read as
  negative and therefore rejected.

Invalid records raise ``ValueError`` naming the position and the underlying
validation error: ``row N`` (1-based) for JSON, ``line N`` of the file for CSV.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Mapping
from io import StringIO
from os import PathLike
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import Transaction, TransactionIn

_logger = get_logger("carbon_ledger.ingest")


def _clean_amount(raw: str) -> str:
    """Strip currency decoration so Pydantic can parse the number.

    ``"$1,234.56"`` → ``"1234.56"``; ``"($12.00)"`` → ``"-12.00"``.
    """

    s = raw.strip()
    negative = False
    if s.startswith("(") and s.endswith(")") and len(s) >= 2:
        negative = True
        s = s[1:-1].strip()
    if s.startswith("-"):
        negative = True
        s = s[1:].lstrip()
    elif s.startswith("+"):
        s = s[1:].lstrip()
    if s.startswith("$"):
        s = s[1:].lstrip()
    s = s.replace(",", "")
    return f"-{s}" if negative else s


def _validate_numbered(
    numbered: Iterable[tuple[int, Any]], *, label: str
) -> list[TransactionIn]:
    out: list[TransactionIn] = []
    for n, record in numbered:
        if not isinstance(record, Mapping):
            raise ValueError(f"{label} {n}: expected an object, got {type(record).__name__}")
        try:
            out.append(TransactionIn.model_validate(dict(record)))
        except ValidationError as e:
            raise ValueError(f"{label} {n}: invalid transaction: {e}") from e
    return out


def parse_records(records: Iterable[Mapping[str, Any]]) -> list[TransactionIn]:
    """Validate raw mappings; raise ``ValueError`` with the 1-based row on failure."""

    return _validate_numbered(enumerate(records, start=1), label="row")


def _rows_from_json(text: str) -> list[Mapping[str, Any]]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e
    if isinstance(data, Mapping):
        data = data.get("transactions")
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of transactions or an object with 'transactions'")
    return data


def _rows_from_csv(text: str) -> list[tuple[int, dict[str, str]]]:
    """Return ``(line_number, row)`` pairs; line numbers count the header and blank lines."""

    reader = csv.DictReader(StringIO(text))
    if not reader.fieldnames:
        raise ValueError("CSV appears to have no header row")
    rows: list[tuple[int, dict[str, str]]] = []
    for row in reader:
        # Drop the ``None`` overflow key and blank cells; skip blank lines.
        cleaned = {
            k.strip(): v.strip()
            for k, v in row.items()
            if k is not None and isinstance(v, str) and v.strip()
        }
        if not cleaned:
            continue
        if "amount" in cleaned:
            cleaned["amount"] = _clean_amount(cleaned["amount"])
        rows.append((reader.line_num, cleaned))
    return rows


def parse_json(text: str) -> list[TransactionIn]:
    return parse_records(_rows_from_json(text))


def parse_csv(text: str) -> list[TransactionIn]:
    return _validate_numbered(_rows_from_csv(text), label="line")


def load_transactions(path: str | PathLike[str]) -> list[Transaction]:
    """Read ``path`` (``.json`` or ``.csv``) and return core transactions."""

    p = Path(path)
    text = p.read_text(encoding="utf-8")
    suffix = p.suffix.lower()
    if suffix == ".json":
        items = parse_json(text)
    elif suffix == ".csv":
        items = parse_csv(text)
    else:
        raise ValueError(f"unsupported file type {p.suffix!r}; expected .json or .csv")
    _logger.info("loaded %d transactions from %s", len(items), p.name)
    return [item.to_transaction() for item in items]


__all__ = ["load_transactions", "parse_csv", "parse_json", "parse_records"]
