"""Pytest configuration for test isolation.

The package reads a handful of ``CARBON_LEDGER_*`` environment variables at
call time (worker count, top-merchant count, log level), and the CLI loads a
``.env`` from the working directory. A developer's shell or a stray ``.env``
would otherwise leak into assertions, so every test runs with those variables
cleared, from a temporary working directory, and with logging unconfigured.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from carbon_ledger.logging_setup import reset_logging
from carbon_ledger.models import Transaction

_ENV_VARS = (
    "CARBON_LEDGER_LOG_LEVEL",
    "CARBON_LEDGER_MAX_WORKERS",
    "CARBON_LEDGER_TOP_MERCHANTS",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def make_tx():
    """Factory for core transactions with sensible defaults."""

    def _make(
        amount: float = 10.0,
        merchant: str = "Corner Shop",
        date: dt.date = dt.date(2025, 8, 10),
        **kw,
    ) -> Transaction:
        return Transaction(amount=amount, merchant=merchant, date=date, **kw)

    return _make
