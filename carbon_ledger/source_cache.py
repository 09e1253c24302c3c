"""Caller-owned, time-boxed cache for a raw transaction set.

The calculation core keeps no state between calls. Hosts that regenerate or
re-fetch an expensive transaction source (demo data, a bank sandbox sync) can
hold one :class:`TransactionSetCache` and pass the cached set into the core.
Freshness is explicit: every entry records ``generated_at`` and ``ttl``.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .logging_setup import get_logger
from .models import Transaction

DEFAULT_TTL: dt.timedelta = dt.timedelta(hours=1)

_logger = get_logger("carbon_ledger.source_cache")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


@dataclass(frozen=True, slots=True)
class CachedTransactionSet:
    transactions: tuple[Transaction, ...]
    generated_at: dt.datetime
    ttl: dt.timedelta

    @property
    def expires_at(self) -> dt.datetime:
        return self.generated_at + self.ttl

    def is_fresh(self, now: dt.datetime) -> bool:
        return now < self.expires_at


class TransactionSetCache:
    """Single-entry cache with an explicit TTL and an injectable clock."""

    def __init__(
        self,
        *,
        ttl: dt.timedelta = DEFAULT_TTL,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        if ttl <= dt.timedelta(0):
            raise ValueError("ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._entry: CachedTransactionSet | None = None

    @property
    def ttl(self) -> dt.timedelta:
        return self._ttl

    def get(self) -> CachedTransactionSet | None:
        """Return the cached set when still fresh, else ``None``."""

        entry = self._entry
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            _logger.debug("transaction set expired at %s", entry.expires_at.isoformat())
            return None
        return entry

    def put(self, transactions: Iterable[Transaction]) -> CachedTransactionSet:
        entry = CachedTransactionSet(
            transactions=tuple(transactions),
            generated_at=self._clock(),
            ttl=self._ttl,
        )
        self._entry = entry
        return entry

    def get_or_load(
        self, loader: Callable[[], Iterable[Transaction]]
    ) -> CachedTransactionSet:
        """Return the fresh cached set, or call ``loader`` and cache its result.

        Loader errors propagate and leave any previous entry in place.
        """

        entry = self.get()
        if entry is not None:
            return entry
        entry = self.put(loader())
        _logger.debug("cached %d transactions", len(entry.transactions))
        return entry

    def clear(self) -> None:
        self._entry = None


__all__ = ["DEFAULT_TTL", "CachedTransactionSet", "TransactionSetCache"]
