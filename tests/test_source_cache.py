from __future__ import annotations

import datetime as dt

import pytest

from carbon_ledger.source_cache import DEFAULT_TTL, TransactionSetCache


class _Clock:
    def __init__(self) -> None:
        self.now = dt.datetime(2025, 8, 10, 12, 0, tzinfo=dt.UTC)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kw) -> None:
        self.now += dt.timedelta(**kw)


def test_put_and_get_until_expiry(make_tx):
    clock = _Clock()
    cache = TransactionSetCache(clock=clock)
    assert cache.ttl == DEFAULT_TTL
    assert cache.get() is None

    entry = cache.put([make_tx(), make_tx(20.0)])
    assert entry.generated_at == clock.now
    assert entry.expires_at == clock.now + DEFAULT_TTL
    assert cache.get() is entry

    clock.advance(minutes=59)
    assert cache.get() is entry
    clock.advance(minutes=1)
    assert cache.get() is None


def test_get_or_load_calls_loader_only_when_stale(make_tx):
    clock = _Clock()
    cache = TransactionSetCache(ttl=dt.timedelta(minutes=5), clock=clock)
    calls: list[int] = []

    def loader():
        calls.append(1)
        return [make_tx()]

    first = cache.get_or_load(loader)
    second = cache.get_or_load(loader)
    assert first is second
    assert len(calls) == 1
    assert first.transactions == (make_tx(),)

    clock.advance(minutes=10)
    third = cache.get_or_load(loader)
    assert third is not first
    assert len(calls) == 2


def test_loader_errors_propagate_and_keep_previous_entry(make_tx):
    clock = _Clock()
    cache = TransactionSetCache(clock=clock)
    entry = cache.put([make_tx()])

    def boom():
        raise RuntimeError("source unavailable")

    clock.advance(hours=2)
    with pytest.raises(RuntimeError, match="source unavailable"):
        cache.get_or_load(boom)

    clock.now = entry.generated_at
    assert cache.get() is entry


def test_clear_and_invalid_ttl(make_tx):
    cache = TransactionSetCache()
    cache.put([make_tx()])
    cache.clear()
    assert cache.get() is None

    with pytest.raises(ValueError, match="ttl"):
        TransactionSetCache(ttl=dt.timedelta(0))
