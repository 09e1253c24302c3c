"""Reducers over estimated transactions.

Public API:
    - :func:`aggregate`: category breakdown, top merchants, daily trend, and
      confidence/method distributions for a collection of estimates.
    - :func:`summarize`: estimate raw transactions, keep the trailing window
      (``week``/``month``/``quarter``), and aggregate them.
    - :func:`category_breakdown`, :func:`top_merchants`, :func:`daily_series`:
      the individual reducers, shared with :mod:`carbon_ledger.scoring`.

Every function is a pure fold over its input. Ties in rankings are broken by
name so repeated runs over the same input produce identical output.
"""

from __future__ import annotations

import datetime as dt
import os
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType

from .estimator import estimate_all
from .logging_setup import get_logger
from .models import (
    CategoryShare,
    Confidence,
    EmissionSummary,
    EstimatedTransaction,
    MerchantTotal,
    Method,
    Transaction,
    TrendPoint,
    WindowSummary,
)

WINDOW_DAYS: Mapping[str, int] = MappingProxyType({"week": 7, "month": 30, "quarter": 90})
DEFAULT_WINDOW_DAYS: int = 7
DEFAULT_TOP_N: int = 5
UNKNOWN_MERCHANT: str = "Unknown"

_TOP_N_ENV = "CARBON_LEDGER_TOP_MERCHANTS"

_logger = get_logger("carbon_ledger.aggregate")


def _round2(x: float) -> float:
    return round(x, 2)


def _window_bounds(reference_date: dt.date, days: int) -> tuple[dt.date, dt.date]:
    """Return the inclusive ``(start, end)`` days of a trailing window."""

    if days < 1:
        raise ValueError(f"window must span at least one day, got {days}")
    return reference_date - dt.timedelta(days=days - 1), reference_date


def in_window(
    items: Iterable[EstimatedTransaction], *, reference_date: dt.date, days: int
) -> list[EstimatedTransaction]:
    start, end = _window_bounds(reference_date, days)
    return [it for it in items if start <= it.transaction.date <= end]


# ---------------------------------------------------------------------------
# Individual reducers
# ---------------------------------------------------------------------------


def category_breakdown(items: Iterable[EstimatedTransaction]) -> tuple[CategoryShare, ...]:
    """Group by category, sort descending, and attach each share of the total.

    Empty input yields ``()``. When every estimate is zero the shares are all
    ``0.0`` rather than a division by zero.
    """

    totals: dict[str, float] = {}
    for it in items:
        cat = it.estimate.category
        totals[cat] = totals.get(cat, 0.0) + it.estimate.emissions_kg
    if not totals:
        return ()

    grand = sum(totals.values())
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(
        CategoryShare(
            category=cat,
            total_kg=_round2(kg),
            percent_of_total=_round2(kg / grand * 100) if grand > 0 else 0.0,
        )
        for cat, kg in ordered
    )


def top_merchants(
    items: Iterable[EstimatedTransaction], *, n: int = DEFAULT_TOP_N
) -> tuple[MerchantTotal, ...]:
    """Sum emissions per merchant (as given by the source) and keep the top ``n``."""

    if n < 1:
        raise ValueError(f"n must be a positive integer, got {n}")
    totals: dict[str, float] = {}
    for it in items:
        name = it.transaction.merchant.strip() or UNKNOWN_MERCHANT
        totals[name] = totals.get(name, 0.0) + it.estimate.emissions_kg
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(MerchantTotal(merchant=m, total_kg=_round2(kg)) for m, kg in ordered[:n])


def daily_series(
    items: Iterable[EstimatedTransaction],
    *,
    reference_date: dt.date,
    days: int,
) -> tuple[TrendPoint, ...]:
    """Dense daily totals for ``days`` days ending at ``reference_date``, oldest first.

    Days without transactions appear with ``0.0``; transactions outside the
    window are ignored.
    """

    start, end = _window_bounds(reference_date, days)
    by_day: dict[dt.date, float] = {start + dt.timedelta(days=i): 0.0 for i in range(days)}
    for it in items:
        d = it.transaction.date
        if start <= d <= end:
            by_day[d] += it.estimate.emissions_kg
    return tuple(TrendPoint(date=d, total_kg=_round2(kg)) for d, kg in by_day.items())


def confidence_distribution(items: Iterable[EstimatedTransaction]) -> Mapping[Confidence, int]:
    counts = Counter(it.estimate.confidence for it in items)
    return MappingProxyType({c: counts.get(c, 0) for c in Confidence})


def method_distribution(items: Iterable[EstimatedTransaction]) -> Mapping[Method, int]:
    counts = Counter(it.estimate.method for it in items)
    return MappingProxyType({m: counts.get(m, 0) for m in Method})


# ---------------------------------------------------------------------------
# Composite views
# ---------------------------------------------------------------------------


def aggregate(
    items: Iterable[EstimatedTransaction],
    *,
    reference_date: dt.date,
    window_days: int = DEFAULT_WINDOW_DAYS,
    top_n: int = DEFAULT_TOP_N,
) -> EmissionSummary:
    """Fold estimates into an :class:`EmissionSummary`.

    Breakdown, rankings, and distributions cover all of ``items``; the trend
    covers the ``window_days`` days ending at ``reference_date``.
    """

    seq: Sequence[EstimatedTransaction] = list(items)
    return EmissionSummary(
        total_kg=_round2(sum(it.estimate.emissions_kg for it in seq)),
        count=len(seq),
        category_breakdown=category_breakdown(seq),
        top_merchants=top_merchants(seq, n=top_n),
        trend=daily_series(seq, reference_date=reference_date, days=window_days),
        confidence_distribution=confidence_distribution(seq),
        method_distribution=method_distribution(seq),
    )


def _resolve_top_n(requested: int | None) -> int:
    if requested is not None:
        return requested
    env_val = os.getenv(_TOP_N_ENV)
    if env_val:
        try:
            value = int(env_val)
        except ValueError:
            _logger.warning("ignoring non-integer %s=%r", _TOP_N_ENV, env_val)
        else:
            if value >= 1:
                return value
            _logger.warning("ignoring non-positive %s=%r", _TOP_N_ENV, env_val)
    return DEFAULT_TOP_N


def summarize(
    transactions: Iterable[Transaction],
    *,
    reference_date: dt.date,
    window: str = "week",
    top_n: int | None = None,
    max_workers: int | None = None,
) -> WindowSummary:
    """Estimate, window, and aggregate a raw transaction set."""

    try:
        days = WINDOW_DAYS[window]
    except KeyError:
        allowed = ", ".join(WINDOW_DAYS)
        raise ValueError(f"unknown window {window!r}; expected one of: {allowed}") from None

    estimated = estimate_all(transactions, max_workers=max_workers)
    scoped = in_window(estimated, reference_date=reference_date, days=days)
    summary = aggregate(
        scoped,
        reference_date=reference_date,
        window_days=days,
        top_n=_resolve_top_n(top_n),
    )
    count = summary.count
    _logger.info(
        "summarized %d of %d transactions for window=%s ending %s",
        count,
        len(estimated),
        window,
        reference_date.isoformat(),
    )
    return WindowSummary(
        window=window,
        window_days=days,
        reference_date=reference_date,
        summary=summary,
        transaction_count=count,
        average_per_transaction=_round2(summary.total_kg / count) if count else 0.0,
        daily_average_kg=_round2(summary.total_kg / days),
    )


__all__ = [
    "DEFAULT_TOP_N",
    "WINDOW_DAYS",
    "aggregate",
    "category_breakdown",
    "confidence_distribution",
    "daily_series",
    "in_window",
    "method_distribution",
    "summarize",
    "top_merchants",
]
