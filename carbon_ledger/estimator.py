"""Per-transaction emission estimation.

Public API:
    - :func:`estimate`
    - :func:`estimate_all`

Estimation runs an ordered cascade of tiers. Each tier either returns an
:class:`~carbon_ledger.models.EmissionEstimate` or ``None`` to pass control to
the next one; the first estimate wins:

1. unit-based: reported physical quantity × unit factor (``high``);
2. specialized merchants: quantity implied from the dollar amount under an
   assumed unit price (``medium``), or a flat rate when no derivation exists
   (``low``);
3. spend-based: amount × category spend factor, confidence banded by the
   factor magnitude; unknown categories use the ``retail`` factor at ``low``.

A tier that is attempted and falls through leaves a note, which is carried
into the winning estimate. A unit or derived quantity whose product with its
factor overflows also falls through. Estimation never raises for missing,
unrecognized or out-of-range optional fields.
"""

from __future__ import annotations

import math
import os
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import NamedTuple, TypeAlias

from .classifier import category_for_mcc, normalize_merchant, resolve_category
from .factors import DEFAULT_CATEGORY, SPEND_FACTORS, UNIT_FACTORS, unit_factor_key
from .logging_setup import get_logger
from .models import Confidence, EmissionEstimate, EstimatedTransaction, Method, Transaction

# ---- Tunables ----------------------------------------------------------------

ASSUMED_FUEL_PRICE_PER_GALLON: float = 3.50
ASSUMED_AIRFARE_PER_MILE: float = 0.15
FLAT_SPECIALIZED_RATE: float = 0.1
KM_TO_MILES: float = 0.621371

# Spend factors strictly above these bounds grade high / medium.
HIGH_CONFIDENCE_FACTOR: float = 0.15
MEDIUM_CONFIDENCE_FACTOR: float = 0.08

_MAX_WORKERS_CAP: int = 32
_MAX_WORKERS_ENV = "CARBON_LEDGER_MAX_WORKERS"

_logger = get_logger("carbon_ledger.estimator")


# ---- Specialized merchant rules ----------------------------------------------


class _Derivation(NamedTuple):
    quantity: float
    unit_key: str
    note: str


@dataclass(frozen=True, slots=True)
class _SpecializedRule:
    name: str
    fragments: tuple[str, ...]
    derive: Callable[[Transaction], _Derivation | None] | None = None


def _derive_fuel_gallons(tx: Transaction) -> _Derivation:
    gallons = tx.amount / ASSUMED_FUEL_PRICE_PER_GALLON
    return _Derivation(
        gallons,
        "gasoline_gallon",
        f"Estimated {gallons:.1f} gallons from ${tx.amount:.2f} "
        f"at an assumed ${ASSUMED_FUEL_PRICE_PER_GALLON:.2f}/gallon",
    )


def _derive_flight_miles(tx: Transaction) -> _Derivation:
    miles = tx.amount / ASSUMED_AIRFARE_PER_MILE
    return _Derivation(
        miles,
        "flight_passenger_mile",
        f"Estimated {miles:.0f} passenger-miles from ${tx.amount:.2f} "
        f"at an assumed ${ASSUMED_AIRFARE_PER_MILE:.2f}/mile",
    )


def _derive_ride_miles(tx: Transaction) -> _Derivation | None:
    km = tx.distance_km
    if km is None or not math.isfinite(km) or km <= 0:
        return None
    miles = km * KM_TO_MILES
    return _Derivation(
        miles,
        "ridehailing_mile",
        f"Converted reported trip distance {km:g} km to {miles:.1f} miles",
    )


# Matched in order against the normalized merchant name. Rules without a
# derivation only ever produce the flat-rate estimate.
SPECIALIZED_RULES: tuple[_SpecializedRule, ...] = (
    _SpecializedRule(
        "fuel retailer", ("shell", "exxon", "chevron", "bp", "mobil"), _derive_fuel_gallons
    ),
    _SpecializedRule(
        "airline", ("american airlines", "delta", "united", "southwest"), _derive_flight_miles
    ),
    _SpecializedRule("rideshare", ("uber", "lyft"), _derive_ride_miles),
    _SpecializedRule("grocery/coffee chain", ("whole foods", "starbucks")),
)


def match_specialized_rule(merchant: str | None) -> _SpecializedRule | None:
    normalized = normalize_merchant(merchant)
    if not normalized:
        return None
    for rule in SPECIALIZED_RULES:
        if any(fragment in normalized for fragment in rule.fragments):
            return rule
    return None


# ---- Tiers -------------------------------------------------------------------

_Tier: TypeAlias = Callable[[Transaction, str, list[str]], EmissionEstimate | None]


def _unit_tier(tx: Transaction, category: str, notes: list[str]) -> EmissionEstimate | None:
    if not tx.has_unit_data:
        return None
    key = unit_factor_key(tx.unit)
    if key is None:
        notes.append(f"Unit {tx.unit!r} not recognized; unit-based estimate skipped")
        _logger.debug("unit %r not recognized; falling through", tx.unit)
        return None

    quantity = float(tx.unit_quantity or 0.0)
    factor = UNIT_FACTORS[key]
    emissions = quantity * factor
    if not math.isfinite(emissions):
        notes.append(f"Unit quantity {quantity:g} {key} is out of range; unit-based estimate skipped")
        _logger.debug("unit quantity %g %s overflowed; falling through", quantity, key)
        return None
    return EmissionEstimate(
        emissions_kg=emissions,
        method=Method.UNIT,
        confidence=Confidence.HIGH,
        category=category,
        notes=(*notes, f"Unit factor applied: {key} = {factor} kg CO2e per unit × {quantity:g}"),
        factor=factor,
    )


def _has_authoritative_category(tx: Transaction, category: str) -> bool:
    """True when the category came from the caller or the MCC and has a spend factor."""

    if category not in SPEND_FACTORS:
        return False
    return bool(tx.category and tx.category.strip()) or category_for_mcc(tx.mcc) is not None


def _specialized_tier(
    tx: Transaction, category: str, notes: list[str]
) -> EmissionEstimate | None:
    rule = match_specialized_rule(tx.merchant)
    if rule is None:
        return None
    if category not in SPEND_FACTORS:
        # An unknown category always takes the explicit low-confidence fallback.
        notes.append(f"Specialized rule {rule.name!r} skipped: no factor for category {category!r}")
        return None

    derivation = rule.derive(tx) if rule.derive is not None else None
    if derivation is not None:
        factor = UNIT_FACTORS[derivation.unit_key]
        emissions = derivation.quantity * factor
        if math.isfinite(emissions):
            return EmissionEstimate(
                emissions_kg=emissions,
                method=Method.SPECIALIZED,
                confidence=Confidence.MEDIUM,
                category=category,
                notes=(
                    *notes,
                    derivation.note,
                    f"Unit factor applied: {derivation.unit_key} = {factor} kg CO2e per unit",
                ),
                factor=factor,
            )
        # Treated like a rule without a derivation from here on.
        notes.append(f"Specialized rule {rule.name!r} derived quantity is out of range")
        _logger.debug("specialized rule %r derivation overflowed", rule.name)

    if _has_authoritative_category(tx, category):
        notes.append(
            f"Specialized rule {rule.name!r} has no quantity derivation; "
            f"deferring to the {category!r} spend factor"
        )
        _logger.debug("specialized rule %r deferred to spend tier", rule.name)
        return None

    return EmissionEstimate(
        emissions_kg=tx.amount * FLAT_SPECIALIZED_RATE,
        method=Method.SPECIALIZED,
        confidence=Confidence.LOW,
        category=category,
        notes=(
            *notes,
            f"Specialized rule {rule.name!r} applied with a flat "
            f"{FLAT_SPECIALIZED_RATE} kg CO2e per $ estimate",
        ),
        factor=FLAT_SPECIALIZED_RATE,
    )


def band_confidence(factor: float) -> Confidence:
    """Grade a spend factor: larger, better-studied footprints grade higher."""

    if factor > HIGH_CONFIDENCE_FACTOR:
        return Confidence.HIGH
    if factor > MEDIUM_CONFIDENCE_FACTOR:
        return Confidence.MEDIUM
    return Confidence.LOW


def _spend_tier(tx: Transaction, category: str, notes: list[str]) -> EmissionEstimate:
    factor = SPEND_FACTORS.get(category)
    if factor is None:
        fallback = SPEND_FACTORS[DEFAULT_CATEGORY]
        _logger.debug("no spend factor for %r; using %s fallback", category, DEFAULT_CATEGORY)
        return EmissionEstimate(
            emissions_kg=tx.amount * fallback,
            method=Method.SPEND,
            confidence=Confidence.LOW,
            category=category,
            notes=(
                *notes,
                f"Fallback factor applied: {DEFAULT_CATEGORY} = {fallback} kg CO2e per $ "
                f"(no factor for {category!r})",
            ),
            factor=fallback,
        )

    return EmissionEstimate(
        emissions_kg=tx.amount * factor,
        method=Method.SPEND,
        confidence=band_confidence(factor),
        category=category,
        notes=(*notes, f"Spend factor applied: {category} = {factor} kg CO2e per $"),
        factor=factor,
    )


TIERS: tuple[_Tier, ...] = (_unit_tier, _specialized_tier, _spend_tier)


# ---- Public API --------------------------------------------------------------


def estimate(tx: Transaction) -> EmissionEstimate:
    """Estimate emissions for a single transaction.

    Deterministic and total: the spend tier always produces a result, so the
    cascade cannot come up empty.
    """

    category = resolve_category(tx.merchant, category=tx.category, mcc=tx.mcc)
    notes: list[str] = []
    for tier in TIERS:
        result = tier(tx, category, notes)
        if result is not None:
            return result
    raise AssertionError("spend tier must always produce an estimate")  # pragma: no cover


def _resolve_max_workers(n_items: int, requested: int | None) -> int:
    """Resolve worker count from the argument, then ``CARBON_LEDGER_MAX_WORKERS``.

    Defaults to serial execution. Capped to ``n_items`` and to 32.
    """

    workers = requested
    if workers is None:
        env_val = os.getenv(_MAX_WORKERS_ENV)
        try:
            workers = int(env_val) if env_val else 1
        except ValueError:
            _logger.warning("ignoring non-integer %s=%r", _MAX_WORKERS_ENV, env_val)
            workers = 1
    return max(1, min(workers, n_items, _MAX_WORKERS_CAP))


def estimate_all(
    transactions: Iterable[Transaction],
    *,
    max_workers: int | None = None,
) -> list[EstimatedTransaction]:
    """Estimate a batch of transactions, preserving input order.

    Each estimate depends only on its own transaction and the static factor
    tables, so fanning out over a thread pool yields the same results as the
    serial path.
    """

    items: Sequence[Transaction] = list(transactions)
    workers = _resolve_max_workers(len(items), max_workers)
    if workers <= 1:
        estimates = [estimate(tx) for tx in items]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cl-estimate") as ex:
            estimates = list(ex.map(estimate, items))
    _logger.debug("estimated %d transactions with %d worker(s)", len(items), workers)
    return [EstimatedTransaction(tx, est) for tx, est in zip(items, estimates, strict=True)]


__all__ = [
    "ASSUMED_AIRFARE_PER_MILE",
    "ASSUMED_FUEL_PRICE_PER_GALLON",
    "FLAT_SPECIALIZED_RATE",
    "SPECIALIZED_RULES",
    "TIERS",
    "band_confidence",
    "estimate",
    "estimate_all",
    "match_specialized_rule",
]
