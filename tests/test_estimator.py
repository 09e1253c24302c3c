from __future__ import annotations

import datetime as dt
import math

import pytest

from carbon_ledger.estimator import (
    band_confidence,
    estimate,
    estimate_all,
    match_specialized_rule,
)
from carbon_ledger.factors import UNIT_ALIASES, UNIT_FACTORS
from carbon_ledger.models import Confidence, EmissionEstimate, Method

# ---- Unit tier ---------------------------------------------------------------


def test_unit_data_wins_over_every_other_tier(make_tx):
    est = estimate(make_tx(60.0, "Shell", unit="gallons", unit_quantity=15))

    assert est.method is Method.UNIT
    assert est.confidence is Confidence.HIGH
    assert est.category == "fuel"
    assert est.factor == pytest.approx(8.89)
    assert est.emissions_kg == pytest.approx(133.35)


@pytest.mark.parametrize(
    ("unit", "key"),
    [(key, key) for key in UNIT_FACTORS] + sorted(UNIT_ALIASES.items()),
)
def test_every_recognized_unit_is_unit_high(make_tx, unit, key):
    est = estimate(make_tx(20.0, "Corner Shop", unit=unit, unit_quantity=2))

    assert est.method is Method.UNIT
    assert est.confidence is Confidence.HIGH
    assert est.factor == UNIT_FACTORS[key]
    assert est.emissions_kg == pytest.approx(2 * UNIT_FACTORS[key])


def test_overflowing_unit_quantity_falls_through(make_tx):
    est = estimate(make_tx(10.0, "Butcher", unit="kg_beef", unit_quantity=1e307))

    assert est.method is Method.SPEND
    assert math.isfinite(est.emissions_kg)
    assert "out of range" in est.notes[0]


def test_unknown_unit_falls_through_with_a_note(make_tx):
    est = estimate(make_tx(20.0, "Corner Shop", unit="furlong", unit_quantity=3))

    assert est.method is Method.SPEND
    assert est.emissions_kg == pytest.approx(1.3)
    assert est.notes[0].startswith("Unit 'furlong' not recognized")
    assert len(est.notes) == 2


@pytest.mark.parametrize("quantity", [0, -4, None, math.nan])
def test_unusable_quantity_counts_as_no_unit_data(make_tx, quantity):
    est = estimate(make_tx(20.0, "Corner Shop", unit="kwh", unit_quantity=quantity))

    assert est.method is Method.SPEND
    assert len(est.notes) == 1


# ---- Specialized tier --------------------------------------------------------


def test_fuel_retailer_derives_gallons(make_tx):
    est = estimate(make_tx(45.50, "Shell Gas Station"))

    assert est.method is Method.SPECIALIZED
    assert est.confidence is Confidence.MEDIUM
    assert est.category == "fuel"
    assert est.emissions_kg == pytest.approx(115.57)
    assert any("13.0 gallons" in note for note in est.notes)


def test_airline_derives_passenger_miles(make_tx):
    est = estimate(make_tx(300.0, "Delta Air Lines"))

    assert est.method is Method.SPECIALIZED
    assert est.confidence is Confidence.MEDIUM
    assert est.category == "travel"
    assert est.emissions_kg == pytest.approx(2000 * 0.255)


def test_rideshare_uses_reported_distance(make_tx):
    est = estimate(make_tx(25.0, "Uber Trip", distance_km=10))

    assert est.method is Method.SPECIALIZED
    assert est.confidence is Confidence.MEDIUM
    assert est.emissions_kg == pytest.approx(10 * 0.621371 * 0.4)


def test_rideshare_without_distance_takes_flat_rate(make_tx):
    est = estimate(make_tx(25.0, "Lyft"))

    assert est.method is Method.SPECIALIZED
    assert est.confidence is Confidence.LOW
    assert est.emissions_kg == pytest.approx(2.5)
    assert est.factor == pytest.approx(0.1)


def test_chain_without_derivation_defers_to_caller_category(make_tx):
    est = estimate(make_tx(89.20, "Whole Foods", category="groceries"))

    assert est.method is Method.SPEND
    assert est.confidence is Confidence.MEDIUM
    assert est.category == "groceries"
    assert est.emissions_kg == pytest.approx(8.474)
    assert any("deferring" in note for note in est.notes)


def test_chain_without_derivation_defers_to_mcc_category(make_tx):
    est = estimate(make_tx(12.0, "Starbucks", mcc="5814"))

    assert est.method is Method.SPEND
    assert est.category == "dining"
    assert est.confidence is Confidence.HIGH


def test_chain_without_category_signal_takes_flat_rate(make_tx):
    est = estimate(make_tx(89.20, "Whole Foods Market"))

    assert est.method is Method.SPECIALIZED
    assert est.confidence is Confidence.LOW
    assert est.category == "groceries"
    assert est.emissions_kg == pytest.approx(8.92)


def test_overflowing_derivation_takes_flat_rate(make_tx):
    est = estimate(make_tx(1e308, "Shell"))

    assert est.method is Method.SPECIALIZED
    assert est.confidence is Confidence.LOW
    assert est.emissions_kg == pytest.approx(1e307)
    assert any("out of range" in note for note in est.notes)


def test_overflowing_derivation_defers_to_caller_category(make_tx):
    est = estimate(make_tx(1e308, "Delta", category="travel"))

    assert est.method is Method.SPEND
    assert est.confidence is Confidence.HIGH
    assert est.emissions_kg == pytest.approx(1.8e307)


def test_match_specialized_rule():
    assert match_specialized_rule("SHELL OIL 5741").name == "fuel retailer"
    assert match_specialized_rule("Corner Shop") is None
    assert match_specialized_rule(None) is None


# ---- Spend tier --------------------------------------------------------------


@pytest.mark.parametrize(
    ("factor", "expected"),
    [
        (0.27, Confidence.HIGH),
        (0.15, Confidence.MEDIUM),
        (0.095, Confidence.MEDIUM),
        (0.08, Confidence.LOW),
        (0.025, Confidence.LOW),
    ],
)
def test_band_confidence(factor, expected):
    assert band_confidence(factor) is expected


def test_caller_category_is_normalized(make_tx):
    est = estimate(make_tx(10.0, "Corner Shop", category=" Dining "))

    assert est.method is Method.SPEND
    assert est.category == "dining"
    assert est.confidence is Confidence.HIGH
    assert est.emissions_kg == pytest.approx(1.7)


def test_mcc_category_feeds_spend_tier(make_tx):
    est = estimate(make_tx(10.0, "Corner Shop", mcc="5541"))

    assert est.category == "fuel"
    assert est.emissions_kg == pytest.approx(2.7)


def test_unknown_category_uses_retail_factor_at_low(make_tx):
    est = estimate(make_tx(100.0, "Corner Shop", category="spaceflight"))

    assert est.method is Method.SPEND
    assert est.confidence is Confidence.LOW
    assert est.category == "spaceflight"
    assert est.factor == pytest.approx(0.065)
    assert est.emissions_kg == pytest.approx(6.5)


def test_unknown_category_skips_specialized_rule(make_tx):
    est = estimate(make_tx(45.50, "Shell", category="spaceflight"))

    assert est.method is Method.SPEND
    assert est.confidence is Confidence.LOW
    assert any("skipped" in note for note in est.notes)


def test_zero_amount_estimates_zero(make_tx):
    est = estimate(make_tx(0.0, "Corner Shop"))

    assert est.emissions_kg == 0.0
    assert est.notes


def test_estimate_is_deterministic(make_tx):
    tx = make_tx(45.50, "Shell")
    assert estimate(tx) == estimate(tx)


# ---- Estimate record ---------------------------------------------------------


def test_estimate_rejects_disallowed_confidence():
    with pytest.raises(ValueError, match="not allowed"):
        EmissionEstimate(1.0, Method.UNIT, Confidence.LOW, "fuel", ("note",))
    with pytest.raises(ValueError, match="not allowed"):
        EmissionEstimate(1.0, Method.SPECIALIZED, Confidence.HIGH, "fuel", ("note",))


@pytest.mark.parametrize("kg", [-1.0, math.inf, math.nan])
def test_estimate_rejects_bad_emissions(kg):
    with pytest.raises(ValueError, match="emissions_kg"):
        EmissionEstimate(kg, Method.SPEND, Confidence.LOW, "retail", ("note",))


def test_estimate_requires_notes_and_category():
    with pytest.raises(ValueError):
        EmissionEstimate(1.0, Method.SPEND, Confidence.LOW, "retail", ())
    with pytest.raises(ValueError):
        EmissionEstimate(1.0, Method.SPEND, Confidence.LOW, "", ("note",))


# ---- Batch -------------------------------------------------------------------


def _batch(make_tx):
    day = dt.date(2025, 8, 1)
    merchants = ["Shell", "Corner Shop", "Whole Foods", "Uber", "Delta", "Nike"]
    return [
        make_tx(10.0 + i, merchants[i % len(merchants)], day + dt.timedelta(days=i % 9), id=f"t{i}")
        for i in range(40)
    ]


def test_parallel_batch_matches_serial_and_keeps_order(make_tx):
    txs = _batch(make_tx)

    serial = estimate_all(txs, max_workers=1)
    parallel = estimate_all(txs, max_workers=4)

    assert [it.transaction.id for it in parallel] == [tx.id for tx in txs]
    assert parallel == serial


def test_batch_workers_from_env(make_tx, monkeypatch: pytest.MonkeyPatch):
    txs = _batch(make_tx)
    monkeypatch.setenv("CARBON_LEDGER_MAX_WORKERS", "3")
    from_env = estimate_all(txs)
    monkeypatch.setenv("CARBON_LEDGER_MAX_WORKERS", "not-a-number")
    fallback = estimate_all(txs)

    assert from_env == fallback == estimate_all(txs, max_workers=1)


def test_empty_batch():
    assert estimate_all([]) == []
