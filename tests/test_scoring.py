from __future__ import annotations

import datetime as dt

import pytest

from carbon_ledger.estimator import estimate_all
from carbon_ledger.scoring import (
    eco_score,
    improvement_score,
    intensity_score,
    low_emission_streak,
    mix_score,
    month_over_month_improvement,
    streak_score,
)

REF = dt.date(2025, 8, 10)


def _daily(make_tx, days: int, *, amount: float = 10.0, merchant: str = "Corner Shop", **kw):
    """One transaction per day for ``days`` days ending at ``REF``."""

    return estimate_all(
        [make_tx(amount, merchant, REF - dt.timedelta(days=i), **kw) for i in range(days)]
    )


# ---- Composite ---------------------------------------------------------------


def test_empty_history_is_neutral():
    result = eco_score([], reference_date=REF)

    assert result.score == 50
    assert result.to_dict()["details"] == {"intensity": 0, "improvement": 0, "mix": 0, "streak": 0}


def test_future_history_is_ignored(make_tx):
    items = estimate_all([make_tx(45.50, "Shell", REF + dt.timedelta(days=3))])
    assert eco_score(items, reference_date=REF).score == 50


def test_steady_low_emission_history(make_tx):
    result = eco_score(_daily(make_tx, 60), reference_date=REF)

    assert result.details.intensity == 97
    assert result.details.improvement == 50
    assert result.details.mix == 50
    assert result.details.streak == 100
    assert 78 <= result.score <= 79


@pytest.mark.parametrize(
    "build",
    [
        lambda make_tx: _daily(make_tx, 90, amount=10_000.0, merchant="Shell"),
        lambda make_tx: _daily(make_tx, 1, amount=0.01, category="entertainment"),
        lambda make_tx: _daily(make_tx, 45, amount=0.0),
        lambda make_tx: _daily(make_tx, 30, amount=500.0, merchant="Delta"),
    ],
)
def test_score_stays_within_bounds(make_tx, build):
    result = eco_score(build(make_tx), reference_date=REF)

    assert 1 <= result.score <= 99
    for sub in (result.details.intensity, result.details.improvement, result.details.mix):
        assert 0 <= sub <= 100
    assert 0 <= result.details.streak <= 100


def test_score_is_deterministic(make_tx):
    items = _daily(make_tx, 40, merchant="Shell")
    assert eco_score(items, reference_date=REF) == eco_score(items, reference_date=REF)


# ---- Sub-scores --------------------------------------------------------------


def test_intensity_score(make_tx):
    assert intensity_score(_daily(make_tx, 3)) == 97
    assert intensity_score(_daily(make_tx, 3, category="fuel")) == 60
    assert intensity_score(_daily(make_tx, 3, amount=0.0)) == 50


def test_month_over_month_improvement(make_tx):
    july = make_tx(100.0, "Corner Shop", dt.date(2025, 7, 5))
    august = make_tx(50.0, "Corner Shop", dt.date(2025, 8, 5))
    late_july = make_tx(1_000.0, "Corner Shop", dt.date(2025, 7, 20))

    better = estimate_all([july, august, late_july])
    assert month_over_month_improvement(better, reference_date=REF) == pytest.approx(50.0)

    worse = estimate_all([august, make_tx(25.0, "Corner Shop", dt.date(2025, 7, 5))])
    assert month_over_month_improvement(worse, reference_date=REF) == pytest.approx(-100.0)

    assert month_over_month_improvement(estimate_all([august]), reference_date=REF) == 0.0


def test_improvement_window_is_capped_at_previous_month_end(make_tx):
    feb = make_tx(100.0, "Corner Shop", dt.date(2025, 2, 28))
    items = estimate_all([feb])

    assert month_over_month_improvement(items, reference_date=dt.date(2025, 3, 31)) == 100.0


def test_improvement_score_clamps():
    assert improvement_score(0.0) == 50
    assert improvement_score(50.0) == 100
    assert improvement_score(120.0) == 100
    assert improvement_score(-100.0) == 0


def test_mix_score(make_tx):
    assert mix_score(_daily(make_tx, 2, category="groceries")) == 60
    assert mix_score(_daily(make_tx, 2, category="fuel")) == 35
    assert mix_score(_daily(make_tx, 2)) == 50
    assert mix_score([]) == 50


def test_low_emission_streak(make_tx):
    quiet = _daily(make_tx, 60)
    assert low_emission_streak(quiet, reference_date=REF) == 30

    spike = quiet + estimate_all([make_tx(45.50, "Shell", REF - dt.timedelta(days=4))])
    assert low_emission_streak(spike, reference_date=REF) == 4

    today_spike = quiet + estimate_all([make_tx(45.50, "Shell", REF)])
    assert low_emission_streak(today_spike, reference_date=REF) == 0


def test_streak_score_saturates():
    assert streak_score(0) == 0
    assert streak_score(4) == 40
    assert streak_score(30) == 100


def test_score_result_to_dict(make_tx):
    d = eco_score(_daily(make_tx, 5), reference_date=REF).to_dict()

    assert set(d) == {"score", "details"}
    assert set(d["details"]) == {"intensity", "improvement", "mix", "streak"}
