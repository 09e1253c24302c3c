"""Eco Score: a 1–99 composite sustainability score.

The score blends four 0–100 sub-scores:

================  ======  ====================================================
Sub-score         Weight  Signal
================  ======  ====================================================
``intensity``     0.5     kg CO2e per dollar, inverted over a fixed band
``improvement``   0.3     month-to-date vs the same span of the previous month
``mix``           0.1     emission share of favoured vs penalized categories
``streak``        0.1     consecutive recent days at or under a daily budget
================  ======  ====================================================

The final score is clamped to ``[1, 99]``; the extremes are never shown.
Only history on or before ``reference_date`` is considered, and "today" is
always the explicit ``reference_date`` argument.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Iterable, Sequence

from .aggregate import category_breakdown, daily_series
from .logging_setup import get_logger
from .models import EcoScoreDetails, EcoScoreResult, EstimatedTransaction

# ---- Tunables ----------------------------------------------------------------

NEUTRAL_SCORE: int = 50
NEUTRAL_INTENSITY_SCORE: int = 50
SCORE_FLOOR: int = 1
SCORE_CEILING: int = 99

INTENSITY_WEIGHT: float = 0.5
IMPROVEMENT_WEIGHT: float = 0.3
MIX_WEIGHT: float = 0.1
STREAK_WEIGHT: float = 0.1

# kg CO2e per dollar; intensities outside the band clamp to 100 / 0.
MIN_INTENSITY: float = 0.05
MAX_INTENSITY: float = 0.60

GOOD_CATEGORIES: frozenset[str] = frozenset({"groceries", "utilities", "entertainment"})
BAD_CATEGORIES: frozenset[str] = frozenset({"travel", "fuel", "clothing"})
GOOD_CATEGORY_BONUS: float = 0.10
BAD_CATEGORY_PENALTY: float = 0.15

LOW_EMISSION_DAY_KG: float = 6.0
STREAK_POINTS_PER_DAY: int = 10
STREAK_LOOKBACK_DAYS: int = 30

_logger = get_logger("carbon_ledger.scoring")


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


# ---- Sub-scores --------------------------------------------------------------


def intensity_score(items: Sequence[EstimatedTransaction]) -> int:
    total_spend = sum(it.transaction.amount for it in items)
    if total_spend <= 0:
        return NEUTRAL_INTENSITY_SCORE
    total_kg = sum(it.estimate.emissions_kg for it in items)
    clamped = _clamp(total_kg / total_spend, MIN_INTENSITY, MAX_INTENSITY)
    return _round_half_up((1 - (clamped - MIN_INTENSITY) / (MAX_INTENSITY - MIN_INTENSITY)) * 100)


def month_over_month_improvement(
    items: Iterable[EstimatedTransaction], *, reference_date: dt.date
) -> float:
    """Percent drop in emissions vs the same elapsed span of the previous month.

    This month runs from the 1st through ``reference_date``; the comparison
    span starts on the 1st of the previous month and covers the same number
    of days, cut off at that month's last day. Positive means improvement.
    Returns ``0.0`` when the previous span has no emissions.
    """

    start_this = reference_date.replace(day=1)
    end_prev_month = start_this - dt.timedelta(days=1)
    start_prev = end_prev_month.replace(day=1)
    elapsed = (reference_date - start_this).days
    end_prev = min(start_prev + dt.timedelta(days=elapsed), end_prev_month)

    this_period = 0.0
    last_period = 0.0
    for it in items:
        d = it.transaction.date
        if start_this <= d <= reference_date:
            this_period += it.estimate.emissions_kg
        elif start_prev <= d <= end_prev:
            last_period += it.estimate.emissions_kg

    if last_period == 0:
        return 0.0
    return round((last_period - this_period) / last_period * 100, 2)


def improvement_score(improvement_pct: float) -> int:
    return _round_half_up(_clamp(50 + improvement_pct, 0, 100))


def mix_score(items: Iterable[EstimatedTransaction]) -> int:
    mix = 50.0
    for share in category_breakdown(items):
        if share.category in GOOD_CATEGORIES:
            mix += share.percent_of_total * GOOD_CATEGORY_BONUS
        elif share.category in BAD_CATEGORIES:
            mix -= share.percent_of_total * BAD_CATEGORY_PENALTY
    return _round_half_up(_clamp(mix, 0, 100))


def low_emission_streak(items: Iterable[EstimatedTransaction], *, reference_date: dt.date) -> int:
    """Count consecutive days, walking back from ``reference_date``, under the daily budget."""

    series = daily_series(items, reference_date=reference_date, days=STREAK_LOOKBACK_DAYS)
    streak = 0
    for point in reversed(series):
        if point.total_kg > LOW_EMISSION_DAY_KG:
            break
        streak += 1
    return streak


def streak_score(streak_days: int) -> int:
    return min(100, streak_days * STREAK_POINTS_PER_DAY)


# ---- Composite ---------------------------------------------------------------


def eco_score(
    items: Iterable[EstimatedTransaction], *, reference_date: dt.date
) -> EcoScoreResult:
    """Compute the Eco Score for a transaction history.

    An empty history (after dropping anything dated after ``reference_date``)
    yields the neutral score with all sub-scores at 0.
    """

    history = [it for it in items if it.transaction.date <= reference_date]
    if not history:
        return EcoScoreResult(
            score=NEUTRAL_SCORE,
            details=EcoScoreDetails(intensity=0, improvement=0, mix=0, streak=0),
        )

    details = EcoScoreDetails(
        intensity=intensity_score(history),
        improvement=improvement_score(
            month_over_month_improvement(history, reference_date=reference_date)
        ),
        mix=mix_score(history),
        streak=streak_score(low_emission_streak(history, reference_date=reference_date)),
    )
    weighted = (
        INTENSITY_WEIGHT * details.intensity
        + IMPROVEMENT_WEIGHT * details.improvement
        + MIX_WEIGHT * details.mix
        + STREAK_WEIGHT * details.streak
    )
    score = int(_clamp(_round_half_up(weighted), SCORE_FLOOR, SCORE_CEILING))
    _logger.debug("eco score %d from %s over %d transactions", score, details, len(history))
    return EcoScoreResult(score=score, details=details)


__all__ = [
    "eco_score",
    "improvement_score",
    "intensity_score",
    "low_emission_streak",
    "mix_score",
    "month_over_month_improvement",
    "streak_score",
]
