"""Data models for ``carbon_ledger``.

Two families live here:

- Core records (frozen ``dataclass`` with slots): :class:`Transaction`,
  :class:`EmissionEstimate` and the aggregation/score results. They are
  created fresh on every call and never mutated.
- Boundary DTOs (Pydantic): :class:`TransactionIn` and the request envelopes
  used by :mod:`carbon_ledger.api`. These reject invalid *required* data
  (negative or non-finite amounts, no merchant and no category, unparseable
  dates) before anything reaches the calculation core.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Method(StrEnum):
    """Estimation tier that produced an :class:`EmissionEstimate`."""

    UNIT = "unit"
    SPECIALIZED = "specialized"
    SPEND = "spend"


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Confidence levels each method is allowed to emit.
ALLOWED_CONFIDENCE: Mapping[Method, frozenset[Confidence]] = {
    Method.UNIT: frozenset({Confidence.HIGH}),
    Method.SPECIALIZED: frozenset({Confidence.MEDIUM, Confidence.LOW}),
    Method.SPEND: frozenset({Confidence.HIGH, Confidence.MEDIUM, Confidence.LOW}),
}


# ---------------------------------------------------------------------------
# Core records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """A single spend record as handed to the calculation core.

    The core assumes ``amount`` is finite and non-negative and that at least
    one of ``merchant``/``category`` is usable; validation happens at the
    boundary (:class:`TransactionIn`).

    ``unit`` and ``unit_quantity`` only count together: either one alone, or
    a non-positive quantity, is treated as absent unit data.
    """

    amount: float
    merchant: str
    date: dt.date
    category: str | None = None
    mcc: str | None = None
    unit: str | None = None
    unit_quantity: float | None = None
    distance_km: float | None = None
    id: str | None = None
    country: str | None = None

    @property
    def has_unit_data(self) -> bool:
        q = self.unit_quantity
        if not self.unit or not self.unit.strip() or q is None:
            return False
        return math.isfinite(q) and q > 0


@dataclass(frozen=True, slots=True)
class EmissionEstimate:
    """Per-transaction emission estimate.

    ``notes`` documents which factor, assumption, or derived quantity was
    applied (including notes from tiers that fell through). It is for audit
    only and never feeds back into computation.
    """

    emissions_kg: float
    method: Method
    confidence: Confidence
    category: str
    notes: tuple[str, ...]
    factor: float | None = None

    def __post_init__(self) -> None:
        if self.confidence not in ALLOWED_CONFIDENCE[self.method]:
            raise ValueError(
                f"confidence {self.confidence.value!r} is not allowed for method "
                f"{self.method.value!r}"
            )
        if not (math.isfinite(self.emissions_kg) and self.emissions_kg >= 0):
            raise ValueError(f"emissions_kg must be finite and >= 0, got {self.emissions_kg!r}")
        if not self.category:
            raise ValueError("category must be non-empty")
        if not self.notes:
            raise ValueError("notes must contain at least one entry")

    def to_dict(self) -> dict[str, Any]:
        return {
            "emissionsKg": self.emissions_kg,
            "method": self.method.value,
            "confidence": self.confidence.value,
            "category": self.category,
            "notes": list(self.notes),
            "factor": self.factor,
        }


@dataclass(frozen=True, slots=True)
class EstimatedTransaction:
    """A transaction paired with its estimate (the aggregation/score input)."""

    transaction: Transaction
    estimate: EmissionEstimate

    def to_dict(self) -> dict[str, Any]:
        tx = self.transaction
        return {
            "id": tx.id,
            "date": tx.date.isoformat(),
            "merchant": tx.merchant,
            "amount": tx.amount,
            **self.estimate.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class CategoryShare:
    category: str
    total_kg: float
    percent_of_total: float


@dataclass(frozen=True, slots=True)
class MerchantTotal:
    merchant: str
    total_kg: float


@dataclass(frozen=True, slots=True)
class TrendPoint:
    date: dt.date
    total_kg: float


@dataclass(frozen=True, slots=True)
class EmissionSummary:
    """Aggregate view over a collection of estimated transactions.

    Distributions always carry every enum member, zero counts included, so
    callers can render them without key checks.
    """

    total_kg: float
    count: int
    category_breakdown: tuple[CategoryShare, ...]
    top_merchants: tuple[MerchantTotal, ...]
    trend: tuple[TrendPoint, ...]
    confidence_distribution: Mapping[Confidence, int]
    method_distribution: Mapping[Method, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalKg": self.total_kg,
            "count": self.count,
            "categoryBreakdown": [
                {
                    "category": c.category,
                    "totalKg": c.total_kg,
                    "percentOfTotal": c.percent_of_total,
                }
                for c in self.category_breakdown
            ],
            "topMerchants": [
                {"merchant": m.merchant, "totalKg": m.total_kg} for m in self.top_merchants
            ],
            "trend": [{"date": p.date.isoformat(), "totalKg": p.total_kg} for p in self.trend],
            "confidenceDistribution": {
                k.value: v for k, v in self.confidence_distribution.items()
            },
            "methodDistribution": {k.value: v for k, v in self.method_distribution.items()},
        }


@dataclass(frozen=True, slots=True)
class WindowSummary:
    """An :class:`EmissionSummary` scoped to a trailing window."""

    window: str
    window_days: int
    reference_date: dt.date
    summary: EmissionSummary
    transaction_count: int
    average_per_transaction: float
    daily_average_kg: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "window": self.window,
            "windowDays": self.window_days,
            "referenceDate": self.reference_date.isoformat(),
            **self.summary.to_dict(),
            "transactionCount": self.transaction_count,
            "averagePerTransaction": self.average_per_transaction,
            "dailyAverageKg": self.daily_average_kg,
        }


@dataclass(frozen=True, slots=True)
class EcoScoreDetails:
    intensity: int
    improvement: int
    mix: int
    streak: int


@dataclass(frozen=True, slots=True)
class EcoScoreResult:
    """Composite score in ``[1, 99]`` and its four 0–100 sub-scores."""

    score: int
    details: EcoScoreDetails

    def to_dict(self) -> dict[str, Any]:
        d = self.details
        return {
            "score": self.score,
            "details": {
                "intensity": d.intensity,
                "improvement": d.improvement,
                "mix": d.mix,
                "streak": d.streak,
            },
        }


# ---------------------------------------------------------------------------
# Boundary DTOs (Pydantic)
# ---------------------------------------------------------------------------


def _coerce_date(value: Any) -> Any:
    # Accept full ISO timestamps ("2025-08-10T10:30:00Z") as well as days.
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        try:
            return dt.datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return value
    return value


class TransactionIn(BaseModel):
    """Validated inbound transaction.

    Field names accept both snake_case and camelCase (``unit_quantity`` /
    ``unitQuantity``). Unknown keys (e.g. ``currency``) are ignored.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str | None = None
    amount: float
    merchant: str | None = None
    category: str | None = None
    mcc: str | None = None
    date: dt.date
    unit: str | None = None
    unit_quantity: float | None = None
    distance_km: float | None = None
    country: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v: Any) -> Any:
        return _coerce_date(v)

    @field_validator("id", "mcc", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("mcc", mode="after")
    @classmethod
    def _mcc_four_digits(cls, v: str | None) -> str | None:
        # Malformed optional codes count as absent rather than failing the record.
        if v is None:
            return None
        v = v.strip()
        if v.isdigit() and len(v) <= 4:
            return v.zfill(4)
        return None

    @field_validator("merchant", "category", "unit", "mcc", "country", mode="after")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v

    @field_validator("amount")
    @classmethod
    def _amount_finite_non_negative(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("amount must be a finite number")
        if v < 0:
            raise ValueError("amount must be non-negative")
        return v

    @model_validator(mode="after")
    def _merchant_or_category(self) -> TransactionIn:
        if self.merchant is None and self.category is None:
            raise ValueError("either merchant or category is required")
        return self

    def to_transaction(self) -> Transaction:
        return Transaction(
            amount=self.amount,
            merchant=self.merchant or "",
            date=self.date,
            category=self.category,
            mcc=self.mcc,
            unit=self.unit,
            unit_quantity=self.unit_quantity,
            distance_km=self.distance_km,
            id=self.id,
            country=self.country,
        )


class CalculationRequest(TransactionIn):
    """Single-transaction calculation request; ``date`` is optional here."""

    date: dt.date | None = None  # type: ignore[assignment]

    def to_transaction(self, *, default_date: dt.date | None = None) -> Transaction:  # type: ignore[override]
        return Transaction(
            amount=self.amount,
            merchant=self.merchant or "",
            date=self.date or default_date or dt.date.today(),
            category=self.category,
            mcc=self.mcc,
            unit=self.unit,
            unit_quantity=self.unit_quantity,
            distance_km=self.distance_km,
            id=self.id,
            country=self.country,
        )


Window = Literal["week", "month", "quarter"]


class SummaryRequest(BaseModel):
    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    transactions: list[TransactionIn]
    window: Window = "week"
    reference_date: dt.date | None = None
    top_n: int | None = Field(default=None, ge=1)


class ScoreRequest(BaseModel):
    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )

    transactions: list[TransactionIn]
    reference_date: dt.date | None = None


def to_transactions(items: Sequence[TransactionIn]) -> list[Transaction]:
    return [item.to_transaction() for item in items]


__all__ = [
    "ALLOWED_CONFIDENCE",
    "CalculationRequest",
    "CategoryShare",
    "Confidence",
    "EcoScoreDetails",
    "EcoScoreResult",
    "EmissionEstimate",
    "EmissionSummary",
    "EstimatedTransaction",
    "MerchantTotal",
    "Method",
    "ScoreRequest",
    "SummaryRequest",
    "Transaction",
    "TransactionIn",
    "TrendPoint",
    "Window",
    "WindowSummary",
    "to_transactions",
]
