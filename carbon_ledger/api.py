"""Request handlers for the calculation core.

Three entry points mirror the external contracts:

- :func:`calculate`: one transaction in, one
  :class:`~carbon_ledger.models.EmissionEstimate` out.
- :func:`summarize_request`: a transaction set and a trailing window in, a
  :class:`~carbon_ledger.models.WindowSummary` out.
- :func:`score_request`: a transaction history in, an
  :class:`~carbon_ledger.models.EcoScoreResult` out.

Each accepts either the Pydantic request model or a plain mapping (validated
here). ``reference_date`` defaults to today, resolved once per request so the
rest of the pipeline never reads the clock.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from typing import Any

from .aggregate import summarize
from .estimator import estimate, estimate_all
from .logging_setup import get_logger
from .models import (
    CalculationRequest,
    EcoScoreResult,
    EmissionEstimate,
    ScoreRequest,
    SummaryRequest,
    WindowSummary,
    to_transactions,
)
from .scoring import eco_score

_logger = get_logger("carbon_ledger.api")


def _today() -> dt.date:
    return dt.date.today()


def calculate(request: CalculationRequest | Mapping[str, Any]) -> EmissionEstimate:
    """Estimate a single transaction.

    ``country`` is accepted for forward compatibility; the factor tables are
    single-region and ignore it.
    """

    req = (
        request
        if isinstance(request, CalculationRequest)
        else CalculationRequest.model_validate(request)
    )
    return estimate(req.to_transaction(default_date=_today()))


def summarize_request(
    request: SummaryRequest | Mapping[str, Any],
    *,
    max_workers: int | None = None,
) -> WindowSummary:
    req = request if isinstance(request, SummaryRequest) else SummaryRequest.model_validate(request)
    reference_date = req.reference_date or _today()
    return summarize(
        to_transactions(req.transactions),
        reference_date=reference_date,
        window=req.window,
        top_n=req.top_n,
        max_workers=max_workers,
    )


def score_request(
    request: ScoreRequest | Mapping[str, Any],
    *,
    max_workers: int | None = None,
) -> EcoScoreResult:
    req = request if isinstance(request, ScoreRequest) else ScoreRequest.model_validate(request)
    reference_date = req.reference_date or _today()
    estimated = estimate_all(to_transactions(req.transactions), max_workers=max_workers)
    result = eco_score(estimated, reference_date=reference_date)
    _logger.info("eco score %d for %d transactions", result.score, len(estimated))
    return result


__all__ = ["calculate", "score_request", "summarize_request"]
