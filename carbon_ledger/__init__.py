"""Public interface for the ``carbon_ledger`` package.

Re-exports the calculation API and public models as the stable import
surface. No runtime logic lives here.
"""

from .aggregate import aggregate, summarize
from .api import calculate, score_request, summarize_request
from .classifier import classify, normalize_merchant, resolve_category
from .estimator import estimate, estimate_all
from .models import (
    CalculationRequest,
    CategoryShare,
    Confidence,
    EcoScoreDetails,
    EcoScoreResult,
    EmissionEstimate,
    EmissionSummary,
    EstimatedTransaction,
    MerchantTotal,
    Method,
    ScoreRequest,
    SummaryRequest,
    Transaction,
    TransactionIn,
    TrendPoint,
    WindowSummary,
)
from .scoring import eco_score
from .source_cache import CachedTransactionSet, TransactionSetCache

__all__ = [
    # API
    "aggregate",
    "calculate",
    "classify",
    "eco_score",
    "estimate",
    "estimate_all",
    "normalize_merchant",
    "resolve_category",
    "score_request",
    "summarize",
    "summarize_request",
    # Models / types
    "CachedTransactionSet",
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
    "TransactionSetCache",
    "TrendPoint",
    "WindowSummary",
]
