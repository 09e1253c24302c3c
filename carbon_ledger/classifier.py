"""Merchant classification: resolve a transaction to a spend category.

Resolution order for :func:`resolve_category`:

1. a category already supplied by the caller (trimmed, lower-cased);
2. the MCC table, when an MCC is present and known;
3. the first merchant-substring entry contained in the normalized name;
4. :data:`~carbon_ledger.factors.DEFAULT_CATEGORY`.

Matching against the substring table is first-match in table order, not
best-match. The table order is the tie-break.
"""

from __future__ import annotations

import re
import unicodedata

from .factors import DEFAULT_CATEGORY, MCC_CATEGORIES, MERCHANT_CATEGORIES
from .logging_setup import get_logger

_PUNCT_RE = re.compile(r"[^\w\s]")

_logger = get_logger("carbon_ledger.classifier")


def normalize_merchant(name: str | None) -> str:
    """Lower-case, strip punctuation, and collapse whitespace.

    ``"  McDonald's  #1234 "`` → ``"mcdonalds 1234"``. ``None`` and blank
    input normalize to ``""``.
    """

    if not name:
        return ""
    s = unicodedata.normalize("NFKC", str(name)).casefold()
    s = _PUNCT_RE.sub("", s)
    return " ".join(s.split())


def classify(merchant_name: str | None) -> str:
    """Return the category of the first substring entry found in the name."""

    normalized = normalize_merchant(merchant_name)
    if normalized:
        for key, category in MERCHANT_CATEGORIES:
            if key in normalized:
                return category
    return DEFAULT_CATEGORY


def category_for_mcc(mcc: str | None) -> str | None:
    if not mcc:
        return None
    return MCC_CATEGORIES.get(mcc.strip())


def resolve_category(
    merchant: str | None,
    *,
    category: str | None = None,
    mcc: str | None = None,
) -> str:
    """Resolve the category for a transaction; never returns an empty string."""

    if category and category.strip():
        return category.strip().lower()

    by_mcc = category_for_mcc(mcc)
    if by_mcc is not None:
        _logger.debug("category %r resolved from MCC %s", by_mcc, mcc)
        return by_mcc

    return classify(merchant)


__all__ = ["category_for_mcc", "classify", "normalize_merchant", "resolve_category"]
