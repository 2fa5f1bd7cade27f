"""
Weighted similarity between two transactions.

Scores are on a 0-100 scale. Merchant and description matches use a
normalized Levenshtein ratio so that "NETFLIX.COM" and "Netflix com" line up.
"""

import re
from typing import List, Optional

from rapidfuzz.distance import Levenshtein

from recurwise.schemas.pattern import SimilarityScore, SimilarityWeights, TransactionData

DEFAULT_WEIGHTS = SimilarityWeights()

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_merchant(value: Optional[str]) -> str:
    if not value:
        return ""
    cleaned = _NON_ALNUM.sub("", value.lower().strip())
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_description(value: Optional[str]) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.lower().strip())


def string_similarity(a: str, b: str) -> float:
    """Levenshtein similarity of two already-normalized strings, 0-100."""
    if not a or not b:
        return 0.0
    if a == b:
        return 100.0

    max_len = max(len(a), len(b))
    distance = Levenshtein.distance(a, b)
    score = 100.0 * (max_len - distance) / max_len
    return max(0.0, min(100.0, score))


def category_match(t1: TransactionData, t2: TransactionData) -> float:
    if t1.category_id and t2.category_id and t1.category_id == t2.category_id:
        return 100.0
    return 0.0


def amount_similarity(a1: float, a2: float) -> float:
    """Relative closeness of two amounts, sign ignored."""
    abs1, abs2 = abs(a1), abs(a2)
    if abs1 == 0 or abs2 == 0:
        return 0.0
    diff = abs(abs1 - abs2)
    return max(0.0, 100.0 - 100.0 * diff / max(abs1, abs2))


def score(
    t1: TransactionData,
    t2: TransactionData,
    weights: SimilarityWeights = DEFAULT_WEIGHTS
) -> SimilarityScore:
    """Compare two transactions and return the per-signal and weighted scores."""
    cat = category_match(t1, t2)
    merchant = string_similarity(
        normalize_merchant(t1.merchant_name), normalize_merchant(t2.merchant_name)
    )
    description = string_similarity(
        normalize_description(t1.description), normalize_description(t2.description)
    )
    amount = amount_similarity(t1.amount, t2.amount)

    total = (
        cat * weights.category
        + merchant * weights.merchant
        + description * weights.description
        + amount * weights.amount
    )

    return SimilarityScore(
        category_match=cat,
        merchant_match=merchant,
        description_match=description,
        amount_similarity=amount,
        total=round(total, 2),
    )


def group_similarity(
    transaction: TransactionData,
    members: List[TransactionData],
    weights: SimilarityWeights = DEFAULT_WEIGHTS
) -> float:
    """Average total similarity of a transaction against group members."""
    if not members:
        return 0.0
    totals = [score(transaction, member, weights).total for member in members]
    return round(sum(totals) / len(totals), 2)
