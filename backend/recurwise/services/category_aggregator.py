"""
Merges patterns that share a category into one time-weighted figure, and
compares pattern amounts against the category's long-run monthly average.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional

from recurwise.config import settings
from recurwise.models.suggestion import ExpenseType
from recurwise.schemas.classification import ClassificationResult
from recurwise.schemas.pattern import DetectedPattern
from recurwise.schemas.suggestion import CategoryAggregation, DiscrepancyResult

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30.44


def _rank_key(pattern: DetectedPattern, classifications: Dict[str, ClassificationResult]):
    classification = classifications.get(pattern.group.id)
    classification_confidence = classification.confidence if classification else 0
    return (-pattern.confidence.overall, -classification_confidence, pattern.group.id)


def rank_patterns(
    patterns: List[DetectedPattern],
    classifications: Dict[str, ClassificationResult]
) -> List[DetectedPattern]:
    """Primary pattern first: highest pattern confidence, then classification confidence, then id."""
    return sorted(patterns, key=lambda p: _rank_key(p, classifications))


def aggregate_category(
    patterns: List[DetectedPattern],
    classifications: Dict[str, ClassificationResult]
) -> CategoryAggregation:
    ranked = rank_patterns(patterns, classifications)
    primary = ranked[0]
    primary_classification = classifications.get(primary.group.id)

    transactions = [t for p in ranked for t in p.group.transactions]
    dates = [t.occurred_on for t in transactions]
    first, last = min(dates), max(dates)
    total = sum(abs(t.amount) for t in transactions)

    span_months = max(1.0, (last - first).days / DAYS_PER_MONTH)

    type_counts = Counter(p.frequency.type for p in ranked)
    top_count = max(type_counts.values())
    frequency_type = next(p.frequency.type for p in ranked if type_counts[p.frequency.type] == top_count)

    merchants: List[str] = []
    for pattern in ranked:
        name = pattern.group.merchant_name
        if name and name not in merchants:
            merchants.append(name)

    is_essential = any(
        classifications[p.group.id].is_essential
        for p in ranked if p.group.id in classifications
    )

    average_confidence = round(sum(p.confidence.overall for p in ranked) / len(ranked))

    return CategoryAggregation(
        category_id=primary.group.category_id,
        category_name=primary.group.category_name,
        total_amount=round(total, 2),
        transaction_count=len(transactions),
        first_occurrence=first,
        last_occurrence=last,
        span_months=round(span_months, 2),
        weighted_monthly_average=round(total / span_months, 2),
        frequency_type=frequency_type,
        merchants=merchants,
        expense_type=(
            primary_classification.expense_type if primary_classification else ExpenseType.other_fixed
        ),
        is_essential=is_essential,
        average_confidence=average_confidence,
        source_patterns=ranked,
        representative_description=primary.group.representative_description,
    )


def aggregate(
    patterns: List[DetectedPattern],
    classifications: List[ClassificationResult]
) -> List[CategoryAggregation]:
    """
    One aggregation per category id present in the patterns.

    Patterns without a category are left out; they cannot be compared
    against a category average.
    """
    by_id = {c.pattern_id: c for c in classifications}

    by_category: Dict[str, List[DetectedPattern]] = {}
    for pattern in patterns:
        if pattern.group.category_id:
            by_category.setdefault(pattern.group.category_id, []).append(pattern)

    aggregations = [aggregate_category(group, by_id) for group in by_category.values()]
    aggregations.sort(key=lambda a: (-a.weighted_monthly_average, a.category_id))

    logger.info(
        f"Aggregated {sum(len(g) for g in by_category.values())} patterns "
        f"into {len(aggregations)} categories"
    )
    return aggregations


def check_discrepancy(
    pattern_monthly: float,
    category_average: float,
    threshold: Optional[float] = None,
    cap: Optional[float] = None
) -> DiscrepancyResult:
    """Flag a pattern whose monthly amount strays from the category's monthly average."""
    threshold = settings.discrepancy_threshold if threshold is None else threshold
    cap = settings.discrepancy_cap if cap is None else cap

    if category_average == 0:
        return DiscrepancyResult(has_discrepancy=False)

    difference = abs(pattern_monthly - category_average)
    percentage = min(round(difference / category_average * 100, 2), cap)

    if percentage <= threshold:
        return DiscrepancyResult(
            has_discrepancy=False,
            pattern_amount=pattern_monthly,
            category_average=category_average,
            discrepancy_percentage=percentage,
        )

    if pattern_monthly < category_average:
        message = (
            f"Pattern suggests €{pattern_monthly:.2f}/month, but category average is "
            f"€{category_average:.2f}/month. There may be additional variable expenses "
            f"or transactions to recategorize."
        )
    else:
        message = (
            f"Pattern suggests €{pattern_monthly:.2f}/month, but category average is only "
            f"€{category_average:.2f}/month. The pattern may include one-time expenses "
            f"or transactions that should be in different categories."
        )

    logger.info(
        f"Discrepancy detected: pattern €{pattern_monthly} vs average "
        f"€{category_average} ({percentage}%)"
    )
    return DiscrepancyResult(
        has_discrepancy=True,
        pattern_amount=pattern_monthly,
        category_average=category_average,
        discrepancy_percentage=percentage,
        message=message,
    )
