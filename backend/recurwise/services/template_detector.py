"""
Recommends which budgeting template fits a detected pattern.

Template ids match the plan templates offered when a suggestion is
approved: monthly-bill, irregular-payments, monthly-budget, seasonal-goal,
yearly-budget.
"""

import math
from collections import Counter
from typing import Any, Dict, List, Optional

from recurwise.models.suggestion import FrequencyType
from recurwise.schemas.pattern import DetectedPattern, TransactionData
from recurwise.schemas.suggestion import TemplateDetection

NON_MONTHLY_SCHEDULES = {
    FrequencyType.quarterly: "Quarterly",
    FrequencyType.semiannual: "Semi-annual",
    FrequencyType.annual: "Annual",
}


def _variance(values: List[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def amount_variation(transactions: List[TransactionData]) -> float:
    """Coefficient of variation of absolute amounts: 0 means identical amounts."""
    amounts = [abs(t.amount) for t in transactions]
    mean = sum(amounts) / len(amounts)
    if mean <= 0:
        return 0.0
    return math.sqrt(_variance(amounts)) / mean


def transactions_per_month(pattern: DetectedPattern) -> float:
    first, last = pattern.first_occurrence, pattern.last_occurrence
    span = max(1, (last.year - first.year) * 12 + (last.month - first.month) + 1)
    return len(pattern.group.transactions) / span


def infer_due_day(transactions: List[TransactionData]) -> Dict[str, int]:
    """Most common day of month, with a confidence from how tightly days cluster."""
    if len(transactions) < 2:
        return {"day": 1, "confidence": 0}

    days = [t.occurred_on.day for t in transactions]
    most_common_day = Counter(days).most_common(1)[0][0]
    std_dev = math.sqrt(_variance(days))

    if std_dev < 3:
        confidence = 90
    elif std_dev < 5:
        confidence = 75
    elif std_dev < 10:
        confidence = 50
    else:
        confidence = 30

    return {"day": most_common_day, "confidence": confidence}


def detect_payment_schedule(transactions: List[TransactionData]) -> Dict[str, Any]:
    """Months in which payments land, with the average amount paid in each."""
    by_month: Dict[int, List[float]] = {}
    for t in transactions:
        by_month.setdefault(t.occurred_on.month, []).append(abs(t.amount))

    months = [
        {"month": month, "estimated_amount": round(sum(amounts) / len(amounts), 2)}
        for month, amounts in sorted(by_month.items())
    ]

    years = len({t.occurred_on.year for t in transactions})
    per_month = sum(len(a) for a in by_month.values()) / max(1, len(by_month))
    confidence = min(95, 50 + per_month * 10 + years * 5)

    return {
        "months": months,
        "payments_per_year": len(months),
        "confidence": round(confidence),
    }


def detect_seasonal_months(transactions: List[TransactionData]) -> List[int]:
    """Months with clearly more than their share of transactions (1-indexed)."""
    counts = Counter(t.occurred_on.month for t in transactions)
    average = len(transactions) / 12
    return [month for month in range(1, 13) if counts[month] > average * 1.5]


def _reasons(*items: Optional[str]) -> List[str]:
    return [item for item in items if item]


def detect(pattern: DetectedPattern) -> TemplateDetection:
    """First matching rule wins; falls back to monthly-bill at confidence 50."""
    transactions = pattern.group.transactions
    frequency = pattern.frequency.type
    interval_confidence = pattern.frequency.confidence
    variation = amount_variation(transactions)
    has_category = pattern.group.category_id is not None
    due = infer_due_day(transactions)
    average_amount = sum(abs(t.amount) for t in transactions) / len(transactions)

    if frequency == FrequencyType.monthly and variation < 0.2:
        return TemplateDetection(
            template_id="monthly-bill",
            confidence=round(interval_confidence * 0.7 + (1 - variation) * 30),
            reasons=_reasons(
                "Monthly payments detected",
                "Very consistent amounts" if variation < 0.1 else "Fairly consistent amounts",
                f"Usually due around day {due['day']}" if due["confidence"] > 70 else None,
            ),
            suggested_config={
                "due_day": due["day"] if due["confidence"] > 50 else None,
                "auto_track_category": has_category,
            },
        )

    if frequency in NON_MONTHLY_SCHEDULES:
        schedule = detect_payment_schedule(transactions)
        return TemplateDetection(
            template_id="irregular-payments",
            confidence=round(interval_confidence * 0.6 + schedule["confidence"] * 0.4),
            reasons=_reasons(
                f"{schedule['payments_per_year']} payments detected per year",
                f"{NON_MONTHLY_SCHEDULES[frequency]} pattern",
                f"Consistent amounts (~{average_amount:.0f})" if variation < 0.15 else None,
            ),
            suggested_config={
                "payment_schedule": schedule["months"],
                "due_month": schedule["months"][0]["month"] if schedule["months"] else None,
                "auto_track_category": has_category,
            },
        )

    per_month = transactions_per_month(pattern)

    if frequency == FrequencyType.monthly and has_category:
        return TemplateDetection(
            template_id="monthly-budget",
            confidence=70 + (15 if per_month > 3 else 0),
            reasons=_reasons(
                "Variable monthly spending pattern",
                "Category-based tracking recommended",
                "High transaction frequency" if per_month > 5 else None,
            ),
            suggested_config={"auto_track_category": True},
        )

    if frequency in (FrequencyType.weekly, FrequencyType.biweekly) and variation < 0.3:
        return TemplateDetection(
            template_id="monthly-bill",
            confidence=round(interval_confidence * 0.8),
            reasons=[
                "Weekly payments detected" if frequency == FrequencyType.weekly
                else "Bi-weekly payments detected",
                "Treating as monthly total",
            ],
            suggested_config={"auto_track_category": has_category},
        )

    seasonal_months = detect_seasonal_months(transactions)
    if 2 <= len(seasonal_months) <= 6:
        return TemplateDetection(
            template_id="seasonal-goal",
            confidence=65,
            reasons=[
                "Seasonal spending pattern detected",
                f"Active in {len(seasonal_months)} months",
            ],
            suggested_config={
                "spending_windows": seasonal_months,
                "auto_track_category": has_category,
            },
        )

    if per_month < 2 and has_category:
        return TemplateDetection(
            template_id="yearly-budget",
            confidence=60,
            reasons=["Occasional spending pattern", "Category-based annual tracking"],
            suggested_config={"auto_track_category": True},
        )

    return TemplateDetection(
        template_id="monthly-bill",
        confidence=50,
        reasons=["Default suggestion based on spending pattern"],
        suggested_config={
            "due_day": due["day"] if due["confidence"] > 50 else None,
            "auto_track_category": has_category,
        },
    )
