"""
Frequency analysis for a group of similar transactions.
"""

import math
from datetime import date, timedelta
from typing import List

from recurwise.models.suggestion import FrequencyType
from recurwise.schemas.pattern import FrequencyPattern, TransactionData

# Upper bound (inclusive) of the average gap in days for each frequency
FREQUENCY_THRESHOLDS = [
    (10, FrequencyType.weekly),
    (17, FrequencyType.biweekly),
    (35, FrequencyType.monthly),
    (100, FrequencyType.quarterly),
    (200, FrequencyType.semiannual),
]


class InsufficientDataError(ValueError):
    """Raised when there are too few transactions to measure intervals."""


def round_half_up(value: float) -> int:
    """Round halves up; round() would send 8.5 to 8."""
    return math.floor(value + 0.5)


def classify_interval(average_days: float) -> FrequencyType:
    for upper_bound, frequency in FREQUENCY_THRESHOLDS:
        if average_days <= upper_bound:
            return frequency
    return FrequencyType.annual


def interval_confidence(intervals: List[int]) -> int:
    """100 for perfectly regular gaps, dropping with the coefficient of variation."""
    average = sum(intervals) / len(intervals)
    if average == 0:
        return 0
    variance = sum((gap - average) ** 2 for gap in intervals) / len(intervals)
    std_dev = math.sqrt(variance)
    return max(0, round_half_up(100 - (std_dev / average) * 100))


def analyze(transactions: List[TransactionData]) -> FrequencyPattern:
    """
    Measure the gaps between occurrences and classify the frequency.

    Raises InsufficientDataError for fewer than two transactions.
    """
    if len(transactions) < 2:
        raise InsufficientDataError(
            f"Need at least 2 transactions to analyze frequency, got {len(transactions)}"
        )

    dates = sorted(t.occurred_on for t in transactions)
    intervals = [(dates[i] - dates[i - 1]).days for i in range(1, len(dates))]
    average = sum(intervals) / len(intervals)
    interval_days = round_half_up(average)

    return FrequencyPattern(
        type=classify_interval(average),
        interval_days=interval_days,
        confidence=interval_confidence(intervals),
        next_expected_date=dates[-1] + timedelta(days=interval_days),
        occurrence_count=len(transactions),
    )


def is_within_expected_range(
    day: date,
    pattern: FrequencyPattern,
    tolerance_days: int = 7
) -> bool:
    """Check if a date lands within tolerance of the next expected occurrence."""
    return abs((day - pattern.next_expected_date).days) <= tolerance_days


def occurrence_boost(count: int) -> int:
    """Confidence bonus for patterns seen many times."""
    if count <= 2:
        return 0
    if count == 3:
        return 5
    if count == 4:
        return 10
    if count == 5:
        return 15
    return 20
