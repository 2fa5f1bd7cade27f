"""Tests for frequency analysis of transaction groups."""

import pytest
from datetime import date, timedelta

from recurwise.models.suggestion import FrequencyType
from recurwise.services import frequency_analyzer
from recurwise.services.frequency_analyzer import (
    InsufficientDataError,
    classify_interval,
    interval_confidence,
    is_within_expected_range,
    occurrence_boost,
    round_half_up,
)


class TestClassifyInterval:
    """Test the day thresholds of each frequency."""

    @pytest.mark.parametrize("days,expected", [
        (7, FrequencyType.weekly),
        (10, FrequencyType.weekly),
        (11, FrequencyType.biweekly),
        (17, FrequencyType.biweekly),
        (30, FrequencyType.monthly),
        (35, FrequencyType.monthly),
        (36, FrequencyType.quarterly),
        (91, FrequencyType.quarterly),
        (182, FrequencyType.semiannual),
        (200, FrequencyType.semiannual),
        (365, FrequencyType.annual),
    ])
    def test_thresholds(self, days, expected):
        assert classify_interval(days) == expected


class TestIntervalConfidence:
    """Test regularity scoring."""

    def test_regular(self):
        assert interval_confidence([30, 30, 30]) == 100

    def test_irregular(self):
        """Mean 30, population std dev 10."""
        assert interval_confidence([20, 40]) == 67

    def test_never_negative(self):
        assert interval_confidence([1, 100, 1, 100]) >= 0


class TestAnalyze:
    """Test full frequency analysis."""

    def test_requires_two_transactions(self, make_txn):
        with pytest.raises(InsufficientDataError):
            frequency_analyzer.analyze([make_txn()])

    def test_insufficient_data_is_value_error(self):
        assert issubclass(InsufficientDataError, ValueError)

    def test_monthly_unsorted_input(self, make_txn):
        """Input order does not matter; gaps come from sorted dates."""
        transactions = [
            make_txn(day=date(2024, 3, 15)),
            make_txn(day=date(2024, 1, 15)),
            make_txn(day=date(2024, 2, 14)),
        ]
        pattern = frequency_analyzer.analyze(transactions)
        assert pattern.type == FrequencyType.monthly
        assert pattern.interval_days == 30
        assert pattern.confidence == 100
        assert pattern.next_expected_date == date(2024, 4, 14)
        assert pattern.occurrence_count == 3

    def test_quarterly(self, make_txn):
        transactions = [
            make_txn(day=date(2024, 1, 1)),
            make_txn(day=date(2024, 4, 1)),
            make_txn(day=date(2024, 7, 1)),
        ]
        pattern = frequency_analyzer.analyze(transactions)
        assert pattern.type == FrequencyType.quarterly
        assert pattern.interval_days == 91


    def test_weekly(self, make_txn):
        transactions = [make_txn(day=date(2024, 1, 1) + timedelta(days=7 * i)) for i in range(4)]
        pattern = frequency_analyzer.analyze(transactions)
        assert pattern.type == FrequencyType.weekly
        assert pattern.interval_days == 7
        assert pattern.confidence > 90

    def test_irregular_gaps_score_lower(self, make_txn):
        """Occurrences on days 0, 7, 20 and 25 are less regular than a weekly series."""
        start = date(2024, 1, 1)
        even = frequency_analyzer.analyze(
            [make_txn(day=start + timedelta(days=7 * i)) for i in range(4)]
        )
        uneven = frequency_analyzer.analyze(
            [make_txn(day=start + timedelta(days=offset)) for offset in (0, 7, 20, 25)]
        )
        assert uneven.confidence < even.confidence

    def test_half_day_average_rounds_up(self, make_txn):
        """Gaps of 8 and 9 days average 8.5, which becomes 9."""
        pattern = frequency_analyzer.analyze([
            make_txn(day=date(2024, 1, 1)),
            make_txn(day=date(2024, 1, 9)),
            make_txn(day=date(2024, 1, 18)),
        ])
        assert pattern.interval_days == 9
        assert pattern.next_expected_date == date(2024, 1, 27)


class TestRoundHalfUp:
    """Test rounding of day averages and confidences."""

    @pytest.mark.parametrize("value,expected", [(8.5, 9), (2.5, 3), (2.49, 2), (0.5, 1), (7.0, 7)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestExpectedRange:
    """Test tolerance around the next expected date."""

    def test_within_tolerance(self, make_txn):
        pattern = frequency_analyzer.analyze([
            make_txn(day=date(2024, 1, 15)),
            make_txn(day=date(2024, 2, 14)),
        ])
        assert pattern.next_expected_date == date(2024, 3, 15)
        assert is_within_expected_range(date(2024, 3, 20), pattern)
        assert is_within_expected_range(date(2024, 3, 8), pattern)
        assert not is_within_expected_range(date(2024, 3, 23), pattern)

    def test_custom_tolerance(self, make_txn):
        pattern = frequency_analyzer.analyze([
            make_txn(day=date(2024, 1, 15)),
            make_txn(day=date(2024, 2, 14)),
        ])
        assert not is_within_expected_range(date(2024, 3, 17), pattern, tolerance_days=1)


class TestOccurrenceBoost:
    """Test the bonus for frequently seen patterns."""

    @pytest.mark.parametrize("count,boost", [(2, 0), (3, 5), (4, 10), (5, 15), (6, 20), (12, 20)])
    def test_boost(self, count, boost):
        assert occurrence_boost(count) == boost

    def test_monotonic_and_capped(self):
        boosts = [occurrence_boost(count) for count in range(0, 30)]
        assert boosts == sorted(boosts)
        assert max(boosts) == 20
