"""Tests for recurring pattern detection."""

import pytest
from datetime import date, timedelta

from recurwise.models.suggestion import FrequencyType
from recurwise.schemas.pattern import DetectionCriteria
from recurwise.services.pattern_detection import (
    MAX_COHESION_PAIRS,
    GroupBuilder,
    PatternDetector,
    bucket_key,
    cluster_bucket,
    group_cohesion,
    sample_pairs,
    subtract_months,
)


class FakeSource:
    """In-memory transaction source."""

    def __init__(self, transactions):
        self.transactions = transactions
        self.requested = []

    async def fetch(self, user_id, since):
        self.requested.append((user_id, since))
        return list(self.transactions)


def monthly_series(make_txn, count, start=date(2024, 1, 5), every_days=30, **kwargs):
    return [make_txn(day=start + timedelta(days=every_days * i), **kwargs) for i in range(count)]


class TestSubtractMonths:
    """Test calendar month arithmetic."""

    def test_simple(self):
        assert subtract_months(date(2024, 1, 15), 12) == date(2023, 1, 15)

    def test_clamps_to_leap_february(self):
        assert subtract_months(date(2024, 3, 31), 1) == date(2024, 2, 29)

    def test_clamps_to_short_february(self):
        assert subtract_months(date(2023, 5, 31), 3) == date(2023, 2, 28)

    def test_clamps_to_thirty_day_month(self):
        assert subtract_months(date(2024, 5, 31), 1) == date(2024, 4, 30)


class TestBucketKey:
    """Test pre-grouping keys."""

    def test_category_and_merchant(self, make_txn):
        txn = make_txn(category_id="c1", merchant="Netflix.com")
        assert bucket_key(txn) == "c1:netflixcom"

    def test_missing_values(self, make_txn):
        txn = make_txn(category_id=None, merchant=None)
        assert bucket_key(txn) == "no-category:unknown"

    def test_merchant_prefix_truncated(self, make_txn):
        txn = make_txn(category_id="c1", merchant="A Very Long Merchant Name Indeed")
        assert bucket_key(txn) == "c1:" + "averylongmerchantnam"


class TestGroupBuilder:
    """Test group statistics."""

    def test_build(self, make_txn):
        builder = GroupBuilder("group_0_0", make_txn(amount=-10, merchant="Coop"))
        builder.add(make_txn(amount=-20, merchant="Coop Italia"))
        builder.add(make_txn(amount=30, merchant="Coop Italia"))

        group = builder.build()
        assert group.id == "group_0_0"
        assert len(builder) == 3
        assert group.average_amount == 20.0
        assert group.merchant_name == "Coop Italia"
        assert group.category_id == "cat-entertainment"
        assert group.representative_description == "NETFLIX.COM"

    def test_recent_members(self, make_txn):
        builder = GroupBuilder("g", make_txn())
        for _ in range(7):
            builder.add(make_txn())
        assert len(builder.recent()) == 5
        assert builder.recent()[-1] is builder.members[-1]


class TestCohesion:
    """Test pairwise cohesion."""

    def test_sample_pairs_bounded(self):
        pairs = sample_pairs(40)
        assert len(pairs) <= MAX_COHESION_PAIRS
        assert pairs[0] == (0, 39)
        assert len(set(pairs)) == len(pairs)

    def test_single_member_group(self, make_txn):
        group = GroupBuilder("g", make_txn()).build()
        assert group_cohesion(group) == 100.0

    def test_large_identical_group(self, make_txn):
        builder = GroupBuilder("g", make_txn())
        for _ in range(20):
            builder.add(make_txn())
        assert group_cohesion(builder.build()) == 100.0


class TestClusterBucket:
    """Test greedy clustering."""

    def test_identical_transactions_form_one_group(self, make_txn):
        builders = cluster_bucket(3, monthly_series(make_txn, 4), threshold=60)
        assert len(builders) == 1
        assert builders[0].group_id == "group_3_0"
        assert len(builders[0]) == 4

    def test_dissimilar_transactions_split(self, make_txn):
        transactions = [
            make_txn(description="NETFLIX.COM", amount=-15.99),
            make_txn(description="Bonifico condominio", merchant="Studio Bianchi", amount=-900),
        ]
        builders = cluster_bucket(0, transactions, threshold=60)
        assert [b.group_id for b in builders] == ["group_0_0", "group_0_1"]


class TestPatternDetector:
    """Test end-to-end detection over a fake source."""

    @pytest.mark.anyio
    async def test_detects_monthly_subscription(self, make_txn):
        transactions = monthly_series(make_txn, 6) + [
            make_txn(amount=-89.0, merchant="Ikea", description="IKEA MILANO",
                     category_id="cat-home", category_name="Home"),
        ]
        detector = PatternDetector(FakeSource(transactions))

        patterns = await detector.detect(DetectionCriteria(user_id="u1"))

        assert len(patterns) == 1
        pattern = patterns[0]
        assert pattern.frequency.type == FrequencyType.monthly
        assert pattern.frequency.occurrence_count == 6
        assert pattern.confidence.overall == 100
        assert pattern.confidence.breakdown.similarity == 100
        assert pattern.first_occurrence == date(2024, 1, 5)
        assert pattern.last_occurrence == date(2024, 1, 5) + timedelta(days=150)
        assert pattern.next_expected_date == pattern.last_occurrence + timedelta(days=30)

    @pytest.mark.anyio
    async def test_fetch_window(self, make_txn):
        source = FakeSource([])
        await PatternDetector(source).detect(DetectionCriteria(user_id="u1", months_to_analyze=6))
        assert source.requested == [("u1", subtract_months(date.today(), 6))]

    @pytest.mark.anyio
    async def test_too_few_transactions(self, make_txn):
        detector = PatternDetector(FakeSource([make_txn()]))
        assert await detector.detect(DetectionCriteria(user_id="u1")) == []

    @pytest.mark.anyio
    async def test_irregular_group_below_confidence(self, make_txn):
        transactions = [
            make_txn(day=date(2024, 1, 1)),
            make_txn(day=date(2024, 1, 6)),
            make_txn(day=date(2024, 7, 24)),
        ]
        detector = PatternDetector(FakeSource(transactions))
        assert await detector.detect(DetectionCriteria(user_id="u1")) == []

    @pytest.mark.anyio
    async def test_min_occurrences(self, make_txn):
        detector = PatternDetector(FakeSource(monthly_series(make_txn, 3)))
        patterns = await detector.detect(DetectionCriteria(user_id="u1", min_occurrences=4))
        assert patterns == []

    @pytest.mark.anyio
    async def test_sorted_by_confidence(self, make_txn):
        netflix = monthly_series(make_txn, 6)
        spotify = monthly_series(
            make_txn, 3, start=date(2024, 2, 1), every_days=31,
            merchant="Spotify", description="SPOTIFY AB", amount=-10.99,
            category_id="cat-music", category_name="Music",
        )
        detector = PatternDetector(FakeSource(spotify + netflix))

        patterns = await detector.detect(DetectionCriteria(user_id="u1"))

        assert [p.group.merchant_name for p in patterns] == ["Netflix", "Spotify"]
        assert patterns[0].confidence.overall >= patterns[1].confidence.overall

    def test_group_by_similarity_is_deterministic(self, make_txn):
        transactions = monthly_series(make_txn, 4) + monthly_series(
            make_txn, 4, merchant="Spotify", description="SPOTIFY AB", amount=-10.99
        )
        detector = PatternDetector(FakeSource([]))

        first = detector.group_by_similarity(transactions, 60)
        second = detector.group_by_similarity(list(reversed(transactions)), 60)

        assert [g.id for g in first] == [g.id for g in second]
        assert [len(g.transactions) for g in first] == [4, 4]
