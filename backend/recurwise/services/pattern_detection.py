"""
Recurring pattern detection.

Transactions are pre-bucketed by category and merchant prefix so the
similarity clustering only runs on small subsets, then each surviving
group is scored for timing regularity and cohesion.
"""

import logging
import re
import time
from collections import Counter
from datetime import date
from typing import Dict, List, Protocol, Tuple

from recurwise.schemas.pattern import (
    ConfidenceBreakdown,
    DetectedPattern,
    DetectionCriteria,
    FrequencyPattern,
    PatternConfidence,
    TransactionData,
    TransactionGroup,
)
from recurwise.services import frequency_analyzer
from recurwise.services import similarity_scorer

logger = logging.getLogger(__name__)

# Members of an open group a new transaction is compared against
MAX_GROUP_COMPARISONS = 5
# Pairs sampled when measuring the cohesion of a large group
MAX_COHESION_PAIRS = 15
PROGRESS_LOG_EVERY = 50

_NON_ALNUM = re.compile(r"[^a-z0-9]")


class TransactionSource(Protocol):
    async def fetch(self, user_id: str, since: date) -> List[TransactionData]:
        ...


def subtract_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of short months."""
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    for candidate in (day.day, 30, 29, 28):
        try:
            return date(year, month, candidate)
        except ValueError:
            continue
    return date(year, month, 28)


def bucket_key(transaction: TransactionData) -> str:
    category_key = transaction.category_id or "no-category"
    if transaction.merchant_name:
        merchant_key = _NON_ALNUM.sub("", transaction.merchant_name.lower().strip())[:20]
    else:
        merchant_key = "unknown"
    return f"{category_key}:{merchant_key}"


class GroupBuilder:
    """Accumulates members of one cluster; statistics are computed in build()."""

    def __init__(self, group_id: str, first: TransactionData):
        self.group_id = group_id
        self.members: List[TransactionData] = [first]

    def add(self, transaction: TransactionData) -> None:
        self.members.append(transaction)

    def recent(self, limit: int = MAX_GROUP_COMPARISONS) -> List[TransactionData]:
        return self.members[-limit:]

    def __len__(self) -> int:
        return len(self.members)

    def build(self) -> TransactionGroup:
        first = self.members[0]
        amounts = [abs(t.amount) for t in self.members]

        merchants = Counter(t.merchant_name for t in self.members if t.merchant_name)
        merchant_name = merchants.most_common(1)[0][0] if merchants else first.merchant_name

        return TransactionGroup(
            id=self.group_id,
            transactions=list(self.members),
            average_amount=sum(amounts) / len(amounts),
            category_id=first.category_id,
            category_name=first.category_name,
            merchant_name=merchant_name,
            representative_description=first.description,
        )


def sample_pairs(n: int, max_pairs: int = MAX_COHESION_PAIRS) -> List[Tuple[int, int]]:
    """Strategic index pairs for groups too large for full pairwise comparison."""
    pairs: List[Tuple[int, int]] = [(0, n - 1)]

    for j in range(1, min(n, 4)):
        pairs.append((0, j))

    for i in range(max(0, n - 4), n - 1):
        pairs.append((i, n - 1))

    step = max(1, n // 4)
    for i in range(0, n, step):
        if len(pairs) >= max_pairs:
            break
        for j in range(i + step, n, step):
            if len(pairs) >= max_pairs:
                break
            if (i, j) not in pairs:
                pairs.append((i, j))

    return pairs[:max_pairs]


def group_cohesion(group: TransactionGroup) -> float:
    """Mean pairwise similarity of the group's members."""
    members = group.transactions
    n = len(members)
    if n < 2:
        return 100.0

    if n * (n - 1) // 2 <= MAX_COHESION_PAIRS:
        pairs = [(i, j) for i in range(n) for j in range(i + 1, n)]
    else:
        pairs = sample_pairs(n)

    totals = [similarity_scorer.score(members[i], members[j]).total for i, j in pairs]
    return sum(totals) / len(totals)


def pattern_confidence(group: TransactionGroup, frequency: FrequencyPattern) -> PatternConfidence:
    cohesion = group_cohesion(group)
    boost = frequency_analyzer.occurrence_boost(len(group.transactions))
    overall = min(100.0, cohesion * 0.4 + frequency.confidence * 0.6 + boost)

    return PatternConfidence(
        overall=round(overall),
        breakdown=ConfidenceBreakdown(
            similarity=round(cohesion),
            frequency=frequency.confidence,
            occurrence_count=len(group.transactions),
        ),
    )


def cluster_bucket(
    bucket_index: int,
    transactions: List[TransactionData],
    threshold: float
) -> List[GroupBuilder]:
    """Greedy clustering: join the first group whose recent members are similar enough."""
    builders: List[GroupBuilder] = []

    for transaction in transactions:
        for builder in builders:
            similarity = similarity_scorer.group_similarity(transaction, builder.recent())
            if similarity >= threshold:
                builder.add(transaction)
                break
        else:
            group_id = f"group_{bucket_index}_{len(builders)}"
            builders.append(GroupBuilder(group_id, transaction))

    return builders


class PatternDetector:
    """Finds recurring groups in a user's transaction history."""

    def __init__(self, source: TransactionSource):
        self.source = source

    async def detect(self, criteria: DetectionCriteria) -> List[DetectedPattern]:
        started = time.perf_counter()
        since = subtract_months(date.today(), criteria.months_to_analyze)

        logger.info(
            f"Starting pattern detection for user {criteria.user_id} "
            f"({criteria.months_to_analyze} months since {since})"
        )
        transactions = await self.source.fetch(criteria.user_id, since)
        logger.info(f"Fetched {len(transactions)} transactions for analysis")

        if len(transactions) < criteria.min_occurrences:
            logger.warning("Not enough transactions for pattern detection")
            return []

        groups = self.group_by_similarity(transactions, criteria.similarity_threshold)
        valid = [g for g in groups if len(g.transactions) >= criteria.min_occurrences]
        logger.info(f"{len(valid)} of {len(groups)} groups meet the minimum occurrence count")

        patterns: List[DetectedPattern] = []
        for group in valid:
            try:
                frequency = frequency_analyzer.analyze(group.transactions)
                confidence = pattern_confidence(group, frequency)
            except Exception:
                logger.exception(f"Error analyzing group {group.id}")
                continue

            if confidence.overall < criteria.min_confidence:
                continue

            dates = [t.occurred_on for t in group.transactions]
            patterns.append(DetectedPattern(
                group=group,
                frequency=frequency,
                confidence=confidence,
                first_occurrence=min(dates),
                last_occurrence=max(dates),
                next_expected_date=frequency.next_expected_date,
            ))

        patterns.sort(key=lambda p: (-p.confidence.overall, p.group.id))

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"Detected {len(patterns)} patterns in {elapsed_ms}ms")
        return patterns

    def group_by_similarity(
        self,
        transactions: List[TransactionData],
        threshold: float
    ) -> List[TransactionGroup]:
        started = time.perf_counter()
        ordered = sorted(transactions, key=lambda t: (t.occurred_on, t.id))

        buckets: Dict[str, List[TransactionData]] = {}
        for transaction in ordered:
            buckets.setdefault(bucket_key(transaction), []).append(transaction)

        logger.info(f"Pre-grouped {len(ordered)} transactions into {len(buckets)} buckets")

        groups: List[TransactionGroup] = []
        for index, members in enumerate(buckets.values()):
            groups.extend(b.build() for b in cluster_bucket(index, members, threshold))

            processed = index + 1
            if processed % PROGRESS_LOG_EVERY == 0:
                elapsed_ms = int((time.perf_counter() - started) * 1000)
                logger.info(f"Processed {processed}/{len(buckets)} buckets ({elapsed_ms}ms)")

        return groups

