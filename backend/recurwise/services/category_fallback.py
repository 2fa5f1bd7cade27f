"""
Category-average suggestions for material spend that no pattern explains.
"""

import logging
from datetime import date
from typing import List, Optional, Protocol

from recurwise.config import settings
from recurwise.schemas.suggestion import CategoryFallback, CategoryTotal
from recurwise.services.pattern_detection import subtract_months

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 50


class CategoryStatsSource(Protocol):
    async def category_totals(self, user_id: str, since: date) -> List[CategoryTotal]:
        ...

    async def category_monthly_average(self, category_id: str, user_id: str, months: int = 12) -> float:
        ...


class CategoryFallbackGenerator:
    """Monthly averages (12-month total / 12) per category, filtered by materiality."""

    def __init__(
        self,
        stats: CategoryStatsSource,
        months_to_analyze: Optional[int] = None,
        min_monthly_average: Optional[float] = None,
        min_transactions: Optional[int] = None,
    ):
        self.stats = stats
        self.months_to_analyze = months_to_analyze or settings.fallback_months_to_analyze
        self.min_monthly_average = (
            settings.fallback_min_monthly_average if min_monthly_average is None else min_monthly_average
        )
        self.min_transactions = min_transactions or settings.fallback_min_transactions

    async def generate(self, user_id: str) -> List[CategoryFallback]:
        since = subtract_months(date.today(), self.months_to_analyze)
        logger.info(f"Generating fallback suggestions for user {user_id} since {since}")

        totals = await self.stats.category_totals(user_id, since)

        fallbacks: List[CategoryFallback] = []
        for total in totals:
            monthly_average = round(total.total_spent / self.months_to_analyze, 2)
            if monthly_average < self.min_monthly_average:
                continue
            if total.transaction_count < self.min_transactions:
                continue

            fallbacks.append(CategoryFallback(
                category_id=total.category_id,
                category_name=total.category_name,
                total_spent=total.total_spent,
                transaction_count=total.transaction_count,
                monthly_average=monthly_average,
                first_occurrence=total.first_occurrence,
                last_occurrence=total.last_occurrence,
            ))

        logger.info(
            f"Generated {len(fallbacks)} fallback suggestions "
            f"({len(totals) - len(fallbacks)} filtered below threshold)"
        )

        fallbacks.sort(key=lambda f: (-f.monthly_average, f.category_id))
        return fallbacks

    async def category_monthly_average(self, category_id: str, user_id: str) -> float:
        return await self.stats.category_monthly_average(
            category_id, user_id, months=self.months_to_analyze
        )
