"""
SQLAlchemy-backed sources for the suggestion pipeline.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from recurwise.models.category import Category
from recurwise.models.transaction import Transaction
from recurwise.schemas.pattern import TransactionData
from recurwise.schemas.suggestion import CategoryTotal
from recurwise.services.pattern_detection import subtract_months

logger = logging.getLogger(__name__)


def to_transaction_data(txn: Transaction) -> TransactionData:
    return TransactionData(
        id=txn.id,
        description=txn.description or "",
        merchant_name=txn.merchant_name,
        category_id=txn.category_id,
        category_name=txn.category.name if txn.category else None,
        amount=float(txn.amount),
        execution_date=txn.execution_date,
        created_at=txn.created_at,
    )


def occurred_since(since: date):
    """Execution date on or after `since`, or creation time when there is no execution date."""
    return or_(
        Transaction.execution_date >= since,
        and_(
            Transaction.execution_date.is_(None),
            Transaction.created_at >= datetime.combine(since, datetime.min.time()),
        ),
    )


class SqlTransactionStore:
    """Reads transactions and category statistics for one database session."""

    def __init__(self, db: Session):
        self.db = db

    async def fetch(self, user_id: str, since: date) -> List[TransactionData]:
        transactions = self.db.query(Transaction).options(
            joinedload(Transaction.category)
        ).filter(
            Transaction.user_id == user_id,
            occurred_since(since),
        ).all()

        return [to_transaction_data(t) for t in transactions]

    async def category_totals(self, user_id: str, since: date) -> List[CategoryTotal]:
        """Expense totals per category, skipping categories excluded from analytics."""
        rows = self.db.query(Transaction).join(
            Category, Transaction.category_id == Category.id
        ).options(
            joinedload(Transaction.category)
        ).filter(
            Transaction.user_id == user_id,
            Transaction.amount < 0,
            Category.exclude_from_expense_analytics == False,
            occurred_since(since),
        ).all()

        totals: Dict[str, CategoryTotal] = {}
        for txn in rows:
            data = to_transaction_data(txn)
            day = data.occurred_on
            current = totals.get(txn.category_id)
            if current is None:
                totals[txn.category_id] = CategoryTotal(
                    category_id=txn.category_id,
                    category_name=data.category_name,
                    total_spent=abs(data.amount),
                    transaction_count=1,
                    first_occurrence=day,
                    last_occurrence=day,
                )
                continue
            current.total_spent += abs(data.amount)
            current.transaction_count += 1
            current.first_occurrence = min(current.first_occurrence, day)
            current.last_occurrence = max(current.last_occurrence, day)

        for total in totals.values():
            total.total_spent = round(total.total_spent, 2)

        return list(totals.values())

    async def category_monthly_average(
        self,
        category_id: str,
        user_id: str,
        months: int = 12
    ) -> float:
        """Average monthly expense of one category over the last `months` months."""
        since = subtract_months(date.today(), months)
        amounts = self.db.query(Transaction.amount).filter(
            Transaction.user_id == user_id,
            Transaction.category_id == category_id,
            Transaction.amount < 0,
            occurred_since(since),
        ).all()

        total = sum(abs(float(a)) for (a,) in amounts)
        return round(total / months, 2)

    def excluded_pattern_category_ids(self) -> Set[str]:
        rows = self.db.query(Category.id).filter(
            Category.exclude_from_pattern_detection == True
        ).all()
        return {category_id for (category_id,) in rows}
