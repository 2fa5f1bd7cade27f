"""Shared test fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date, datetime, timedelta
from decimal import Decimal
import uuid

from recurwise.database import Base
from recurwise.dependencies import get_db, get_pattern_classifier
from recurwise.main import app
from recurwise.models.category import Category
from recurwise.models.transaction import Transaction
from recurwise.models.suggestion import (
    ExpensePlanSuggestion,
    ExpenseType,
    FrequencyType,
    SuggestedPurpose,
    SuggestionSource,
    SuggestionStatus,
)
from recurwise.schemas.pattern import TransactionData
from recurwise.services.classification_cache import ClassificationCache, DailyQuota
from recurwise.services.pattern_classifier import PatternClassifier

USER_ID = "user-1"


class OfflineProvider:
    """Provider without credentials, so classification always uses the keyword rules."""

    def has_credentials(self):
        return False

    async def classify_batch(self, requests):
        raise AssertionError("offline provider should never be called")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def offline_classifier():
    """Classifier with its own cache and quota, falling back to rules."""
    return PatternClassifier(
        OfflineProvider(),
        cache=ClassificationCache(),
        quota=DailyQuota(100),
    )


@pytest.fixture(scope="function")
def client(db_session, offline_classifier):
    """Create a test client with database and classifier overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pattern_classifier] = lambda: offline_classifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_category(db_session):
    """Factory for categories."""
    def _make(name, **kwargs):
        category = Category(id=str(uuid.uuid4()), name=name, **kwargs)
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category
    return _make


@pytest.fixture
def add_series(db_session):
    """
    Factory for a run of equally spaced expense transactions.

    The most recent one lands `days_ago` days before today; earlier ones
    are `every_days` apart.
    """
    def _add(count, amount, merchant, description, category=None,
             every_days=30, days_ago=0, user_id=USER_ID):
        today = date.today()
        transactions = []
        for i in range(count):
            txn = Transaction(
                id=str(uuid.uuid4()),
                user_id=user_id,
                execution_date=today - timedelta(days=days_ago + every_days * i),
                amount=Decimal(str(amount)),
                description=description,
                merchant_name=merchant,
                category_id=category.id if category else None,
            )
            transactions.append(txn)
        db_session.add_all(transactions)
        db_session.commit()
        return transactions
    return _add


@pytest.fixture
def make_txn():
    """Factory for in-memory TransactionData."""
    counter = {"n": 0}

    def _make(amount=-15.99, merchant="Netflix", description="NETFLIX.COM",
              category_id="cat-entertainment", category_name="Entertainment",
              day=date(2024, 1, 15)):
        counter["n"] += 1
        return TransactionData(
            id=f"txn-{counter['n']}",
            description=description,
            merchant_name=merchant,
            category_id=category_id,
            category_name=category_name,
            amount=amount,
            execution_date=day,
            created_at=datetime(2024, 1, 1),
        )
    return _make


@pytest.fixture
def pending_suggestion(db_session):
    """Factory for a stored pending suggestion."""
    def _make(name="Netflix", expense_type=ExpenseType.subscription, category_id=None,
              expires_at=None, user_id=USER_ID, **kwargs):
        today = date.today()
        suggestion = ExpensePlanSuggestion(
            id=str(uuid.uuid4()),
            user_id=user_id,
            suggested_name=name,
            description="Detected recurring monthly expense",
            merchant_name=name,
            representative_description=name.upper(),
            category_id=category_id,
            average_amount=Decimal("15.99"),
            monthly_contribution=Decimal("15.99"),
            yearly_total=Decimal("191.88"),
            expense_type=expense_type,
            is_essential=False,
            frequency_type=FrequencyType.monthly,
            interval_days=30,
            suggested_purpose=SuggestedPurpose.sinking_fund,
            suggestion_source=SuggestionSource.pattern,
            has_discrepancy_warning=False,
            pattern_confidence=90,
            classification_confidence=80,
            overall_confidence=86,
            occurrence_count=12,
            first_occurrence=today - timedelta(days=330),
            last_occurrence=today,
            next_expected_date=today + timedelta(days=30),
            status=SuggestionStatus.pending,
            expires_at=expires_at or datetime.utcnow() + timedelta(days=30),
            **kwargs,
        )
        db_session.add(suggestion)
        db_session.commit()
        db_session.refresh(suggestion)
        return suggestion
    return _make
