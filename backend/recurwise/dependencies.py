"""
FastAPI dependencies.
"""

from typing import Generator, Optional
from fastapi import Depends
from sqlalchemy.orm import Session
from recurwise.database import SessionLocal
from recurwise.services.pattern_classifier import LLMClassificationProvider, PatternClassifier
from recurwise.services.suggestion_service import SuggestionService


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database sessions.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# One classifier per process so the cache and daily quota are shared by all requests
_classifier: Optional[PatternClassifier] = None


def get_pattern_classifier() -> PatternClassifier:
    global _classifier
    if _classifier is None:
        _classifier = PatternClassifier(LLMClassificationProvider())
    return _classifier


def get_suggestion_service(
    db: Session = Depends(get_db),
    classifier: PatternClassifier = Depends(get_pattern_classifier)
) -> SuggestionService:
    return SuggestionService(db, classifier)
