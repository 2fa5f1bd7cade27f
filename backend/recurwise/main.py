"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from recurwise.config import settings
from recurwise.api.router import api_router
from recurwise.dependencies import get_pattern_classifier
from recurwise.services.pattern_classifier import PatternClassifier

VERSION = "1.0.0"

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    classifier = get_pattern_classifier()
    if classifier.provider.has_credentials():
        logger.info(
            f"Pattern classification via {settings.ai_provider}/{settings.ai_model}, "
            f"{settings.pattern_max_daily_calls} calls per day"
        )
    else:
        logger.warning("No AI credentials configured, patterns will be classified with keyword rules")
    yield


app = FastAPI(
    title=settings.app_name,
    version=VERSION,
    description="Recurring expense detection and expense plan suggestions",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {
        "name": settings.app_name,
        "version": VERSION,
        "status": "running"
    }


@app.get("/api/v1/health")
def health_check(classifier: PatternClassifier = Depends(get_pattern_classifier)):
    """Health check with the classification mode."""
    return {
        "status": "ok",
        "app_name": settings.app_name,
        "ai_classification": classifier.provider.has_credentials(),
        "ai_calls_remaining": classifier.usage_stats().remaining_calls,
    }
