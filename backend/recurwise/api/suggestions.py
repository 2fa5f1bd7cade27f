"""API endpoints for expense plan suggestions."""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from recurwise.dependencies import get_pattern_classifier, get_suggestion_service
from recurwise.models.suggestion import SuggestionStatus
from recurwise.schemas.classification import ApiUsageStats
from recurwise.schemas.suggestion import (
    ApprovalResult,
    ApproveSuggestionRequest,
    BulkActionRequest,
    BulkActionResult,
    GenerateSuggestionsRequest,
    GenerateSuggestionsResponse,
    RejectSuggestionRequest,
    SuggestionListResponse,
    SuggestionResponse,
)
from recurwise.services.pattern_classifier import PatternClassifier
from recurwise.services.suggestion_service import SuggestionService

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


@router.post("/generate", response_model=GenerateSuggestionsResponse)
async def generate_suggestions(
    request: Optional[GenerateSuggestionsRequest] = None,
    user_id: str = Query(...),
    service: SuggestionService = Depends(get_suggestion_service)
):
    """Detect recurring patterns and create pending suggestions."""
    return await service.generate(user_id, request or GenerateSuggestionsRequest())


@router.get("", response_model=SuggestionListResponse)
def list_suggestions(
    user_id: str = Query(...),
    status: Optional[SuggestionStatus] = Query(None),
    service: SuggestionService = Depends(get_suggestion_service)
):
    """List suggestions, optionally filtered by status."""
    return service.list_suggestions(user_id, status)


@router.get("/usage-stats", response_model=ApiUsageStats)
def get_usage_stats(classifier: PatternClassifier = Depends(get_pattern_classifier)):
    """AI classification calls used today and cache size."""
    return classifier.usage_stats()


@router.post("/clear-cache")
def clear_cache(classifier: PatternClassifier = Depends(get_pattern_classifier)):
    """Drop all cached classifications."""
    classifier.clear_cache()
    return {"cleared": True}


@router.post("/bulk-approve", response_model=BulkActionResult)
def bulk_approve(
    request: BulkActionRequest,
    user_id: str = Query(...),
    service: SuggestionService = Depends(get_suggestion_service)
):
    return service.bulk_approve(user_id, request.suggestion_ids)


@router.post("/bulk-reject", response_model=BulkActionResult)
def bulk_reject(
    request: BulkActionRequest,
    user_id: str = Query(...),
    service: SuggestionService = Depends(get_suggestion_service)
):
    return service.bulk_reject(user_id, request.suggestion_ids, request.reason)


@router.get("/{suggestion_id}", response_model=SuggestionResponse)
def get_suggestion(
    suggestion_id: str,
    user_id: str = Query(...),
    service: SuggestionService = Depends(get_suggestion_service)
):
    suggestion = service.get_suggestion(user_id, suggestion_id)
    if not suggestion:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return suggestion


@router.post("/{suggestion_id}/approve", response_model=ApprovalResult)
def approve_suggestion(
    suggestion_id: str,
    request: Optional[ApproveSuggestionRequest] = None,
    user_id: str = Query(...),
    service: SuggestionService = Depends(get_suggestion_service)
):
    """Create an expense plan from a pending suggestion."""
    return service.approve(user_id, suggestion_id, request)


@router.post("/{suggestion_id}/reject", response_model=ApprovalResult)
def reject_suggestion(
    suggestion_id: str,
    request: Optional[RejectSuggestionRequest] = None,
    user_id: str = Query(...),
    service: SuggestionService = Depends(get_suggestion_service)
):
    return service.reject(user_id, suggestion_id, request.reason if request else None)
