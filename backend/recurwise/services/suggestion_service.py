"""
Expense plan suggestion generation and review.

generate() runs the whole pipeline for one user: detect patterns, classify
them, merge same-category patterns, add category-average fallbacks, drop
duplicates of existing plans and pending suggestions, and persist what is
left as pending suggestions.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recurwise.config import settings
from recurwise.models.expense_plan import ExpensePlan, PlanFrequency, PlanType
from recurwise.models.suggestion import (
    ExpensePlanSuggestion,
    ExpenseType,
    FrequencyType,
    SuggestedPurpose,
    SuggestionSource,
    SuggestionStatus,
)
from recurwise.schemas.classification import ClassificationRequest, ClassificationResult
from recurwise.schemas.pattern import DetectedPattern, DetectionCriteria
from recurwise.schemas.suggestion import (
    ApprovalResult,
    ApproveSuggestionRequest,
    BulkActionResult,
    CategoryAggregation,
    CategoryFallback,
    GenerateSuggestionsRequest,
    GenerateSuggestionsResponse,
    SuggestionListResponse,
    SuggestionResponse,
    SuggestionSummary,
)
from recurwise.services import category_aggregator
from recurwise.services import template_detector
from recurwise.services.category_fallback import FALLBACK_CONFIDENCE, CategoryFallbackGenerator
from recurwise.services.classification_rules import monthly_contribution
from recurwise.services.pattern_classifier import PatternClassifier
from recurwise.services.pattern_detection import PatternDetector
from recurwise.services.transaction_store import SqlTransactionStore

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_MERCHANT_LENGTH = 255

SINKING_FUND_TYPES = {
    ExpenseType.subscription,
    ExpenseType.utility,
    ExpenseType.insurance,
    ExpenseType.mortgage,
    ExpenseType.rent,
    ExpenseType.loan,
    ExpenseType.tax,
}


def suggested_purpose(expense_type: ExpenseType) -> SuggestedPurpose:
    if expense_type in SINKING_FUND_TYPES:
        return SuggestedPurpose.sinking_fund
    return SuggestedPurpose.spending_budget


def plan_type_for(expense_type: ExpenseType) -> PlanType:
    if expense_type in (
        ExpenseType.subscription,
        ExpenseType.utility,
        ExpenseType.rent,
        ExpenseType.mortgage,
        ExpenseType.loan,
    ):
        return PlanType.fixed_monthly
    if expense_type in (ExpenseType.insurance, ExpenseType.tax):
        return PlanType.yearly_fixed
    return PlanType.yearly_variable


def plan_frequency_for(frequency: FrequencyType) -> PlanFrequency:
    if frequency == FrequencyType.quarterly:
        return PlanFrequency.quarterly
    if frequency in (FrequencyType.semiannual, FrequencyType.annual):
        return PlanFrequency.yearly
    return PlanFrequency.monthly


def overall_confidence(pattern_confidence: int, classification_confidence: int) -> int:
    return round(pattern_confidence * 0.6 + classification_confidence * 0.4)


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    return value[:length] if value else value


def to_classification_request(pattern: DetectedPattern) -> ClassificationRequest:
    return ClassificationRequest(
        pattern_id=pattern.group.id,
        merchant_name=pattern.group.merchant_name,
        category_name=pattern.group.category_name,
        representative_description=pattern.group.representative_description,
        average_amount=pattern.group.average_amount,
        frequency_type=pattern.frequency.type,
        occurrence_count=pattern.frequency.occurrence_count,
    )


class SuggestionService:
    """Generates expense plan suggestions and handles their review."""

    def __init__(
        self,
        db: Session,
        classifier: PatternClassifier,
        store: Optional[SqlTransactionStore] = None,
        detector: Optional[PatternDetector] = None,
        fallback: Optional[CategoryFallbackGenerator] = None,
    ):
        self.db = db
        self.classifier = classifier
        self.store = store or SqlTransactionStore(db)
        self.detector = detector or PatternDetector(self.store)
        self.fallback = fallback or CategoryFallbackGenerator(self.store)

    # Generation

    async def generate(
        self,
        user_id: str,
        options: Optional[GenerateSuggestionsRequest] = None
    ) -> GenerateSuggestionsResponse:
        started = time.perf_counter()
        options = options or GenerateSuggestionsRequest()
        logger.info(f"Generating suggestions for user {user_id}")

        self.expire_stale()

        if not options.force_regenerate:
            existing = self.pending_suggestions(user_id)
            if existing:
                logger.info(f"Returning {len(existing)} existing pending suggestions")
                return self._build_response(existing, 0, started)

        criteria = DetectionCriteria(
            user_id=user_id,
            months_to_analyze=options.months_to_analyze or settings.detection_months_to_analyze,
            min_occurrences=options.min_occurrences or settings.detection_min_occurrences,
            min_confidence=options.min_confidence or settings.detection_min_confidence,
            similarity_threshold=options.similarity_threshold or settings.detection_similarity_threshold,
        )
        patterns = await self.detector.detect(criteria)

        classifications: List[ClassificationResult] = []
        if patterns:
            result = await self.classifier.classify(
                [to_classification_request(p) for p in patterns], user_id
            )
            classifications = result.classifications
            logger.info(
                f"Classified {len(classifications)} patterns, {result.tokens_used} tokens used"
            )
        by_pattern_id = {c.pattern_id: c for c in classifications}

        excluded = self.store.excluded_pattern_category_ids()
        categorized = [
            p for p in patterns
            if p.group.category_id and p.group.category_id not in excluded
        ]
        uncategorized = [p for p in patterns if not p.group.category_id]
        if len(categorized) + len(uncategorized) < len(patterns):
            logger.info(
                f"Dropped {len(patterns) - len(categorized) - len(uncategorized)} patterns "
                f"in categories excluded from pattern detection"
            )

        candidates: List[ExpensePlanSuggestion] = []
        covered_categories: Set[str] = set()

        for aggregation in category_aggregator.aggregate(categorized, classifications):
            covered_categories.add(aggregation.category_id)
            category_average = await self.fallback.category_monthly_average(
                aggregation.category_id, user_id
            )
            candidates.append(
                self._from_aggregation(user_id, aggregation, by_pattern_id, category_average)
            )

        for pattern in uncategorized:
            candidates.append(self._from_pattern(user_id, pattern, by_pattern_id[pattern.group.id]))

        for fallback in await self.fallback.generate(user_id):
            if fallback.category_id in covered_categories:
                continue
            candidates.append(self._from_fallback(user_id, fallback))

        accepted = self._filter_duplicates(user_id, candidates)
        logger.info(
            f"Created {len(accepted)} new suggestions "
            f"({len(candidates) - len(accepted)} duplicates filtered)"
        )

        if accepted:
            self.db.add_all(accepted)
            self.db.commit()

        return self._build_response(self.pending_suggestions(user_id), len(accepted), started)

    def _expires_at(self) -> datetime:
        return datetime.utcnow() + timedelta(days=settings.suggestion_expiry_days)

    def _from_aggregation(
        self,
        user_id: str,
        aggregation: CategoryAggregation,
        classifications: Dict[str, ClassificationResult],
        category_average: float,
    ) -> ExpensePlanSuggestion:
        patterns = aggregation.source_patterns
        primary = patterns[0]
        primary_classification = classifications[primary.group.id]

        if len(patterns) == 1:
            suggestion = self._from_pattern(user_id, primary, primary_classification)
            suggestion.expense_type = aggregation.expense_type
            suggestion.is_essential = aggregation.is_essential
            suggestion.suggested_purpose = suggested_purpose(aggregation.expense_type)
        else:
            member_confidences = [
                classifications[p.group.id].confidence
                for p in patterns if p.group.id in classifications
            ]
            classification_confidence = round(sum(member_confidences) / len(member_confidences))
            interval_days = next(
                p.frequency.interval_days for p in patterns
                if p.frequency.type == aggregation.frequency_type
            )
            monthly = aggregation.weighted_monthly_average
            category_label = aggregation.category_name or primary_classification.suggested_name

            suggestion = ExpensePlanSuggestion(
                user_id=user_id,
                suggested_name=_truncate(f"{category_label} Budget", MAX_NAME_LENGTH),
                description=(
                    f"Combined {len(patterns)} recurring patterns in {category_label}: "
                    f"{', '.join(aggregation.merchants)}"
                ),
                merchant_name=_truncate(", ".join(aggregation.merchants), MAX_MERCHANT_LENGTH) or None,
                representative_description=aggregation.representative_description,
                category_id=aggregation.category_id,
                category_name=_truncate(aggregation.category_name, MAX_NAME_LENGTH),
                average_amount=round(aggregation.total_amount / aggregation.transaction_count, 2),
                monthly_contribution=monthly,
                yearly_total=round(monthly * 12, 2),
                expense_type=aggregation.expense_type,
                is_essential=aggregation.is_essential,
                frequency_type=aggregation.frequency_type,
                interval_days=interval_days,
                suggested_purpose=suggested_purpose(aggregation.expense_type),
                suggestion_source=SuggestionSource.pattern,
                pattern_confidence=aggregation.average_confidence,
                classification_confidence=classification_confidence,
                overall_confidence=overall_confidence(
                    aggregation.average_confidence, classification_confidence
                ),
                classification_reasoning=primary_classification.reasoning,
                occurrence_count=aggregation.transaction_count,
                first_occurrence=aggregation.first_occurrence,
                last_occurrence=aggregation.last_occurrence,
                next_expected_date=min(p.next_expected_date for p in patterns),
                status=SuggestionStatus.pending,
                expires_at=self._expires_at(),
            )
            self._apply_template(suggestion, primary)

        suggestion.suggestion_metadata = {
            **(suggestion.suggestion_metadata or {}),
            "pattern_ids": [p.group.id for p in patterns],
            "transaction_ids": [t.id for p in patterns for t in p.group.transactions],
            "merchants": aggregation.merchants,
            "span_months": aggregation.span_months,
            "aggregated_pattern_count": len(patterns),
        }

        discrepancy = category_aggregator.check_discrepancy(
            float(suggestion.monthly_contribution), category_average
        )
        suggestion.category_monthly_average = category_average or None
        suggestion.discrepancy_percentage = discrepancy.discrepancy_percentage
        suggestion.has_discrepancy_warning = discrepancy.has_discrepancy
        suggestion.discrepancy_message = discrepancy.message
        return suggestion

    def _from_pattern(
        self,
        user_id: str,
        pattern: DetectedPattern,
        classification: ClassificationResult,
    ) -> ExpensePlanSuggestion:
        group = pattern.group
        monthly = classification.monthly_contribution or monthly_contribution(
            group.average_amount, pattern.frequency.type
        )
        name = (
            classification.suggested_name
            or group.merchant_name
            or group.representative_description[:50]
        )
        amounts = [abs(t.amount) for t in group.transactions]

        suggestion = ExpensePlanSuggestion(
            user_id=user_id,
            suggested_name=_truncate(name, MAX_NAME_LENGTH) or "Unnamed Expense",
            description=f"Detected recurring {pattern.frequency.type.value} expense",
            merchant_name=_truncate(group.merchant_name, MAX_MERCHANT_LENGTH),
            representative_description=group.representative_description,
            category_id=group.category_id,
            category_name=_truncate(group.category_name, MAX_NAME_LENGTH),
            average_amount=round(group.average_amount, 2),
            monthly_contribution=monthly,
            yearly_total=round(monthly * 12, 2),
            expense_type=classification.expense_type,
            is_essential=classification.is_essential,
            frequency_type=pattern.frequency.type,
            interval_days=pattern.frequency.interval_days,
            suggested_purpose=suggested_purpose(classification.expense_type),
            suggestion_source=SuggestionSource.pattern,
            has_discrepancy_warning=False,
            pattern_confidence=pattern.confidence.overall,
            classification_confidence=classification.confidence,
            overall_confidence=overall_confidence(
                pattern.confidence.overall, classification.confidence
            ),
            classification_reasoning=classification.reasoning,
            occurrence_count=pattern.frequency.occurrence_count,
            first_occurrence=pattern.first_occurrence,
            last_occurrence=pattern.last_occurrence,
            next_expected_date=pattern.next_expected_date,
            suggestion_metadata={
                "pattern_ids": [group.id],
                "transaction_ids": [t.id for t in group.transactions],
                "amount_range": {"min": min(amounts), "max": max(amounts)},
            },
            status=SuggestionStatus.pending,
            expires_at=self._expires_at(),
        )
        self._apply_template(suggestion, pattern)
        return suggestion

    def _from_fallback(self, user_id: str, fallback: CategoryFallback) -> ExpensePlanSuggestion:
        label = fallback.category_name or "Category"
        months = self.fallback.months_to_analyze

        return ExpensePlanSuggestion(
            user_id=user_id,
            suggested_name=_truncate(f"{label} Budget", MAX_NAME_LENGTH),
            description=f"Average monthly spending in {label} over the last {months} months",
            merchant_name=None,
            representative_description=f"Category average for {label}",
            category_id=fallback.category_id,
            category_name=_truncate(fallback.category_name, MAX_NAME_LENGTH),
            average_amount=round(fallback.total_spent / fallback.transaction_count, 2),
            monthly_contribution=fallback.monthly_average,
            yearly_total=round(fallback.monthly_average * 12, 2),
            expense_type=ExpenseType.variable,
            is_essential=False,
            frequency_type=FrequencyType.monthly,
            interval_days=30,
            suggested_purpose=fallback.suggested_purpose,
            suggestion_source=SuggestionSource.category_average,
            category_monthly_average=fallback.monthly_average,
            has_discrepancy_warning=False,
            pattern_confidence=FALLBACK_CONFIDENCE,
            classification_confidence=FALLBACK_CONFIDENCE,
            overall_confidence=FALLBACK_CONFIDENCE,
            classification_reasoning=(
                f"No recurring pattern detected; based on the {months}-month category average"
            ),
            occurrence_count=fallback.transaction_count,
            first_occurrence=fallback.first_occurrence,
            last_occurrence=fallback.last_occurrence,
            next_expected_date=fallback.last_occurrence + timedelta(days=30),
            suggestion_metadata={
                "reason": fallback.reason,
                "total_spent": fallback.total_spent,
            },
            status=SuggestionStatus.pending,
            expires_at=self._expires_at(),
        )

    def _apply_template(self, suggestion: ExpensePlanSuggestion, pattern: DetectedPattern) -> None:
        template = template_detector.detect(pattern)
        suggestion.suggested_template = template.template_id
        suggestion.template_confidence = template.confidence
        suggestion.template_reasons = template.reasons
        suggestion.template_config = template.suggested_config

    def _filter_duplicates(
        self,
        user_id: str,
        candidates: List[ExpensePlanSuggestion]
    ) -> List[ExpensePlanSuggestion]:
        """Drop candidates matching an active plan or a pending suggestion, including earlier candidates."""
        plans = self.db.query(ExpensePlan.name, ExpensePlan.category_id).filter(
            ExpensePlan.user_id == user_id,
            ExpensePlan.is_active == True,
        ).all()
        plan_names = {name.lower() for name, _ in plans}
        plan_categories = {category_id for _, category_id in plans if category_id}

        pending = self.db.query(
            ExpensePlanSuggestion.suggested_name, ExpensePlanSuggestion.category_id
        ).filter(
            ExpensePlanSuggestion.user_id == user_id,
            ExpensePlanSuggestion.status == SuggestionStatus.pending,
        ).all()
        pending_names = {name.lower() for name, _ in pending}
        pending_categories = {category_id for _, category_id in pending if category_id}

        accepted = []
        for candidate in candidates:
            name = candidate.suggested_name.lower()
            category_id = candidate.category_id

            if name in plan_names or (category_id and category_id in plan_categories):
                logger.debug(f"Skipping '{candidate.suggested_name}': matches an existing plan")
                continue
            if name in pending_names or (category_id and category_id in pending_categories):
                logger.debug(f"Skipping '{candidate.suggested_name}': already suggested")
                continue

            accepted.append(candidate)
            pending_names.add(name)
            if category_id:
                pending_categories.add(category_id)

        return accepted

    def _build_response(
        self,
        suggestions: List[ExpensePlanSuggestion],
        new_count: int,
        started: float
    ) -> GenerateSuggestionsResponse:
        by_expense_type: Dict[str, int] = {}
        total_monthly = 0.0
        essential = 0

        for suggestion in suggestions:
            key = ExpenseType(suggestion.expense_type).value
            by_expense_type[key] = by_expense_type.get(key, 0) + 1
            total_monthly += float(suggestion.monthly_contribution)
            if suggestion.is_essential:
                essential += 1

        return GenerateSuggestionsResponse(
            suggestions=[SuggestionResponse.model_validate(s) for s in suggestions],
            total_found=len(suggestions),
            new_suggestions=new_count,
            existing_suggestions=len(suggestions) - new_count,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            summary=SuggestionSummary(
                by_expense_type=by_expense_type,
                total_monthly_contribution=round(total_monthly, 2),
                essential_count=essential,
                discretionary_count=len(suggestions) - essential,
            ),
        )

    # Queries

    def pending_suggestions(self, user_id: str) -> List[ExpensePlanSuggestion]:
        return self.db.query(ExpensePlanSuggestion).filter(
            ExpensePlanSuggestion.user_id == user_id,
            ExpensePlanSuggestion.status == SuggestionStatus.pending,
        ).order_by(
            ExpensePlanSuggestion.overall_confidence.desc(),
            ExpensePlanSuggestion.created_at.desc(),
        ).all()

    def list_suggestions(
        self,
        user_id: str,
        status: Optional[SuggestionStatus] = None
    ) -> SuggestionListResponse:
        query = self.db.query(ExpensePlanSuggestion).filter(
            ExpensePlanSuggestion.user_id == user_id
        )
        if status:
            query = query.filter(ExpensePlanSuggestion.status == status)

        suggestions = query.order_by(
            ExpensePlanSuggestion.overall_confidence.desc(),
            ExpensePlanSuggestion.created_at.desc(),
        ).all()

        counts = dict(
            self.db.query(ExpensePlanSuggestion.status, func.count(ExpensePlanSuggestion.id))
            .filter(ExpensePlanSuggestion.user_id == user_id)
            .group_by(ExpensePlanSuggestion.status)
            .all()
        )

        return SuggestionListResponse(
            suggestions=[SuggestionResponse.model_validate(s) for s in suggestions],
            total=len(suggestions),
            pending=counts.get(SuggestionStatus.pending, 0),
            approved=counts.get(SuggestionStatus.approved, 0),
            rejected=counts.get(SuggestionStatus.rejected, 0),
        )

    def get_suggestion(self, user_id: str, suggestion_id: str) -> Optional[ExpensePlanSuggestion]:
        return self.db.query(ExpensePlanSuggestion).filter(
            ExpensePlanSuggestion.id == suggestion_id,
            ExpensePlanSuggestion.user_id == user_id,
        ).first()

    def _get_pending(self, user_id: str, suggestion_id: str) -> Optional[ExpensePlanSuggestion]:
        return self.db.query(ExpensePlanSuggestion).filter(
            ExpensePlanSuggestion.id == suggestion_id,
            ExpensePlanSuggestion.user_id == user_id,
            ExpensePlanSuggestion.status == SuggestionStatus.pending,
        ).first()

    # Review

    def approve(
        self,
        user_id: str,
        suggestion_id: str,
        options: Optional[ApproveSuggestionRequest] = None
    ) -> ApprovalResult:
        """Turn a pending suggestion into an active expense plan."""
        options = options or ApproveSuggestionRequest()
        suggestion = self._get_pending(user_id, suggestion_id)
        if not suggestion:
            return ApprovalResult(
                success=False,
                suggestion_id=suggestion_id,
                message="Suggestion not found or already processed",
            )

        contribution = (
            options.custom_monthly_contribution
            if options.custom_monthly_contribution is not None
            else suggestion.monthly_contribution
        )

        try:
            plan = ExpensePlan(
                user_id=user_id,
                name=options.custom_name or suggestion.suggested_name,
                description=suggestion.description,
                plan_type=plan_type_for(suggestion.expense_type),
                purpose=suggestion.suggested_purpose or SuggestedPurpose.sinking_fund,
                is_essential=suggestion.is_essential,
                category_id=options.category_id or suggestion.category_id,
                target_amount=suggestion.yearly_total,
                monthly_contribution=contribution,
                frequency=plan_frequency_for(suggestion.frequency_type),
                next_due_date=suggestion.next_expected_date,
                is_active=True,
            )
            self.db.add(plan)
            self.db.flush()

            suggestion.status = SuggestionStatus.approved
            suggestion.approved_expense_plan_id = plan.id
            suggestion.reviewed_at = datetime.utcnow()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to approve suggestion {suggestion_id}: {e}")
            return ApprovalResult(
                success=False,
                suggestion_id=suggestion_id,
                message=f"Failed to create expense plan: {e}",
            )

        logger.info(f"Approved suggestion {suggestion_id}, created expense plan {plan.id}")
        return ApprovalResult(
            success=True,
            suggestion_id=suggestion_id,
            expense_plan_id=plan.id,
            message="Expense plan created successfully",
        )

    def reject(self, user_id: str, suggestion_id: str, reason: Optional[str] = None) -> ApprovalResult:
        suggestion = self._get_pending(user_id, suggestion_id)
        if not suggestion:
            return ApprovalResult(
                success=False,
                suggestion_id=suggestion_id,
                message="Suggestion not found or already processed",
            )

        suggestion.status = SuggestionStatus.rejected
        suggestion.rejection_reason = reason
        suggestion.reviewed_at = datetime.utcnow()
        self.db.commit()

        logger.info(f"Rejected suggestion {suggestion_id}")
        return ApprovalResult(success=True, suggestion_id=suggestion_id, message="Suggestion rejected")

    def bulk_approve(self, user_id: str, suggestion_ids: List[str]) -> BulkActionResult:
        results = [self.approve(user_id, sid) for sid in suggestion_ids]
        return self._bulk_result(results)

    def bulk_reject(
        self,
        user_id: str,
        suggestion_ids: List[str],
        reason: Optional[str] = None
    ) -> BulkActionResult:
        results = [self.reject(user_id, sid, reason) for sid in suggestion_ids]
        return self._bulk_result(results)

    def _bulk_result(self, results: List[ApprovalResult]) -> BulkActionResult:
        successful = sum(1 for r in results if r.success)
        return BulkActionResult(
            processed=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )

    def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Mark pending suggestions past their expiry date as expired."""
        now = now or datetime.utcnow()
        expired = self.db.query(ExpensePlanSuggestion).filter(
            ExpensePlanSuggestion.status == SuggestionStatus.pending,
            ExpensePlanSuggestion.expires_at < now,
        ).update(
            {ExpensePlanSuggestion.status: SuggestionStatus.expired},
            synchronize_session=False,
        )
        self.db.commit()

        if expired:
            logger.info(f"Marked {expired} suggestions as expired")
        return expired
