"""
Pattern classification with an AI provider, under a daily call budget.

Uncached patterns are sent to the provider in batches. Any batch that cannot
be sent (no credentials, quota spent) or that fails is classified with the
keyword rules instead, so classify() always returns a result per request.
"""

import asyncio
import json
import logging
import math
import re
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

from recurwise.ai.client import AIClient, get_ai_client
from recurwise.ai.prompts import PATTERN_CLASSIFICATION_SYSTEM, PATTERN_CLASSIFICATION_USER
from recurwise.config import settings
from recurwise.models.suggestion import ExpenseType
from recurwise.schemas.classification import (
    ApiUsageStats,
    BatchClassificationResult,
    ClassificationRequest,
    ClassificationResult,
)
from recurwise.services.classification_cache import ClassificationCache, DailyQuota, cache_key
from recurwise.services.classification_rules import classify_with_rules, extract_plan_name

logger = logging.getLogger(__name__)

_MATH_EXPRESSION = re.compile(
    r'"monthlyContribution"\s*:\s*([\d.]+)\s*([*/+-])\s*([\d.]+)'
)


class ClassificationProvider(Protocol):
    def has_credentials(self) -> bool:
        ...

    async def classify_batch(
        self, requests: List[ClassificationRequest]
    ) -> Tuple[List[Dict[str, Any]], int]:
        ...


def fix_math_expressions(text: str) -> str:
    """Evaluate `"monthlyContribution": 22.90 * 4.33` style values into numbers."""

    def evaluate(match: re.Match) -> str:
        try:
            a, op, b = float(match.group(1)), match.group(2), float(match.group(3))
        except ValueError:
            return match.group(0)

        if op == "*":
            value = a * b
        elif op == "/":
            value = a / b if b else 0.0
        elif op == "+":
            value = a + b
        else:
            value = a - b

        logger.debug(f"Fixed math expression: {a} {op} {b} = {round(value, 2)}")
        return f'"monthlyContribution": {round(value, 2)}'

    return _MATH_EXPRESSION.sub(evaluate, text)


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def coerce_ai_result(item: Dict[str, Any], request: ClassificationRequest) -> ClassificationResult:
    """Turn one raw provider item into a valid result, fixing fields one by one."""
    try:
        expense_type = ExpenseType(str(item.get("expenseType", "")).strip().lower())
    except ValueError:
        expense_type = ExpenseType.other_fixed

    contribution = _as_number(item.get("monthlyContribution"))
    if contribution is None or contribution < 0:
        contribution = 0.0

    confidence = _as_number(item.get("confidence"))
    if confidence is None:
        confidence = 50
    confidence = int(round(max(0.0, min(100.0, confidence))))

    name = item.get("suggestedPlanName")
    if not isinstance(name, str) or not name.strip():
        name = extract_plan_name(request.merchant_name, "Unnamed Expense")

    reasoning = item.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        reasoning = "AI classification"

    return ClassificationResult(
        pattern_id=request.pattern_id,
        expense_type=expense_type,
        is_essential=_as_bool(item.get("isEssential")),
        suggested_name=name.strip(),
        monthly_contribution=round(contribution, 2),
        confidence=confidence,
        reasoning=reasoning,
    )


class LLMClassificationProvider:
    """Batch classification through the configured litellm provider."""

    def __init__(self, client: Optional[AIClient] = None, max_tokens: Optional[int] = None):
        self.client = client or get_ai_client()
        self.max_tokens = max_tokens or settings.max_tokens_per_request

    def has_credentials(self) -> bool:
        return self.client.has_credentials()

    def build_prompt(self, requests: List[ClassificationRequest]) -> str:
        patterns = [
            {
                "index": index,
                "patternId": r.pattern_id,
                "merchant": r.merchant_name or "Unknown",
                "category": r.category_name or "Uncategorized",
                "description": r.representative_description,
                "averageAmount": f"{r.average_amount:.2f}",
                "frequency": r.frequency_type.value,
                "occurrences": r.occurrence_count,
            }
            for index, r in enumerate(requests)
        ]
        return PATTERN_CLASSIFICATION_USER.format(
            patterns_json=json.dumps(patterns, indent=2),
            expense_types=", ".join(t.value for t in ExpenseType),
        )

    async def classify_batch(
        self, requests: List[ClassificationRequest]
    ) -> Tuple[List[Dict[str, Any]], int]:
        data, tokens = await self.client.complete_json(
            system_prompt=PATTERN_CLASSIFICATION_SYSTEM,
            user_prompt=self.build_prompt(requests),
            temperature=0.1,
            max_tokens=self.max_tokens,
            repair=fix_math_expressions,
        )

        items = data.get("classifications") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise ValueError("AI response does not contain a classifications array")

        return [item for item in items if isinstance(item, dict)], tokens


class PatternClassifier:
    """Classifies detected patterns, reusing cached answers and respecting the daily quota."""

    def __init__(
        self,
        provider: ClassificationProvider,
        cache: Optional[ClassificationCache] = None,
        quota: Optional[DailyQuota] = None,
        batch_size: Optional[int] = None,
        max_concurrent_batches: Optional[int] = None,
        request_timeout_seconds: Optional[float] = None,
        cost_per_token: Optional[float] = None,
    ):
        self.provider = provider
        if cache is None:
            cache = ClassificationCache(settings.classification_cache_ttl_minutes)
        if quota is None:
            quota = DailyQuota(settings.pattern_max_daily_calls)
        self.cache = cache
        self.quota = quota
        self.batch_size = batch_size or settings.pattern_batch_size
        self.max_concurrent_batches = max_concurrent_batches or settings.max_concurrent_batches
        self.request_timeout_seconds = request_timeout_seconds or settings.ai_request_timeout_seconds
        self.cost_per_token = settings.cost_per_token if cost_per_token is None else cost_per_token

    async def classify(
        self,
        requests: List[ClassificationRequest],
        user_id: Optional[str] = None
    ) -> BatchClassificationResult:
        started = time.perf_counter()
        logger.info(f"Classifying {len(requests)} patterns for user {user_id}")

        resolved: Dict[str, ClassificationResult] = {}
        pending: Dict[str, ClassificationRequest] = {}

        for request in requests:
            key = cache_key(request)
            if key in resolved or key in pending:
                continue
            cached = self.cache.get(key)
            if cached is not None:
                resolved[key] = cached
            else:
                pending[key] = request

        logger.info(f"Cache: {len(resolved)} hits, {len(pending)} distinct misses")

        tokens_used = 0
        if pending:
            distinct = list(pending.values())
            if not self.provider.has_credentials():
                logger.warning("No AI provider credentials configured, using rule-based classification")
                outcomes = [([classify_with_rules(r) for r in distinct], 0)]
            else:
                semaphore = asyncio.Semaphore(self.max_concurrent_batches)
                batches = [
                    distinct[i:i + self.batch_size]
                    for i in range(0, len(distinct), self.batch_size)
                ]
                outcomes = await asyncio.gather(
                    *(self._classify_batch(batch, semaphore) for batch in batches)
                )

            by_pattern_id = {}
            for results, tokens in outcomes:
                tokens_used += tokens
                for result in results:
                    by_pattern_id[result.pattern_id] = result
            for key, request in pending.items():
                resolved[key] = by_pattern_id[request.pattern_id]

        classifications = [
            resolved[cache_key(r)].model_copy(update={"pattern_id": r.pattern_id})
            for r in requests
        ]

        processing_time_ms = int((time.perf_counter() - started) * 1000)
        estimated_cost = tokens_used * self.cost_per_token
        logger.info(
            f"Classification complete: {len(classifications)} patterns, {tokens_used} tokens, "
            f"${estimated_cost:.4f} estimated cost, {processing_time_ms}ms"
        )

        return BatchClassificationResult(
            classifications=classifications,
            tokens_used=tokens_used,
            estimated_cost=estimated_cost,
            processing_time_ms=processing_time_ms,
        )

    async def _classify_batch(
        self,
        batch: List[ClassificationRequest],
        semaphore: asyncio.Semaphore
    ) -> Tuple[List[ClassificationResult], int]:
        async with semaphore:
            if not self.quota.try_acquire():
                logger.warning(
                    f"Daily AI call limit reached, using rules for {len(batch)} patterns"
                )
                return [classify_with_rules(r) for r in batch], 0

            try:
                items, tokens = await asyncio.wait_for(
                    self.provider.classify_batch(batch),
                    timeout=self.request_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"AI classification timed out after {self.request_timeout_seconds}s, using rules"
                )
                return [classify_with_rules(r) for r in batch], 0
            except Exception as e:
                logger.error(f"Batch classification failed, using rules: {e}", exc_info=True)
                return [classify_with_rules(r) for r in batch], 0

        by_id = {str(item.get("patternId")): item for item in items}
        results = []
        for request in batch:
            item = by_id.get(request.pattern_id)
            if item is None:
                logger.warning(f"No AI result for pattern {request.pattern_id}, using rules")
                results.append(classify_with_rules(request))
                continue
            result = coerce_ai_result(item, request)
            self.cache.put(cache_key(request), result)
            results.append(result)

        return results, tokens

    def usage_stats(self) -> ApiUsageStats:
        quota = self.quota.stats()
        return ApiUsageStats(
            daily_api_calls=quota["used"],
            max_daily_api_calls=quota["max"],
            remaining_calls=quota["remaining"],
            cache_size=len(self.cache),
        )

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Classification cache cleared")
