"""Tests for AI pattern classification with cache, quota and rule fallback."""

import asyncio
import pytest

from recurwise.models.suggestion import ExpenseType, FrequencyType
from recurwise.schemas.classification import ClassificationRequest
from recurwise.services.classification_cache import ClassificationCache, DailyQuota
from recurwise.services.classification_rules import RULE_REASONING
from recurwise.services.pattern_classifier import (
    LLMClassificationProvider,
    PatternClassifier,
    coerce_ai_result,
    fix_math_expressions,
)


class FakeProvider:
    """Answers every pattern as an essential utility, counting calls."""

    def __init__(self, credentials=True, delay=0, error=None, skip=()):
        self.credentials = credentials
        self.delay = delay
        self.error = error
        self.skip = set(skip)
        self.batches = []

    def has_credentials(self):
        return self.credentials

    async def classify_batch(self, requests):
        self.batches.append([r.pattern_id for r in requests])
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        items = [
            {
                "patternId": r.pattern_id,
                "expenseType": "utility",
                "isEssential": True,
                "suggestedPlanName": f"AI {r.merchant_name}",
                "monthlyContribution": 42.5,
                "confidence": 88,
                "reasoning": "Looks like a bill",
            }
            for r in requests if r.pattern_id not in self.skip
        ]
        return items, 100


class FakeClient:
    """Stands in for AIClient.complete_json."""

    def __init__(self, data, tokens=120):
        self.data = data
        self.tokens = tokens
        self.calls = []

    def has_credentials(self):
        return True

    async def complete_json(self, **kwargs):
        self.calls.append(kwargs)
        return self.data, self.tokens


def make_request(pattern_id="group_0_0", merchant="Netflix", amount=15.99,
                 frequency=FrequencyType.monthly):
    return ClassificationRequest(
        pattern_id=pattern_id,
        merchant_name=merchant,
        category_name="Entertainment",
        representative_description=f"{merchant.upper()} PAYMENT",
        average_amount=amount,
        frequency_type=frequency,
        occurrence_count=6,
    )


def make_classifier(provider, quota=10, **kwargs):
    return PatternClassifier(
        provider,
        cache=ClassificationCache(),
        quota=DailyQuota(quota),
        **kwargs,
    )


class TestFixMathExpressions:
    """Test repair of formulas the model writes instead of numbers."""

    def test_multiplication(self):
        fixed = fix_math_expressions('{"monthlyContribution": 22.90 * 4.33}')
        assert fixed == '{"monthlyContribution": 99.16}'

    def test_division(self):
        fixed = fix_math_expressions('{"monthlyContribution": 200 / 3, "confidence": 80}')
        assert fixed == '{"monthlyContribution": 66.67, "confidence": 80}'

    def test_division_by_zero(self):
        assert fix_math_expressions('{"monthlyContribution": 5 / 0}') == '{"monthlyContribution": 0.0}'

    def test_plain_number_untouched(self):
        text = '{"monthlyContribution": 15.99}'
        assert fix_math_expressions(text) == text


class TestCoerceAiResult:
    """Test field-level validation of provider output."""

    def test_valid_item(self):
        result = coerce_ai_result({
            "expenseType": "Subscription",
            "isEssential": False,
            "suggestedPlanName": "Netflix Subscription",
            "monthlyContribution": "15.99",
            "confidence": 92,
            "reasoning": "Streaming",
        }, make_request())
        assert result.pattern_id == "group_0_0"
        assert result.expense_type == ExpenseType.subscription
        assert result.suggested_name == "Netflix Subscription"
        assert result.monthly_contribution == 15.99
        assert result.confidence == 92

    def test_invalid_values_replaced(self):
        result = coerce_ai_result({
            "expenseType": "streaming",
            "isEssential": "yes",
            "suggestedPlanName": "  ",
            "monthlyContribution": -5,
            "confidence": 150,
        }, make_request(merchant="Acme Srl"))
        assert result.expense_type == ExpenseType.other_fixed
        assert result.is_essential is True
        assert result.suggested_name == "Acme"
        assert result.monthly_contribution == 0.0
        assert result.confidence == 100
        assert result.reasoning == "AI classification"

    def test_non_numeric_confidence(self):
        result = coerce_ai_result({"confidence": "high", "monthlyContribution": "n/a"}, make_request())
        assert result.confidence == 50
        assert result.monthly_contribution == 0.0


class TestLLMClassificationProvider:
    """Test prompt building and response parsing."""

    def test_prompt_lists_patterns(self):
        provider = LLMClassificationProvider(client=FakeClient({}), max_tokens=500)
        prompt = provider.build_prompt([make_request(), make_request("group_1_0", "Spotify")])
        assert '"patternId": "group_1_0"' in prompt
        assert '"averageAmount": "15.99"' in prompt
        assert "other_fixed" in prompt

    @pytest.mark.anyio
    async def test_classifications_object(self):
        client = FakeClient({"classifications": [{"patternId": "group_0_0"}, "junk"]})
        provider = LLMClassificationProvider(client=client, max_tokens=500)

        items, tokens = await provider.classify_batch([make_request()])

        assert items == [{"patternId": "group_0_0"}]
        assert tokens == 120
        assert client.calls[0]["max_tokens"] == 500
        assert client.calls[0]["repair"] is fix_math_expressions

    @pytest.mark.anyio
    async def test_bare_array(self):
        provider = LLMClassificationProvider(client=FakeClient([{"patternId": "group_0_0"}]))
        items, _ = await provider.classify_batch([make_request()])
        assert len(items) == 1

    @pytest.mark.anyio
    async def test_missing_array(self):
        provider = LLMClassificationProvider(client=FakeClient({"result": "ok"}))
        with pytest.raises(ValueError):
            await provider.classify_batch([make_request()])


class TestPatternClassifier:
    """Test batching, caching and fallbacks."""

    @pytest.mark.anyio
    async def test_ai_results_in_request_order(self):
        provider = FakeProvider()
        classifier = make_classifier(provider, cost_per_token=0.001)
        requests = [make_request("group_0_0", "Netflix"), make_request("group_1_0", "Spotify")]

        result = await classifier.classify(requests, "u1")

        assert [c.pattern_id for c in result.classifications] == ["group_0_0", "group_1_0"]
        assert result.classifications[1].suggested_name == "AI Spotify"
        assert result.tokens_used == 100
        assert result.estimated_cost == pytest.approx(0.1)

    @pytest.mark.anyio
    async def test_cache_hit_skips_provider(self):
        provider = FakeProvider()
        classifier = make_classifier(provider)

        await classifier.classify([make_request("group_0_0")])
        second = await classifier.classify([make_request("group_9_9")])

        assert len(provider.batches) == 1
        assert second.classifications[0].pattern_id == "group_9_9"
        assert second.classifications[0].suggested_name == "AI Netflix"
        assert second.tokens_used == 0

    @pytest.mark.anyio
    async def test_identical_requests_sent_once(self):
        provider = FakeProvider()
        classifier = make_classifier(provider)

        result = await classifier.classify([
            make_request("group_0_0"), make_request("group_1_0"),
        ])

        assert provider.batches == [["group_0_0"]]
        assert [c.pattern_id for c in result.classifications] == ["group_0_0", "group_1_0"]
        assert result.classifications[1].expense_type == ExpenseType.utility

    @pytest.mark.anyio
    async def test_batches(self):
        provider = FakeProvider()
        classifier = make_classifier(provider, batch_size=2)
        requests = [make_request(f"group_{i}_0", f"Merchant {i}") for i in range(5)]

        await classifier.classify(requests)

        assert sorted(len(b) for b in provider.batches) == [1, 2, 2]
        assert classifier.usage_stats().daily_api_calls == 3

    @pytest.mark.anyio
    async def test_no_credentials_uses_rules(self):
        provider = FakeProvider(credentials=False)
        classifier = make_classifier(provider)

        result = await classifier.classify([make_request()])

        assert provider.batches == []
        assert result.classifications[0].reasoning == RULE_REASONING
        assert result.classifications[0].expense_type == ExpenseType.subscription

    @pytest.mark.anyio
    async def test_quota_exhausted_uses_rules(self):
        provider = FakeProvider()
        classifier = make_classifier(provider, quota=0)

        result = await classifier.classify([make_request()])

        assert provider.batches == []
        assert result.classifications[0].reasoning == RULE_REASONING
        stats = classifier.usage_stats()
        assert stats.remaining_calls == 0
        assert stats.cache_size == 0

    @pytest.mark.anyio
    async def test_quota_runs_out_mid_run(self):
        provider = FakeProvider()
        classifier = make_classifier(provider, quota=1, batch_size=1)
        requests = [make_request("group_0_0", "Netflix"), make_request("group_1_0", "Spotify")]

        result = await classifier.classify(requests)

        reasons = [c.reasoning for c in result.classifications]
        assert len(provider.batches) == 1
        assert reasons.count(RULE_REASONING) == 1

    @pytest.mark.anyio
    async def test_timeout_uses_rules(self):
        provider = FakeProvider(delay=1)
        classifier = make_classifier(provider, request_timeout_seconds=0.01)

        result = await classifier.classify([make_request()])

        assert result.classifications[0].reasoning == RULE_REASONING
        assert len(classifier.cache) == 0

    @pytest.mark.anyio
    async def test_provider_error_uses_rules(self):
        provider = FakeProvider(error=RuntimeError("boom"))
        classifier = make_classifier(provider)

        result = await classifier.classify([make_request()])

        assert result.classifications[0].reasoning == RULE_REASONING
        assert len(classifier.cache) == 0

    @pytest.mark.anyio
    async def test_missing_item_uses_rules(self):
        provider = FakeProvider(skip={"group_1_0"})
        classifier = make_classifier(provider)
        requests = [make_request("group_0_0", "Netflix"), make_request("group_1_0", "Spotify")]

        result = await classifier.classify(requests)

        assert result.classifications[0].reasoning == "Looks like a bill"
        assert result.classifications[1].reasoning == RULE_REASONING
        assert len(classifier.cache) == 1

    @pytest.mark.anyio
    async def test_clear_cache(self):
        classifier = make_classifier(FakeProvider())
        await classifier.classify([make_request()])
        assert classifier.usage_stats().cache_size == 1

        classifier.clear_cache()
        assert classifier.usage_stats().cache_size == 0
