"""
Keyword rules used when AI classification is unavailable.

Rules are evaluated in order; the first whose keywords appear at the start
of a word in the merchant, category or description wins. Short tokens that
prefix common words ("paga" in "pagamento", "tax" in "taxi") only match as
whole words.
"""

import re
from typing import Callable, List, Optional, Sequence

from recurwise.models.suggestion import ExpenseType, FrequencyType
from recurwise.schemas.classification import ClassificationRequest, ClassificationResult

RULE_REASONING = "Rule-based classification"

_COMPANY_SUFFIX = re.compile(
    r"\s*\b(?:s\.?r\.?l\.?|s\.?p\.?a\.?|inc\.?|ltd\.?|llc\.?)(?!\w)", re.IGNORECASE
)

MONTHLY_MULTIPLIERS = {
    FrequencyType.weekly: 4.33,
    FrequencyType.biweekly: 2.17,
    FrequencyType.monthly: 1,
}

MONTHLY_DIVISORS = {
    FrequencyType.quarterly: 3,
    FrequencyType.semiannual: 6,
    FrequencyType.annual: 12,
}


def monthly_contribution(amount: float, frequency: FrequencyType) -> float:
    """Convert a per-occurrence amount into a monthly saving amount."""
    absolute = abs(amount)
    if frequency in MONTHLY_DIVISORS:
        return round(absolute / MONTHLY_DIVISORS[frequency], 2)
    return round(absolute * MONTHLY_MULTIPLIERS.get(frequency, 1), 2)


def extract_plan_name(merchant_name: Optional[str], fallback: str) -> str:
    """Merchant name without company suffixes like SRL, SpA, Inc, Ltd, LLC."""
    if not merchant_name:
        return fallback
    cleaned = _COMPANY_SUFFIX.sub("", merchant_name).strip()
    return cleaned or fallback


def keyword_pattern(keywords: List[str], whole_words: Sequence[str] = ()) -> re.Pattern:
    parts = []
    if keywords:
        prefixes = "|".join(re.escape(k) for k in keywords)
        parts.append(rf"\b(?:{prefixes})")
    if whole_words:
        words = "|".join(re.escape(w) for w in whole_words)
        parts.append(rf"\b(?:{words})\b")
    return re.compile("|".join(parts))


class ClassificationRule:
    """One keyword family mapped to an expense type."""

    def __init__(
        self,
        keywords: List[str],
        expense_type: ExpenseType,
        is_essential: bool,
        confidence: int,
        name: Callable[[ClassificationRequest], str],
        whole_words: Sequence[str] = (),
    ):
        self.keywords = keywords
        self.whole_words = list(whole_words)
        self.expense_type = expense_type
        self.is_essential = is_essential
        self.confidence = confidence
        self.name = name
        self._pattern = keyword_pattern(keywords, whole_words)

    def matches(self, text: str) -> bool:
        return self._pattern.search(text) is not None


def merchant_or(fallback: str) -> Callable[[ClassificationRequest], str]:
    return lambda request: extract_plan_name(request.merchant_name, fallback)


def fixed(name: str) -> Callable[[ClassificationRequest], str]:
    return lambda request: name


CLASSIFICATION_RULES: List[ClassificationRule] = [
    ClassificationRule(
        ["netflix", "spotify", "disney", "hbo", "prime", "youtube", "apple music", "dazn", "sky"],
        ExpenseType.subscription, False, 80, merchant_or("Subscription"),
    ),
    ClassificationRule(
        ["electric", "enel", "gas", "water", "utility", "bolletta", "luce", "acqua"],
        ExpenseType.utility, True, 85, merchant_or("Utility Bill"),
    ),
    ClassificationRule(
        ["insurance", "assicura", "polizza", "allianz", "generali", "unipol", "axa"],
        ExpenseType.insurance, True, 85, merchant_or("Insurance"),
    ),
    # Rent is checked before mortgage so "housing rent" lands on rent
    ClassificationRule(
        ["rent", "affitto"],
        ExpenseType.rent, True, 90, fixed("Rent Payment"),
    ),
    ClassificationRule(
        ["mortgage", "mutuo", "housing"],
        ExpenseType.mortgage, True, 90, fixed("Mortgage Payment"),
    ),
    ClassificationRule(
        ["loan", "prestito", "finanziamento"],
        ExpenseType.loan, True, 75, merchant_or("Loan Payment"), whole_words=["rata"],
    ),
    ClassificationRule(
        ["salary", "stipendio", "wage", "payroll"],
        ExpenseType.salary, False, 90, fixed("Salary Income"), whole_words=["paga"],
    ),
    ClassificationRule(
        ["tasse", "irpef"],
        ExpenseType.tax, True, 80, merchant_or("Tax Payment"),
        whole_words=["tax", "taxes", "imu", "tari"],
    ),
]


def search_text(request: ClassificationRequest) -> str:
    parts = [request.merchant_name, request.category_name, request.representative_description]
    return " ".join(p for p in parts if p).lower()


def classify_with_rules(request: ClassificationRequest) -> ClassificationResult:
    """Deterministic classification from keywords; always succeeds."""
    text = search_text(request)

    expense_type = ExpenseType.other_fixed
    is_essential = False
    confidence = 50
    name = extract_plan_name(request.merchant_name, "Expense")

    for rule in CLASSIFICATION_RULES:
        if rule.matches(text):
            expense_type = rule.expense_type
            is_essential = rule.is_essential
            confidence = rule.confidence
            name = rule.name(request)
            break

    return ClassificationResult(
        pattern_id=request.pattern_id,
        expense_type=expense_type,
        is_essential=is_essential,
        suggested_name=name,
        monthly_contribution=monthly_contribution(request.average_amount, request.frequency_type),
        confidence=confidence,
        reasoning=RULE_REASONING,
    )
