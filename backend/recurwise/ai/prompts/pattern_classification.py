"""AI prompt for classifying recurring payment patterns into expense types."""

PATTERN_CLASSIFICATION_SYSTEM = """You are a financial expense classification expert. You analyze recurring payment patterns and classify them for expense planning.

Always respond with valid JSON in the exact format requested."""

PATTERN_CLASSIFICATION_USER = """Analyze these recurring payment patterns and classify each one for expense planning.

PATTERNS TO CLASSIFY:
{patterns_json}

EXPENSE TYPES AVAILABLE:
{expense_types}

For each pattern, determine:
1. expenseType: The most appropriate type from the list above
2. isEssential: true if this is a necessary expense (utilities, insurance, mortgage), false for discretionary
3. suggestedPlanName: A clear, user-friendly name for the expense plan (e.g., "Netflix Subscription", "Home Insurance"). Make names unique: if several patterns look alike (like multiple cafe visits), tell them apart with the merchant name or description.
4. monthlyContribution: The CALCULATED amount to save monthly, from averageAmount and frequency. Write the final number only, never a formula.
5. confidence: 0-100 based on how certain you are about the classification
6. reasoning: Brief explanation of your classification

FREQUENCY MULTIPLIERS for monthlyContribution (calculate the result, don't write the formula):
- weekly: averageAmount multiplied by 4.33
- biweekly: averageAmount multiplied by 2.17
- monthly: use averageAmount as-is
- quarterly: averageAmount divided by 3
- semiannual: averageAmount divided by 6
- annual: averageAmount divided by 12

CRITICAL JSON FORMATTING RULES:
- monthlyContribution MUST be a plain number (e.g., 99.15), NOT an expression (e.g., 22.90 * 4.33)
- All numbers must be numeric values, not strings or formulas

Respond with JSON only:
{{
  "classifications": [
    {{
      "patternId": "<string>",
      "expenseType": "<expense type>",
      "isEssential": <boolean>,
      "suggestedPlanName": "<string>",
      "monthlyContribution": <number>,
      "confidence": <number>,
      "reasoning": "<string>"
    }}
  ]
}}"""
