from recurwise.ai.prompts.pattern_classification import (
    PATTERN_CLASSIFICATION_SYSTEM,
    PATTERN_CLASSIFICATION_USER,
)

__all__ = [
    "PATTERN_CLASSIFICATION_SYSTEM",
    "PATTERN_CLASSIFICATION_USER",
]
