"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "Recurwise"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/db.sqlite"

    # AI Provider
    ai_provider: str = "openai"  # openrouter, ollama, openai, anthropic
    ai_model: str = "gpt-4o-mini"
    ai_base_url: Optional[str] = None  # For Ollama: http://localhost:11434

    # API Keys (optional based on provider)
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Pattern classification budget
    pattern_batch_size: int = 10
    pattern_max_daily_calls: int = 100
    classification_cache_ttl_minutes: int = 60 * 24
    cost_per_token: float = 0.000002
    max_tokens_per_request: int = 2000
    ai_request_timeout_seconds: float = 30.0
    max_concurrent_batches: int = 3

    # Pattern detection defaults
    detection_months_to_analyze: int = 12
    detection_min_occurrences: int = 2
    detection_min_confidence: int = 60
    detection_similarity_threshold: int = 60

    # Suggestions
    fallback_min_monthly_average: float = 30.0
    fallback_min_transactions: int = 2
    fallback_months_to_analyze: int = 12
    discrepancy_threshold: float = 10.0
    discrepancy_cap: float = 999.99  # discrepancy_percentage is Numeric(5, 2)
    suggestion_expiry_days: int = 30

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
