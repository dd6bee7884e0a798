"""
Configuration for the Legal Analysis Service
============================================

Environment variables:
- LLM_MODE: none|openrouter|deepseek (default: none)
- OPENROUTER_API_KEY: API key for OpenRouter
- ANALYSIS_MODEL: Model for classification, burden and damages (default: anthropic/claude-sonnet-4)
- SCORING_MODEL: Cheaper model for confidence scoring (default: anthropic/claude-3-haiku)
- DEEPSEEK_API_KEY: API key for DeepSeek
- DEEPSEEK_MODEL: Model to use with DeepSeek (default: deepseek-chat)
- LLM_TIMEOUT: Seconds before a provider call is abandoned (default: 60)
- DATABASE_URL: SQLAlchemy URL for job persistence (default: sqlite:///./legal_analysis.db)
- REDIS_URL: Redis URL for the background queue
- DAMAGES_SUPPORT_RATIO: Share of claimed damages supported when the provider is unavailable
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from functools import lru_cache

from .schemas import LLMMode


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # LLM Configuration
    llm_mode: LLMMode = LLMMode.NONE

    # OpenRouter
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    analysis_model: str = "anthropic/claude-sonnet-4"
    scoring_model: str = "anthropic/claude-3-haiku"

    # DeepSeek (OpenAI-compatible)
    deepseek_api_key: Optional[str] = None
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-chat"

    # Timeouts (seconds) and limits
    llm_timeout: int = 60
    llm_max_tokens: int = 4096
    scoring_max_tokens: int = 1024

    # Persistence / queue
    database_url: str = "sqlite:///./legal_analysis.db"
    redis_url: str = "redis://localhost:6379/0"
    run_inline: bool = True  # POST runs the pipeline in-request instead of enqueueing

    # Jurisdiction applied when a case does not carry one
    default_jurisdiction: str = "US-CA"

    # Fallback policy (provider unavailable)
    damages_support_ratio: float = 0.5
    fallback_item_confidence: float = 0.5
    contradiction_penalty_per_item: float = 0.05
    contradiction_penalty_cap: float = 0.3
    majority_satisfied_bonus: float = 0.1
    burden_met_bonus: float = 0.2

    # Cost estimate (USD per million tokens, blended)
    cost_per_million_tokens: float = 9.0

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def validate_llm_config(self) -> List[str]:
        """Validate LLM configuration, return list of warnings"""
        warnings = []

        if self.llm_mode == LLMMode.OPENROUTER:
            if not self.openrouter_api_key:
                warnings.append("LLM_MODE=openrouter but OPENROUTER_API_KEY not set")

        elif self.llm_mode == LLMMode.DEEPSEEK:
            if not self.deepseek_api_key:
                warnings.append("LLM_MODE=deepseek but DEEPSEEK_API_KEY not set")

        if not 0 <= self.damages_support_ratio <= 1:
            warnings.append("DAMAGES_SUPPORT_RATIO should be between 0 and 1")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Convenience function
def get_llm_mode() -> LLMMode:
    """Get current LLM mode"""
    return get_settings().llm_mode
