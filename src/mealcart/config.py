"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./mealcart.db"

    # Anthropic (optional, enables AI estimation and duplicate matching)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    ai_timeout: float = 60.0  # request timeout in seconds
    ai_max_retries: int = 3
    ai_max_tokens: int = 2048
    ai_batch_size: int = 40  # estimation requests per round-trip

    # Aggregation thresholds
    estimation_confidence_threshold: float = 0.5  # estimates at or below are ignored
    match_confidence_threshold: float = 0.7  # AI duplicate matches below are dropped
    fuzzy_match_threshold: float = 85.0  # rapidfuzz score for local duplicate matching
    local_matching_enabled: bool = True

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    @property
    def ai_configured(self) -> bool:
        """Check if an Anthropic API key is present."""
        return bool(self.anthropic_api_key.strip())

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
