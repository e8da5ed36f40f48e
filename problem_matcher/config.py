"""
Application configuration management.

Following Sandi Metz principles:
- Single Responsibility: Configuration loading and validation
- Small class: Settings grouped by component
- Clear naming: Descriptive property names
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration with validation.

    Loads from environment variables with fallback to .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application settings
    app_name: str = Field(default="ProblemMatcher", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # Embedding provider settings
    openai_api_key: str = Field(default="", description="OpenAI API key")
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model"
    )
    embedding_base_url: str = Field(
        default="https://api.openai.com/v1", description="Embedding API base URL"
    )
    embedding_max_batch_size: int = Field(default=100, ge=1, description="Batch size")
    embedding_max_retries: int = Field(default=3, ge=0, description="Max retries")
    embedding_retry_delay: float = Field(
        default=1.0, ge=0.0, description="Base retry delay in seconds"
    )
    embedding_requests_per_minute: int = Field(
        default=3000, ge=1, description="Provider request budget per minute"
    )
    embedding_timeout: float = Field(
        default=30.0, gt=0.0, description="Per-call timeout in seconds"
    )
    embedding_cache_ttl_seconds: float = Field(
        default=86400.0, ge=0.0, description="Provider embedding memo TTL seconds"
    )
    embedding_cache_max_entries: int = Field(
        default=5000, ge=1, description="Max provider embedding memos"
    )
    embedding_use_fallback: bool = Field(
        default=True, description="Degrade to fallback mode instead of failing"
    )

    # Keyword boost settings
    keyword_boost_enabled: bool = Field(default=True, description="Boost keywords")
    keyword_boost_factor: float = Field(
        default=0.02, ge=0.0, le=1.0, description="Boost per shared keyword"
    )
    max_keyword_boost: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Maximum total keyword boost"
    )

    # Cache settings
    cache_max_entries: int = Field(default=1000, ge=1, description="Max entries")
    cache_default_ttl_seconds: float = Field(
        default=300.0, ge=0.0, description="Default TTL seconds"
    )
    cache_cleanup_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Expired entry sweep interval"
    )

    # Matcher settings
    match_cache_ttl_seconds: float = Field(
        default=1800.0, ge=0.0, description="Match result TTL seconds"
    )
    match_default_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Similarity threshold"
    )
    match_max_results: int = Field(default=15, ge=1, description="Max results")
    match_max_candidates: int = Field(default=500, ge=1, description="Max candidates")
    match_page_size: int = Field(default=100, ge=1, description="Fetch page size")
    match_chunk_size: int = Field(default=20, ge=1, description="Enrichment chunk")
    match_enrichment_concurrency: int = Field(
        default=4, ge=1, le=32, description="Concurrent lookups per chunk"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def has_api_key(self) -> bool:
        """Check if an embedding credential is configured."""
        return bool(self.openai_api_key.strip())


# Global configuration instance
config = AppConfig()
