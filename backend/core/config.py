"""
FairReview Configuration Module
===============================
Centralized configuration management using Pydantic Settings.
All environment variables are validated and typed.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses Pydantic v2 settings management for type safety and validation.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # === External Review Service (DeepSeek, OpenAI-compatible) ===
    deepseek_api_key: str = Field(default="", description="DeepSeek API key; empty disables external review")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com",
        description="Base URL of the OpenAI-compatible review endpoint"
    )
    llm_model: str = Field(default="deepseek-chat", description="Model identifier for external review")
    llm_timeout_seconds: float = Field(default=120.0, description="Per-request timeout for external review")
    llm_max_tokens: int = Field(default=4000, description="Completion token budget per chunk")
    llm_temperature: float = Field(default=0.1, description="Sampling temperature for external review")

    # === Review Limits ===
    max_document_chars: int = Field(default=50_000, description="Maximum accepted document length")
    min_document_chars: int = Field(default=20, description="Minimum trimmed length of a reviewable document")
    chunk_chars: int = Field(default=9_000, description="Chunk size for external review of long documents")

    # === Rate Limiting & Auth ===
    review_rate_limit_per_minute: int = Field(default=60, description="Review requests per client per minute")
    parse_rate_limit_per_minute: int = Field(default=30, description="Parse requests per client per minute")
    api_auth_token: str = Field(default="", description="Shared token required in X-API-Token when set")

    # === Document Storage ===
    upload_dir: Path = Field(default=Path("./uploads"), description="Upload directory")
    max_file_size_mb: int = Field(default=10, description="Maximum file size in MB")

    # === Review History ===
    history_dir: Path = Field(default=Path("./cache/history"), description="Review history cache directory")
    history_max_records: int = Field(default=50, description="Number of review records kept")

    # === Server Configuration ===
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    debug: bool = Field(default=False, description="Debug mode")

    # === Logging ===
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("upload_dir", "history_dir", mode="before")
    @classmethod
    def ensure_dir(cls, v: str | Path) -> Path:
        """Ensure the directory exists."""
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def external_review_enabled(self) -> bool:
        """External review runs only when a credential is configured."""
        return bool(self.deepseek_api_key)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    settings = Settings()
    return settings


# Sentence terminators of Chinese policy text (full-width)
SENTENCE_TERMINATORS = frozenset("。；！？")

# Line breaks also end a sentence, but are not part of it
SENTENCE_BOUNDARIES = SENTENCE_TERMINATORS | {"\n"}

# Chunk cut points also accept ASCII exclamation and question marks
CHUNK_TERMINATORS = frozenset("。；！？!?")

# Substrings that mark a failed upstream text extraction
EXTRACTION_FAILURE_MARKERS = ("无法提取", "解析失败")

# Severity tiers in descending order
SEVERITY_LEVELS = {
    "high": {"rank": 3, "label": "高风险"},
    "medium": {"rank": 2, "label": "中风险"},
    "low": {"rank": 1, "label": "低风险"},
}

# Governing regulation cited by every rule
REGULATION_TITLE = "《公平竞争审查条例实施办法》"
