"""
Configuration management using Pydantic.
Provides validation and type safety for application settings.
"""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DOMAIN_KEYWORDS = [
    "detail",
    "specification",
    "material",
    "door",
    "window",
    "wall",
    "floor",
    "ceiling",
    "acoustic",
    "fire rating",
    "schedule",
    "typical",
    "boq",
    "quantity",
    "item",
    "unit",
    "rate",
    "amount",
]

# Context budgets in estimated tokens. Groq entries are deliberately small to
# stay under free-tier request limits.
DEFAULT_MODEL_BUDGETS = {
    "gemini-2.5-flash": 1000000,
    "gemini-2.0-flash-exp": 1000000,
    "gemini-1.5-pro": 2000000,
    "gemini-1.5-flash": 1000000,
    "gemini-flash-latest": 1000000,
    "llama-3.3-70b-versatile": 1500,
    "llama-3.1-8b-instant": 300,
    "llama-3.1-70b-versatile": 1500,
    "llama-3.2-90b-text-preview": 1500,
    "mixtral-8x7b-32768": 4000,
    "gemma-7b-it": 1000,
    "gemma2-9b-it": 1000,
    "gpt-4o": 64000,
    "gpt-4o-mini": 64000,
}


class ChunkingSettings(BaseSettings):
    """Chunking strategy configuration."""

    chars_per_token: int = Field(default=4, ge=1, description="Characters per estimated token")
    window_tokens: int = Field(default=500, ge=10, description="Sliding window size in tokens")
    overlap_percent: int = Field(
        default=10, ge=10, le=25, description="Overlap between consecutive windows"
    )
    page_marker_pattern: str = Field(
        default=r"--- \[Page (\d+)\] ---",
        description="Regex marking page boundaries in parser output",
    )

    model_config = SettingsConfigDict(env_prefix="DOCCONTEXT_CHUNKING_")


class EmbeddingSettings(BaseSettings):
    """Embedding model configuration."""

    model_name: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2", description="Sentence-transformers model"
    )
    model_version: str = Field(
        default="minilm-l6-v2-paragraph-windows",
        description="Identifier stored on embedding records; bump to invalidate reuse",
    )
    device: Optional[str] = Field(default=None, description="Force a device (cpu/cuda)")
    batch_size: int = Field(default=32, ge=1, description="Encoding batch size")
    max_input_chars: int = Field(default=2000, ge=1, description="Input truncation per text")
    search_top_k: int = Field(default=50, ge=1, description="Chunks returned by similarity search")
    cache_capacity: int = Field(default=512, ge=1, description="LRU capacity of the record cache")

    model_config = SettingsConfigDict(env_prefix="DOCCONTEXT_EMBEDDINGS_")


class RetrievalSettings(BaseSettings):
    """Scoring and ranking configuration."""

    title_match_bonus: float = Field(default=100.0, description="Query is a substring of title")
    title_term_bonus: float = Field(default=20.0, description="Per query term found in title")
    body_occurrence_bonus: float = Field(default=3.0, description="Per term occurrence in body")
    domain_keyword_bonus: float = Field(
        default=30.0, description="Per domain keyword in both query and title"
    )
    min_term_length: int = Field(default=3, ge=1, description="Shortest query term considered")
    domain_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_DOMAIN_KEYWORDS))

    semantic_weight: float = Field(default=0.8, ge=0.0, le=1.0)
    keyword_weight: float = Field(default=0.2, ge=0.0, le=1.0)

    warning_ratio: float = Field(
        default=0.8, gt=0.0, le=1.0, description="Share of budget that triggers the advisory"
    )

    model_config = SettingsConfigDict(env_prefix="DOCCONTEXT_RETRIEVAL_")

    @field_validator("domain_keywords")
    @classmethod
    def _lowercase_keywords(cls, value: List[str]) -> List[str]:
        return [kw.strip().lower() for kw in value if kw and kw.strip()]


class BudgetSettings(BaseSettings):
    """Per-model token budgets."""

    model_budgets: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_MODEL_BUDGETS))
    default_budget: int = Field(default=32000, ge=1, description="Budget for unknown models")
    hybrid_fraction: float = Field(default=1.0, gt=0.0, le=1.0)
    keyword_fraction: float = Field(default=1.0, gt=0.0, le=1.0)
    emergency_fraction: float = Field(default=1.0, gt=0.0, le=1.0)

    model_config = SettingsConfigDict(env_prefix="DOCCONTEXT_BUDGET_")


class EmergencySettings(BaseSettings):
    """Last-resort substring extraction configuration."""

    context_chars: int = Field(default=300, ge=0, description="Characters kept on each side")
    max_windows_per_term: int = Field(default=3, ge=1)
    fallback_chars: int = Field(default=2000, ge=1, description="Head kept when nothing matches")
    separator: str = Field(default="\n...\n")

    model_config = SettingsConfigDict(env_prefix="DOCCONTEXT_EMERGENCY_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    format: str = Field(default="json", description="json or console")
    log_file: Optional[Path] = Field(default=None, description="Optional rotating log file")
    rotate_size: int = Field(default=10 * 1024 * 1024, ge=1024)
    backup_count: int = Field(default=5, ge=0)
    trace_max_events: int = Field(default=200, ge=1, description="Events kept per query trace")
    trace_keep_seconds: int = Field(default=600, ge=1, description="Trace expiry")

    model_config = SettingsConfigDict(env_prefix="DOCCONTEXT_LOGGING_")


class Settings(BaseSettings):
    """Main application settings."""

    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    budget: BudgetSettings = Field(default_factory=BudgetSettings)
    emergency: EmergencySettings = Field(default_factory=EmergencySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_nested_delimiter="__", extra="ignore"
    )


# Global settings instance
settings = Settings()
