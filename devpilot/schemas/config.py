"""Engine configuration schemas.

Loaded from defaults.toml by devpilot.settings.load_engine_config(). Every
threshold of the decision loop and the learning subsystem lives here so
deployments can tune them without code changes.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class DecisionConfig(BaseModel):
    """Thresholds and TTLs of the Analyze → Plan cycle."""

    rule_confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0,
        description="A rule match must exceed this confidence to skip the AI tier",
    )
    confident_plan_threshold: float = Field(
        default=0.8, ge=0.0, le=1.0,
        description="Analyses above this confidence act without approval",
    )
    rule_cache_ttl: int = Field(
        default=86_400, gt=0, description="Seconds a rule analysis stays cached",
    )
    ai_cache_ttl: int = Field(
        default=3_600, gt=0, description="Seconds an AI analysis stays cached",
    )
    ai_default_confidence: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Confidence assigned to AI analyses",
    )
    ai_auto_fix: bool = Field(
        default=False, description="Whether AI analyses may act without approval",
    )
    context_memories: int = Field(
        default=3, ge=0, description="Past outcomes injected into the AI prompt",
    )


class LearningConfig(BaseModel):
    """Rule synthesis, review and cleanup settings."""

    min_confidence: float = Field(default=0.85, ge=0.0, le=1.0)
    min_success_count: int = Field(default=5, ge=1)
    cleanup_days: int = Field(default=90, ge=1)
    generate_interval: int = Field(
        default=86_400, gt=0, description="Seconds between rule generation runs",
    )
    review_interval: int = Field(
        default=604_800, gt=0, description="Seconds between rule review runs",
    )
    cleanup_interval: int = Field(
        default=2_592_000, gt=0, description="Seconds between pattern cleanups",
    )


class AIConfig(BaseModel):
    """Fallback model settings for the AI tier."""

    model: str = Field(
        default="gpt-4o-mini", description="LiteLLM model identifier",
    )
    api_key_env: str = Field(
        default="OPENAI_API_KEY", description="Environment variable holding the API key",
    )
    api_base: str = Field(default="", description="Custom API base URL")
    max_tokens: int = Field(default=200, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout: int = Field(default=30, gt=0, description="Seconds per model call")


class StorageConfig(BaseModel):
    """Locations of the durable stores."""

    pattern_db_path: str = Field(
        default="~/.devpilot/patterns.db", description="SQLite pattern store",
    )
    memory_dir: str = Field(
        default="~/.devpilot/memory", description="Outcome memory directory",
    )


class EngineConfig(BaseModel):
    """Top-level devpilot configuration."""

    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
