# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Application Settings

Configuration management using pydantic-settings.
Supports environment variables and .env files.

Well-known variable names (OPENROUTER_API_KEY, UNIFAI_AGENT_API_KEY,
HTTPS_PROXY, PORT, CORS_ORIGIN, NODE_ENV) are accepted alongside the
prefixed forms.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Central model constant for the analysis endpoint
DEFAULT_ANALYSIS_MODEL = "anthropic/claude-3-7-sonnet-20250219"

# Credentials with this prefix are Anthropic keys
ANTHROPIC_KEY_PREFIX = "sk-ant-"


class LLMSettings(BaseSettings):
    """Model provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_", env_file=".env", extra="ignore", populate_by_name=True
    )

    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLM_API_KEY", "OPENROUTER_API_KEY"),
        description="Credential; its prefix selects the upstream backend",
    )
    proxy_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("LLM_PROXY_URL", "HTTPS_PROXY", "HTTP_PROXY"),
    )

    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")
    anthropic_base_url: str | None = Field(default=None)

    request_timeout: int = Field(default=300, ge=1, description="Seconds")
    default_max_tokens: int = Field(
        default=4096, ge=1, description="Used when a backend requires max_tokens"
    )


class ToolSettings(BaseSettings):
    """Tool provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLS_", env_file=".env", extra="ignore", populate_by_name=True
    )

    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TOOLS_API_KEY", "UNIFAI_AGENT_API_KEY"),
    )
    dynamic_tools: bool = Field(default=True)
    invoke_timeout: float = Field(default=120.0, gt=0, description="Seconds")


class LoopSettings(BaseSettings):
    """Tool-call loop limits."""

    model_config = SettingsConfigDict(
        env_prefix="LOOP_", env_file=".env", extra="ignore", populate_by_name=True
    )

    max_iterations: int | None = Field(
        default=25,
        ge=1,
        description="Maximum model calls per request; unset for no cap",
    )


class DatabaseSettings(BaseSettings):
    """Audit store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=".env", extra="ignore", populate_by_name=True
    )

    url: str = Field(
        default="memory://",
        description="memory:// for the in-process store, or an async SQLAlchemy URL",
    )
    echo: bool = Field(default=False, description="Echo SQL queries")

    @property
    def is_memory(self) -> bool:
        return self.url.startswith("memory")


class AnalysisSettings(BaseSettings):
    """Token analysis endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_", env_file=".env", extra="ignore", populate_by_name=True
    )

    model: str = Field(default=DEFAULT_ANALYSIS_MODEL)
    public_dir: str = Field(
        default="public",
        validation_alias=AliasChoices("ANALYSIS_PUBLIC_DIR", "PUBLIC_DIR"),
    )


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    log_level: str | None = Field(default=None, validation_alias="LOG_LEVEL")
    log_format: str | None = Field(default=None, validation_alias="LOG_FORMAT")  # json or human
    metrics_enabled: bool = Field(default=True, validation_alias="METRICS_ENABLED")


class Settings(BaseSettings):
    """
    Main application settings.

    Usage:
        settings = get_settings()
        print(settings.llm.request_timeout)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Toolrelay")
    app_version: str = Field(default="1.0.0")
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )  # development, staging, production, test

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    cors_origin: str = Field(default="*")

    # Sub-settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    loop: LoopSettings = Field(default_factory=LoopSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]

    @property
    def log_level(self) -> str:
        if self.observability.log_level:
            return self.observability.log_level.upper()
        return "DEBUG" if self.is_development else "INFO"

    @property
    def log_format(self) -> str:
        if self.observability.log_format:
            return self.observability.log_format
        return "human" if self.is_development else "json"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for the application lifetime.
    """
    return Settings()


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ANTHROPIC_KEY_PREFIX",
    "DEFAULT_ANALYSIS_MODEL",
    "Settings",
    "LLMSettings",
    "ToolSettings",
    "LoopSettings",
    "DatabaseSettings",
    "AnalysisSettings",
    "ObservabilitySettings",
    "get_settings",
]
