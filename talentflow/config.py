"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
Cache TTLs, the never-cache skip-list and the cross-resource invalidation
map live here so that routes and middleware never hardcode them.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_LLM_KEY = "sk-dev-key"


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False
    api_prefix: str = Field(
        default="/api",
        description="Mount point of the versionless HTTP API; empty string mounts at root",
    )

    # ------------------------------------------------------------------ #
    # Cache store
    # ------------------------------------------------------------------ #
    cache_enabled: bool = Field(
        default=True,
        description="Master switch. False selects the null backend (every read misses).",
    )
    redis_url: str = Field(
        default="",
        description="Redis connection URL. Empty disables caching without failing startup.",
    )
    redis_connect_timeout_seconds: float = Field(default=5.0, gt=0, le=30)
    redis_command_timeout_seconds: float = Field(default=5.0, gt=0, le=30)
    cache_reconnect_interval_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Minimum wait between reconnect attempts after a failed connect",
    )

    # ------------------------------------------------------------------ #
    # TTL policy (seconds)
    # ------------------------------------------------------------------ #
    cache_analysis_ttl_seconds: int = Field(
        default=86_400,
        ge=1,
        description="CV / JD / ranking results produced by the LLM",
    )
    cache_fallback_ttl_seconds: int = Field(
        default=3_600,
        ge=1,
        description="Degraded heuristic results; short so the LLM is retried soon",
    )
    cache_api_ttl_seconds: int = Field(
        default=3_600,
        ge=1,
        description="Default TTL for cached GET responses",
    )
    cache_session_ttl_seconds: int = Field(default=604_800, ge=1)
    cache_route_ttls: dict[str, int] = Field(
        default={
            "/api/cv-intelligence": 1_800,
            "/api/analytics": 7_200,
        },
        description="Per-route GET TTL overrides, longest path prefix wins",
    )
    cache_skip_paths: list[str] = Field(
        default=[
            "/auth/profile",
            "/auth/check",
            "/notifications",
            "/support/my-tickets",
            "/health",
            "/api/cache",
        ],
        description=(
            "Path substrings that are never HTTP-cached. Per-caller responses "
            "must be listed here: the cache key carries no identity."
        ),
    )
    cache_invalidation_map: dict[str, list[str]] = Field(
        default={
            "/api/support": ["/api/analytics"],
            "/api/cv-intelligence": ["/api/analytics"],
        },
        description="Mutations under a key prefix also evict the listed path prefixes",
    )

    # ------------------------------------------------------------------ #
    # External analysis (LiteLLM)
    # ------------------------------------------------------------------ #
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible base URL (or a LiteLLM proxy)",
    )
    llm_api_key: SecretStr = Field(
        default=SecretStr(_DEV_LLM_KEY),
        description="Bearer credential for the analysis provider",
    )
    llm_model: str = Field(default="openai/gpt-4o-mini")
    llm_timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    llm_max_input_chars: int = Field(
        default=4_000,
        ge=200,
        description="CV / JD text is truncated to this length inside prompts",
    )

    # ------------------------------------------------------------------ #
    # Derived / Computed
    # ------------------------------------------------------------------ #
    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @model_validator(mode="after")
    def _validate_cache_policy(self) -> Settings:
        bad = [path for path, ttl in self.cache_route_ttls.items() if ttl < 1]
        if bad:
            raise ValueError(f"cache_route_ttls must be positive integers: {', '.join(bad)}")
        self.api_prefix = self.api_prefix.rstrip("/")
        return self

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> Settings:
        """Refuse to start in production with the development LLM key."""
        if self.environment != Environment.PROD:
            return self
        if self.llm_api_key.get_secret_value() in ("", _DEV_LLM_KEY):
            raise RuntimeError(
                "PRODUCTION STARTUP BLOCKED -- LLM_API_KEY is unset or still the dev default."
            )
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use FastAPI dependency injection via Depends(get_settings) in endpoints,
    or call directly in non-request contexts (startup, scripts).
    """
    return Settings()
