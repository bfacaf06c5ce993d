"""Pydantic configuration models with validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


def _normalize_path(value: Any) -> Path:
    """Normalize a path-like value. Never touches the filesystem."""
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise TypeError(f"Expected path-like value, got: {type(value)!r}")


def _split_names(value: Any) -> Any:
    """``"a, b"`` -> ``["a", "b"]``; lists pass through."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class HttpConfig(BaseModel):
    timeout_seconds: float = Field(default=30.0, description="Default request timeout.")
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        description="User-Agent for outgoing requests.",
    )
    proxy: Optional[str] = Field(default=None, description="Optional outbound proxy URL.")
    max_retries: int = Field(default=3, description="Retries for 429/503 responses.")
    backoff_base: float = Field(default=1.0, description="Backoff base in seconds.")
    rate_limit_rps: float = Field(default=5.0, description="Per-host requests per second.")
    validate_links: bool = Field(
        default=False,
        description="HEAD/range-check final URLs before returning them.",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http.timeout_seconds must be > 0")
        return v


class CacheConfig(BaseSettings):
    """Cache configuration (backend-agnostic)."""

    backend: Literal["diskcache", "redis"] = Field(
        default="diskcache",
        description="Cache backend: 'diskcache' (SQLite) or 'redis'",
    )
    directory: Path = Field(
        default=Path("./.cache/resolvarr"),
        alias="dir",
        description="Diskcache directory",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (only when backend=redis)",
    )
    ttl_seconds: int = Field(default=3600, description="Default TTL for cache entries")
    max_concurrent: int = Field(default=10, description="Max parallel cache ops")

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",  # CACHE_BACKEND, CACHE_REDIS_URL, ...
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_directory(cls, v: Any) -> Path:
        return _normalize_path(v)

    @field_validator("ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cache.ttl_seconds must be >= 0")
        return v


class TmdbConfig(BaseModel):
    api_key: Optional[str] = Field(default=None, description="TMDB v3 API key.")


class ProvidersConfig(BaseModel):
    enabled: Optional[list[str]] = Field(
        default=None,
        description="Provider names to run; None runs every registered provider.",
    )
    moviebox_key: Optional[str] = Field(
        default=None,
        description="Base64 HMAC key for the MovieBox API; MovieBox is idle without it.",
    )
    default_region: str = Field(default="USA7", description="ShowBox OSS region.")
    max_link_depth: int = Field(default=4, description="Resolver hand-off bound.")
    domain_sources: Optional[dict[str, str]] = Field(
        default=None,
        description="Provider key -> domain registry JSON URL; None keeps the built-in sources.",
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def _validate_enabled(cls, v: Any) -> Any:
        return _split_names(v)


class AggregatorConfig(BaseModel):
    provider_timeout_seconds: float = Field(
        default=45.0,
        description="Deadline per provider; a late provider contributes nothing.",
    )
    min_quality: Optional[str] = Field(
        default=None,
        description="Server-wide minimum quality, overridden per request.",
    )

    @field_validator("provider_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("aggregator.provider_timeout_seconds must be > 0")
        return v


class LoggingConfig(BaseModel):
    level: LogLevel = "INFO"
    format: Optional[LogFormat] = None


class AppConfig(BaseModel):
    """Canonical application configuration (validated, final).

    YAML is sectioned (http/logging/cache/tmdb/providers/aggregator).
    Environment variables are read by ``EnvOverrides`` so ``load.py`` keeps
    strict precedence: defaults < YAML < ENV < CLI.
    """

    app_name: str = Field(default="resolvarr", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    http: HttpConfig = Field(default_factory=HttpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    tmdb: TmdbConfig = Field(default_factory=TmdbConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)

    @property
    def log_level(self) -> LogLevel:
        return self.logging.level

    @property
    def log_format(self) -> LogFormat:
        return self.logging.format or "console"

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.logging.format is None:
            self.logging.format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """Dump configuration in the sectioned shape used by config.yaml."""
        cache = self.cache.model_dump(by_alias=True)
        cache["dir"] = str(self.cache.directory)
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": self.http.model_dump(),
            "logging": self.logging.model_dump(),
            "cache": cache,
            "tmdb": {"api_key": "***" if self.tmdb.api_key else None},
            "providers": self.providers.model_dump(exclude={"moviebox_key"}),
            "aggregator": self.aggregator.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """Environment-variable overrides (all optional).

    ``load.py`` reads the set values, maps them onto their sections and
    merges them above YAML. Examples:

    - RESOLVARR_LOG_LEVEL
    - RESOLVARR_TMDB_API_KEY
    - RESOLVARR_PROVIDERS_ENABLED=uhdmovies,moviesmod
    - RESOLVARR_PROVIDER_TIMEOUT_SECONDS
    """

    model_config = SettingsConfigDict(
        env_prefix="RESOLVARR_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    http_proxy: Optional[str] = None
    validate_links: Optional[bool] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_dir: Optional[Path] = None
    cache_ttl_seconds: Optional[int] = None

    tmdb_api_key: Optional[str] = None

    providers_enabled: Optional[str] = None
    moviebox_key: Optional[str] = None
    default_region: Optional[str] = None

    provider_timeout_seconds: Optional[float] = None
    min_quality: Optional[str] = None

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _validate_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _normalize_path(v)

    def to_update_dict(self) -> dict[str, Any]:
        """Only the values that were actually provided (non-None)."""
        return self.model_dump(exclude_none=True)
