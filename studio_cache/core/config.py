# studio_cache/core/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from studio_cache.core.cache import CacheOptions


class Settings(BaseSettings):
    """
    Service settings with environment variable support.

    Configuration priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values

    Environment variables are matched case-insensitively:
    e.g., CACHE_MAX_SIZE -> cache_max_size
    """

    # ============================================================================
    # ENVIRONMENT & APPLICATION INFO
    # ============================================================================
    app_name: str = "Studio Cache Service"
    app_version: str = "0.1.0"
    environment: str = Field(
        default="development",
        description="Current environment: development, staging, production",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # ============================================================================
    # API CONFIGURATION
    # ============================================================================
    api_prefix: str = "/api/v1"
    docs_url: str = "/docs"
    redoc_url: str = "/redoc"
    openapi_url: str = "/openapi.json"

    # ============================================================================
    # CORS CONFIGURATION
    # ============================================================================
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # ============================================================================
    # CACHING CONFIGURATION
    # ============================================================================
    cache_default_ttl_ms: Optional[int] = Field(
        default=5 * 60 * 1000,
        description="Default entry lifetime in milliseconds. None = never expire",
    )
    cache_max_size: Optional[int] = Field(
        default=1000, ge=1, description="Maximum entries per cache. None = unbounded"
    )
    cache_names: List[str] = Field(
        default=["sessions", "bookings", "projects", "equipment"],
        description="Caches created when the application starts",
    )
    cache_enabled: bool = Field(
        default=True,
        description="When false no caches are created and registry memoizers call through",
    )
    memoize_coalesce: bool = Field(
        default=False,
        description="Share one in-flight call per key in registry async memoizers",
    )

    # ============================================================================
    # PERFORMANCE MONITORING
    # ============================================================================
    perf_threshold_ms: float = Field(
        default=1000.0, gt=0, description="Requests slower than this are logged"
    )

    # ============================================================================
    # LOGGING CONFIGURATION
    # ============================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file_level: Optional[str] = Field(
        default=None, description="File sink level. None = same as log_level"
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path. None = stderr only"
    )
    log_format: str = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<magenta>{extra[cache]}</magenta> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )
    log_serialize: bool = Field(default=False, description="Emit JSON log records")
    log_cache_events: bool = Field(
        default=False,
        description="Emit per-cache DEBUG records (evictions, expirations)",
    )
    log_rotation: str = "10 MB"
    log_retention: str = "14 days"
    log_compression: str = Field(default="zip", description="Empty string disables compression")
    log_backtrace: bool = True
    log_diagnose: bool = False

    # ============================================================================
    # VALIDATORS
    # ============================================================================
    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of the allowed values"""
        allowed = ["development", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {', '.join(allowed)}")
        return v.lower()

    @field_validator("log_level", "log_file_level")
    @classmethod
    def validate_log_level(cls, v: Optional[str]) -> Optional[str]:
        """Ensure log level is valid"""
        if v is None:
            return v
        allowed = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {', '.join(allowed)}")
        return v.upper()

    # ============================================================================
    # COMPUTED PROPERTIES
    # ============================================================================
    @computed_field
    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == "production"

    @computed_field
    @property
    def effective_console_log_level(self) -> str:
        """Console level; DEBUG whenever debug mode is on"""
        return "DEBUG" if self.debug else self.log_level

    @computed_field
    @property
    def effective_file_log_level(self) -> str:
        """File sink level, falling back to the console level"""
        return self.log_file_level or self.effective_console_log_level

    @property
    def default_cache_options(self) -> CacheOptions:
        """Options applied to every cache the registry creates"""
        return CacheOptions(ttl_ms=self.cache_default_ttl_ms, max_size=self.cache_max_size)

    @computed_field
    @property
    def fastapi_kwargs(self) -> dict:
        """FastAPI initialization arguments based on environment"""
        kwargs = {
            "title": self.app_name,
            "version": self.app_version,
            "debug": self.debug,
            "docs_url": self.docs_url,
            "redoc_url": self.redoc_url,
            "openapi_url": self.openapi_url,
        }

        # No interactive docs in production
        if self.is_production:
            kwargs.update(
                {
                    "docs_url": None,
                    "redoc_url": None,
                    "openapi_url": None,
                }
            )

        return kwargs

    # ============================================================================
    # MODEL CONFIGURATION
    # ============================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance for dependency injection.

    Settings are loaded once and reused.
    To reset cache (e.g., in tests): get_settings.cache_clear()
    """
    return Settings()
