"""
Tutors API Application Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    APP_VERSION: str = Field(default="1.0.0", description="Reported API version")

    # Database configuration
    DATABASE_URL: str = Field(
        ...,
        description="Database connection URL with asyncpg driver",
    )
    DATABASE_CONNECT_RETRIES: int = Field(
        default=3, ge=1, le=20, description="Connection attempts before giving up"
    )
    DATABASE_POOL_SIZE: int = Field(
        default=5, ge=1, le=100, description="Database connection pool size"
    )

    # Redis configuration
    REDIS_HOST: str = Field(default="localhost", description="Redis host")
    REDIS_PORT: int = Field(default=6379, ge=1, le=65535, description="Redis port")
    REDIS_USERNAME: Optional[str] = Field(default=None, description="Redis ACL user")
    REDIS_PASSWORD: Optional[str] = Field(default=None, description="Redis password")
    REDIS_DB: int = Field(default=0, ge=0, le=15, description="Redis database index")
    REDIS_MAX_RETRIES: int = Field(
        default=10, ge=0, le=100, description="Reconnect attempts before failing"
    )
    REDIS_RETRY_STEP_MS: int = Field(
        default=100, ge=1, description="Backoff increment per reconnect attempt"
    )
    REDIS_RETRY_MAX_DELAY_MS: int = Field(
        default=3000, ge=1, description="Backoff ceiling between reconnect attempts"
    )
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=5.0, gt=0, description="Socket connect/read timeout in seconds"
    )

    # Cache configuration
    CACHE_BACKEND: str = Field(
        default="redis", description="Key-value store backend (redis or memory)"
    )
    RESPONSE_CACHE_TTL: int = Field(
        default=300, ge=1, description="Response cache TTL in seconds"
    )
    RESPONSE_CACHE_PATHS: str = Field(
        default="/api/hello",
        description="Path prefixes served through the response cache (comma-separated)",
    )

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_WINDOW_MS: int = Field(
        default=15 * 60 * 1000, ge=1, description="General limiter window"
    )
    RATE_LIMIT_MAX_REQUESTS: int = Field(
        default=100, ge=1, description="General limiter ceiling per window"
    )

    # API configuration
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    PORT: int = Field(default=3000, ge=1, le=65535, description="API server port")
    CORS_ORIGIN: str = Field(
        default="",
        description="CORS allowed origins (comma-separated, empty allows all)",
    )

    # Development and debugging
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="console", description="console or json")

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL connection URL")
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("CACHE_BACKEND", "LOG_FORMAT")
    @classmethod
    def validate_lowercase_choice(cls, v, info):
        allowed = {
            "CACHE_BACKEND": ["redis", "memory"],
            "LOG_FORMAT": ["console", "json"],
        }[info.field_name]
        if v.lower() not in allowed:
            raise ValueError(f"{info.field_name} must be one of: {allowed}")
        return v.lower()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as list, falling back to a wildcard."""
        origins = [
            origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()
        ]
        return origins or ["*"]

    @property
    def response_cache_paths(self) -> List[str]:
        return [
            path.strip() for path in self.RESPONSE_CACHE_PATHS.split(",") if path.strip()
        ]

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL rewritten for the asyncpg driver."""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.DATABASE_URL

    @property
    def redis_display_url(self) -> str:
        """Redis location for logs, without credentials."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
