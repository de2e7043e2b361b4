"""Settings for the Arbor service, read from the environment and ``.env``."""

from enum import Enum
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Settings are unsafe for the environment they are deployed in."""


_DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Runtime settings.

    Instances are passed explicitly to the application factory; the
    module-level ``settings`` is only the default for the process bootstrap.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(default=Environment.DEVELOPMENT)
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated browser origins allowed to call the API"
    )

    # Storage
    database_url: str = Field(default="sqlite:///./arbor.db")
    # Pool tuning applies to PostgreSQL only.
    db_pool_size: int = Field(default=5, gt=0)
    db_max_overflow: int = Field(default=10, ge=0)
    db_pool_timeout: int = Field(default=30, gt=0, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=1800, description="Connection age in seconds before it is replaced")
    # Exceeding this while waiting for a tree lock is a retryable ConcurrentModification.
    db_lock_timeout_seconds: float = Field(
        default=5.0, gt=0,
        description="Seconds a batch waits for its tree locks"
    )

    # Tree engine
    # Larger batches are refused before any node is loaded.
    max_batch_operations: int = Field(
        default=500, ge=1,
        description="Most placement operations accepted in one batch request"
    )

    # Identity. With auth disabled, every request runs as an anonymous administrator.
    jwt_secret_key: str = Field(default=_DEFAULT_JWT_SECRET, description="HS256 signing secret")
    jwt_algorithm: str = Field(default="HS256")
    auth_enabled: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, v):
        return v.lower() if isinstance(v, str) else v

    def get_cors_origins(self) -> List[str]:
        """Configured origins as a list. A ``*`` entry is refused."""
        origins = [part.strip() for part in self.cors_allowed_origins.split(",")]
        origins = [origin for origin in origins if origin]
        if "*" in origins:
            raise ValueError("CORS_ALLOWED_ORIGINS must list explicit origins, not '*'")
        return origins

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret_key == _DEFAULT_JWT_SECRET

    def validate_production_config(self) -> None:
        """Refuse to start in production with development defaults.

        Development returns silently; the bootstrap logs warnings instead.

        Raises:
            ConfigurationError: listing every unsafe setting found.
        """
        if self.environment != Environment.PRODUCTION:
            return

        problems = [
            message for unsafe, message in (
                (self.uses_default_secret,
                 "JWT_SECRET_KEY is the development default; set one with: openssl rand -hex 32"),
                (not self.auth_enabled,
                 "AUTH_ENABLED is false; production requests must carry a bearer token"),
                (self.database_url.startswith("sqlite"),
                 "DATABASE_URL points at SQLite; use PostgreSQL so concurrent batches lock per tree root"),
            )
            if unsafe
        ]
        if problems:
            raise ConfigurationError("Unsafe production configuration:\n  - " + "\n  - ".join(problems))


# Default settings instance for the process bootstrap
settings = Settings()
