"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with MSGQUEUE_ prefix.
No config files — just env vars (12-factor app style).

Learn: The default database is a local SQLite file driven through
aiosqlite, which is all a single-node queue needs. Point database_url at
postgresql+asyncpg://... to run against PostgreSQL instead.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via MSGQUEUE_* env vars."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/messages.db"
    create_schema: bool = True  # create missing tables at startup
    sqlite_busy_timeout_ms: int = 5000

    # Redis (rate limiting only)
    redis_url: str = "redis://localhost:6379/0"

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8080

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Rate limiting
    rate_limit_rpm: int = 600  # requests per minute per IP
    rate_limit_auth_rpm: int = 10  # stricter limit for login

    model_config = {"env_prefix": "MSGQUEUE_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse to run a non-development environment in debug mode."""
        if self.environment != "development" and self.debug:
            raise ValueError(
                "MSGQUEUE_DEBUG must be false in non-development environments "
                "(debug echoes every SQL statement to the log)."
            )
        return self


# Singleton, import this everywhere
settings = Settings()
