"""
Application settings loaded from environment variables
"""

from dataclasses import dataclass, field
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "dev-secret-key"


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the API"""
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///./lab_orders.db"))
    secret_key: str = field(default_factory=lambda: os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY))
    jwt_algorithm: str = field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    jwt_expires_days: int = field(default_factory=lambda: int(os.getenv("JWT_EXPIRES_DAYS", "7")))
    bcrypt_rounds: int = field(default_factory=lambda: int(os.getenv("BCRYPT_ROUNDS", "10")))
    api_prefix: str = field(default_factory=lambda: os.getenv("API_PREFIX", "/api"))
    rate_limit_enabled: bool = field(default_factory=lambda: _get_bool("RATE_LIMIT_ENABLED", True))
    cors_origins: list[str] = field(default_factory=lambda: _get_list("CORS_ORIGINS", "*"))
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3333")))

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()

if settings.is_production and settings.secret_key == DEFAULT_SECRET_KEY:
    logger.warning("SECRET_KEY is not set; tokens are signed with the development key")
