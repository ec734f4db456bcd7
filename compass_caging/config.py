"""
Configuration management for the caging service.

Loads and validates environment variables (and an optional ``.env`` file).
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # Service
    APP_NAME: str = "Compass Caging API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_PATH: str = "data/compass_caging.db"
    AUTO_MIGRATE: bool = True

    # JWT
    JWT_SECRET_KEY: str = "change-me-in-production-at-least-32-characters"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # Passwords
    PASSWORD_HASH_ROUNDS: int = 12
    PASSWORD_TOKEN_TTL_HOURS: int = 72

    # Uploads
    MAX_DOCUMENT_BYTES: int = int(4.5 * 1024 * 1024)

    # CORS (comma-separated)
    CORS_ORIGINS: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
