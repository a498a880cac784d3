# mediashelf/core/config.py
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Env vars (.env):
      - DATABASE_URL (defaults to a local SQLite file)
      - TOKEN_SECRET (signing key for account access tokens)

    Optional:
      - ROOT_USERNAME / ROOT_PASSWORD: bootstrap the root account on startup
        when no root account exists yet.
    """

    PROJECT_NAME: str = "Mediashelf Accounts"
    API_PREFIX: str = "/api"

    DATABASE_URL: str = "sqlite:///./mediashelf.db"

    # Access tokens (signed, stored on the account)
    TOKEN_SECRET: str = "change-me"
    TOKEN_ALGORITHM: str = "HS256"

    ROOT_USERNAME: str = "root"
    ROOT_PASSWORD: str | None = None

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
