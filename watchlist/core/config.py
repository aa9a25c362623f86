# Settings management (reads env vars/.env)
# watchlist/core/config.py

import logging
from functools import lru_cache
from typing import List, Optional, Union

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

GUEST_USER_ID = "guest"
GUEST_USER_NAME = "Guest"


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables or .env file.
    """
    # --- Project Info ---
    PROJECT_NAME: str = Field("Movie Watchlist API", validation_alias="PROJECT_NAME")
    API_PREFIX: str = Field("/api", validation_alias="API_PREFIX")
    VERSION: str = Field("1.0.0", validation_alias="APP_VERSION")

    # --- Logging ---
    LOG_LEVEL: str = Field("INFO", validation_alias="LOG_LEVEL")

    # --- Database (MongoDB) ---
    # SecretStr keeps credentials embedded in the URI out of logs
    MONGODB_URI: SecretStr = Field(SecretStr("mongodb://localhost:27017"), validation_alias="MONGODB_URI")
    # Used when the URI does not name a database
    MONGODB_DB_NAME: str = Field("movie_watchlist", validation_alias="MONGODB_DB_NAME")

    # --- Authentication (JWT in an httpOnly cookie) ---
    # Without a secret no token can be issued or verified: every request is anonymous
    JWT_SECRET: Optional[SecretStr] = Field(None, validation_alias="JWT_SECRET")
    JWT_ALGORITHM: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    JWT_EXPIRES_MINUTES: int = Field(
        default=60 * 24 * 7,
        validation_alias="JWT_EXPIRES_MINUTES",
        description="Lifetime of the session token and its cookie, in minutes (7 days)."
    )
    AUTH_COOKIE_NAME: str = Field("token", validation_alias="AUTH_COOKIE_NAME")
    AUTH_COOKIE_SECURE: bool = Field(False, validation_alias="AUTH_COOKIE_SECURE")
    AUTH_COOKIE_SAMESITE: str = Field("lax", validation_alias="AUTH_COOKIE_SAMESITE")

    # --- Accounts ---
    MIN_PASSWORD_LENGTH: int = Field(6, validation_alias="MIN_PASSWORD_LENGTH")
    MIN_NAME_LENGTH: int = Field(3, validation_alias="MIN_NAME_LENGTH")
    ALLOW_GUEST: bool = Field(
        default=True,
        validation_alias="ALLOW_GUEST",
        description="Let anonymous visitors list and add movies as the shared guest user."
    )
    ADMIN_SETUP_SECRET: Optional[SecretStr] = Field(
        None,
        validation_alias="ADMIN_SETUP_SECRET",
        description="Enables POST /api/admin/make-admin-simple when set."
    )

    # --- Activity Feed ---
    ACTIVITY_PAGE_LIMIT: int = Field(100, validation_alias="ACTIVITY_PAGE_LIMIT")

    # --- CORS ---
    # Comma-separated string in env, e.g. "http://localhost:3000,https://watch.example.com"
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000"],
        validation_alias="BACKEND_CORS_ORIGINS"
    )

    @field_validator("BACKEND_CORS_ORIGINS", mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return v
        raise ValueError(f"Invalid BACKEND_CORS_ORIGINS format: {v}")

    @field_validator("JWT_SECRET", "ADMIN_SETUP_SECRET", mode='before')
    @classmethod
    def blank_secret_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("AUTH_COOKIE_SAMESITE")
    @classmethod
    def check_samesite(cls, v: str) -> str:
        value = v.lower()
        if value not in {"lax", "strict", "none"}:
            raise ValueError(f"AUTH_COOKIE_SAMESITE must be lax, strict or none, got: {v}")
        return value

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )


@lru_cache()
def get_settings() -> Settings:
    """Returns the application settings instance."""
    logger.info("Attempting to load application settings...")
    try:
        settings_instance = Settings()
        logger.info(f"Settings loaded successfully for Project: {settings_instance.PROJECT_NAME}")
        logger.info(f"Log Level: {settings_instance.LOG_LEVEL}")
        logger.info(f"CORS Origins: {settings_instance.BACKEND_CORS_ORIGINS}")
        logger.info(f"Guest mode: {'enabled' if settings_instance.ALLOW_GUEST else 'disabled'}")
        if settings_instance.JWT_SECRET is None:
            logger.warning("JWT_SECRET is not set: logins are disabled and all requests are anonymous.")
        return settings_instance
    except Exception as e:
        logger.critical(f"CRITICAL ERROR: Failed to load application settings: {e}", exc_info=True)
        raise RuntimeError(f"Could not load settings: {e}")


settings: Settings = get_settings()
