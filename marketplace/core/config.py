from typing import List

from limits import parse
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite:///./marketplace.db"
    DATABASE_ECHO: bool = False

    # JWT
    SECRET_KEY: str = "dev-secret-key-change-me-before-deploying-anywhere"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    AUTH_COOKIE_NAME: str = "authToken"
    COOKIE_SECURE: bool = False

    # Media
    MEDIA_ROOT: str = "media"
    MEDIA_URL_PREFIX: str = "/media"
    PROPERTY_MEDIA_MAX_MB: int = 50
    BLOG_COVER_MAX_MB: int = 5
    MAX_MEDIA_FILES: int = 10

    # Rate limiting (limit strings as understood by the `limits` package)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    SEARCH_RATE_LIMIT: str = "100/15 minutes"

    # App
    APP_NAME: str = "Rental Marketplace API"
    DEBUG: bool = True
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @field_validator("SEARCH_RATE_LIMIT")
    @classmethod
    def valid_limit(cls, v: str) -> str:
        parse(v)
        return v


settings = Settings()
