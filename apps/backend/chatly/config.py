import logging
from typing import List, Literal
from pathlib import Path
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    ENV: Literal["development", "staging", "production"] = Field("development")
    PORT: int = Field(8000)
    LOG_LEVEL: str = Field("INFO")
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:5173", "http://localhost:3000"])

    # Relational store + realtime change feed
    DATABASE_URL: str
    REDIS_URL: str
    REALTIME_ENABLED: bool = Field(default=True)

    # Contacts
    CONTACT_SEARCH_LIMIT: int = Field(default=10)
    CONTACT_SEARCH_MIN_LENGTH: int = Field(default=2)

    # Inbox
    MESSAGES_PAGE_SIZE: int = Field(default=30)

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept 'debug', 'Info', ... and reject unknown level names"""
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


try:
    settings = Settings()
except ValidationError as e:
    logger.error("Env validation failed:\n%s", e.json(indent=2))
    raise
