"""Configuration management for the FastAPI application."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class Settings(BaseModel):
    """Application configuration loaded from environment variables."""

    app_env: str = "dev"
    database_url: str = "sqlite:///./mssp.db"
    cors_origins: list[str] = Field(default_factory=list)
    version: str = "0.1.0"
    log_level: str = "INFO"
    api_tokens: dict[str, str] = Field(default_factory=dict)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            if not value:
                return []
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        if isinstance(value, list):
            return value
        return []

    @field_validator("api_tokens", mode="before")
    @classmethod
    def assemble_api_tokens(cls, value: Any) -> dict[str, str]:
        """Parse ``token:role`` pairs separated by commas."""
        if isinstance(value, str):
            tokens: dict[str, str] = {}
            for entry in value.split(","):
                token, _, role = entry.strip().partition(":")
                if token and role:
                    tokens[token.strip()] = role.strip().lower()
            return tokens
        if isinstance(value, dict):
            return value
        return {}

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith(("sqlite+aiosqlite://", "postgresql+asyncpg://")):
            return self.database_url
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
        if self.database_url.startswith("sqlite://"):
            return self.database_url.replace("sqlite://", "sqlite+aiosqlite://")
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url


def _build_settings() -> Settings:
    raw_values: dict[str, Any] = {
        "app_env": os.getenv("APP_ENV"),
        "database_url": os.getenv("DATABASE_URL"),
        "cors_origins": os.getenv("CORS_ORIGINS"),
        "version": os.getenv("APP_VERSION"),
        "log_level": os.getenv("LOG_LEVEL"),
        "api_tokens": os.getenv("API_TOKENS"),
    }
    filtered_values = {key: value for key, value in raw_values.items() if value is not None}
    return Settings(**filtered_values)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return _build_settings()
