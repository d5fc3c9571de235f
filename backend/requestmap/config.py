"""
config.py — Runtime settings for the request map API.

Values come from the environment (prefix REQUESTMAP_) or a local .env file.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from requestmap.constants import NC_LAYER


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REQUESTMAP_", env_file=".env", extra="ignore")

    log_level: str = "INFO"

    # Comma-separated, e.g. REQUESTMAP_CORS_ORIGINS="http://localhost:3000,http://localhost:5173"
    cors_origins: str = "*"

    # Layer that geocoded addresses are resolved against
    address_layer: str = NC_LAYER

    # Skip category validation of request snapshots when False.
    validate_request_types: bool = True

    # Bind address for the requestmap-api console script
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
