"""
Application Settings

Loaded from environment variables (and an optional `.env` file) via
pydantic-settings. Import the `settings` singleton rather than instantiating
`Settings` directly.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from perfwatch.models.report import AdapterKind


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    APP_DEBUG: bool = False
    APP_RELOAD: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = None

    # Storage
    STORAGE_BACKEND: Literal["memory", "postgres"] = "memory"

    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DATABASE: str = "perfwatch"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_POOL_MIN_SIZE: int = 1
    POSTGRES_POOL_MAX_SIZE: int = 10

    # Statistic defaults (applied when a threshold omits the parameter)
    DEFAULT_CONFIDENCE: float = Field(0.99, gt=0.5, lt=1.0)
    DEFAULT_IQR_MULTIPLIER: float = Field(1.5, gt=0.0)

    # Adapter used when a report or the CLI does not name one
    DEFAULT_ADAPTER: AdapterKind = AdapterKind.MAGIC


settings = Settings()
