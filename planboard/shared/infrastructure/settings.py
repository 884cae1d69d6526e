from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="PLANBOARD_",
    )

    # =========================
    # Environment
    # =========================
    environment: Literal["development", "test", "staging", "production"] = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    # =========================
    # API
    # =========================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # =========================
    # Database
    # =========================
    database_url: str = "sqlite:///./planboard.db"

    # =========================
    # Widget data resolution
    # =========================
    widget_data_timeout_seconds: float = 15.0
    widget_data_cache_max_entries: int = 200
    widget_data_default_cache_minutes: int = 0
    query_engine_base_url: str = "http://localhost:8010"
    query_engine_timeout_seconds: float = 30.0
    log_widget_data_requests: bool = False
    log_widget_data_filters: bool = False

    # ============================================================
    # Validators
    # ============================================================

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            raw_items = [item.strip() for item in value.split(",")]
            return [item for item in raw_items if item]
        return value

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_postgres_url(cls, value: str) -> str:
        if isinstance(value, str) and value.startswith(("postgres://", "postgresql://")):
            return value.replace("postgres://", "postgresql+psycopg://", 1).replace(
                "postgresql://", "postgresql+psycopg://", 1
            )
        return value

    @field_validator("widget_data_cache_max_entries")
    @classmethod
    def validate_cache_bound(cls, value: int) -> int:
        if value < 1:
            raise ValueError("WIDGET_DATA_CACHE_MAX_ENTRIES must be at least 1")
        return value

    @model_validator(mode="after")
    def validate_production_rules(self) -> "Settings":
        if self.is_production:
            if not self.cors_origins:
                raise ValueError("CORS_ORIGINS must be configured in production")

            if "*" in self.cors_origins:
                raise ValueError("Wildcard CORS is not allowed in production")

            if self.log_level == "DEBUG":
                raise ValueError("DEBUG logging is not allowed in production")

        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()
