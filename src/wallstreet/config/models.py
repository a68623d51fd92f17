"""Pydantic configuration models for the settlement engine."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class Environment(StrEnum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


class RuntimeConfig(BaseModel):
    """Process-level settings."""

    environment: Environment = Environment.DEVELOPMENT


class GameConfig(BaseModel):
    """Game rules that settlement depends on."""

    total_budget: float = Field(default=10_000.0, gt=0)
    gambler_threshold: float = Field(default=8_000.0, ge=0)


class PriceConfig(BaseModel):
    """Final-price resolution settings."""

    remote_enabled: bool = False
    chart_base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    backoff_max_seconds: float = Field(default=8.0, ge=0)
    backoff_jitter_ratio: float = Field(default=0.2, ge=0.0, le=1.0)
    cache_ttl_seconds: float = Field(default=900.0, gt=0)
    stale_after_days: int = Field(default=3, ge=0)
    synthetic_min_variance: float = -0.15
    synthetic_max_variance: float = 0.20

    @field_validator("synthetic_max_variance")
    @classmethod
    def validate_variance_range(cls, v: float, info: ValidationInfo) -> float:
        low = info.data.get("synthetic_min_variance", -0.15)
        if v < low:
            raise ValueError(f"synthetic_max_variance ({v}) must be >= synthetic_min_variance ({low})")
        return v


class SchedulerConfig(BaseModel):
    """Periodic settlement trigger settings."""

    interval_seconds: int = Field(default=900, ge=1)
    enabled: bool = True


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = "sqlite:///wallstreet.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_output: bool = True
    log_dir: str = "logs"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid}")
        return upper


class AppConfig(BaseModel):
    """Top-level application configuration."""

    app: RuntimeConfig = Field(default_factory=RuntimeConfig)
    game: GameConfig = Field(default_factory=GameConfig)
    prices: PriceConfig = Field(default_factory=PriceConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        return cls.model_validate(data)
