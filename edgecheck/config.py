"""
Run configuration loaded from environment variables.

Uses pydantic-settings to validate every knob once, at startup. A bad
value (say a failure rate of 1.5) fails fast with a clear message instead
of producing a silently meaningless bound.

Defaults are the values the bound and permutation studies were designed
around: 100-bar maximum lookback, 1000-bar training folds, quarterly
(63-bar) test folds.

Usage:
    from edgecheck.config import get_settings
    settings = get_settings()
    print(settings.max_lookback)

Override with EDGECHECK_* variables, e.g. EDGECHECK_REPLICATIONS=1000.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from edgecheck.inference.signal_grid import MIN_EVALUATION_BARS


class Settings(BaseSettings):
    """All engine settings, loaded from the environment or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="EDGECHECK_",
        env_file=str(Path(__file__).parent.parent / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Grid search ──
    max_lookback: int = 100

    # ── Walk-forward ──
    train_size: int = 1000
    test_size: int = 63
    annualization: float = 25200.0  # ~252 days * 100 (mean daily log return -> annual %)

    # ── Return bounds ──
    lower_fail_rate: float = 0.1
    upper_fail_rate: float = 0.4
    p_of_q: float = 0.05
    optimistic_multiplier: float = 0.9   # Arbitrary policy, not derived
    pessimistic_multiplier: float = 1.1

    # ── Permutation test ──
    replications: int = 100
    seed: int = 123456789

    # ── Application ──
    log_level: str = "INFO"

    @field_validator("max_lookback")
    @classmethod
    def validate_max_lookback(cls, v: int) -> int:
        if v < 2:
            raise ValueError("max_lookback must be at least 2")
        return v

    @field_validator("test_size", "replications")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("lower_fail_rate", "upper_fail_rate", "p_of_q")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError("must lie strictly between 0 and 1")
        return v

    @field_validator("optimistic_multiplier")
    @classmethod
    def validate_optimistic(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError("optimistic_multiplier must be in (0, 1)")
        return v

    @field_validator("pessimistic_multiplier")
    @classmethod
    def validate_pessimistic(cls, v: float) -> float:
        if v <= 1.0:
            raise ValueError("pessimistic_multiplier must be greater than 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return level

    @model_validator(mode="after")
    def validate_train_margin(self) -> "Settings":
        if self.train_size - self.max_lookback < MIN_EVALUATION_BARS:
            raise ValueError(f"train_size must be at least {MIN_EVALUATION_BARS} greater than max_lookback")
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache so the environment is only read once per process.
    """
    return Settings()
