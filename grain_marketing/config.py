"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``     : committed static defaults
  2. ``config/local.toml``       : optional local overrides (gitignored)
  3. ``.env``                    : local secrets and env overrides (gitignored)
  4. Environment variables       : ``GRAIN_MARKETING_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

All pipeline stages and CLI commands receive an ``AppConfig`` instance,
never raw dicts or individual env var lookups scattered through the codebase.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from grain_marketing.taxonomy.marketing_taxonomy import Commodity, SignalType

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/grain_marketing.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/grain_marketing.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


_DEFAULT_EXPIRY_DAYS: dict[SignalType, int] = {
    SignalType.CASH_SALE: 7,
    SignalType.BASIS_CONTRACT: 5,
    SignalType.HTA: 7,
    SignalType.CALL_OPTION: 7,
    SignalType.ACCUMULATOR_INQUIRY: 7,
    SignalType.ACCUMULATOR_STRATEGY: 3,
    SignalType.TRADE_POLICY: 3,
    SignalType.BREAKING_NEWS: 1,
}


class SignalConfig(BaseModel):
    """Signal generation and lifecycle parameters."""

    model_config = ConfigDict(frozen=True)

    commodities: list[Commodity] = [Commodity.CORN, Commodity.SOYBEANS, Commodity.WHEAT]
    dedup_window_hours: int = 24
    weak_basis_cutoff: float = -0.15
    min_personalized_data_points: int = 5
    immediate_news_expiry_days: int = 1
    expiry_days: dict[SignalType, int] = dict(_DEFAULT_EXPIRY_DAYS)

    @field_validator("dedup_window_hours", "immediate_news_expiry_days")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v

    @field_validator("expiry_days")
    @classmethod
    def validate_expiry_days(cls, v: dict[SignalType, int]) -> dict[SignalType, int]:
        merged = {**_DEFAULT_EXPIRY_DAYS, **v}
        bad = {k: d for k, d in merged.items() if d < 1}
        if bad:
            raise ValueError(f"expiry_days must all be >= 1, got {bad}.")
        return merged

    def expiry_for(self, signal_type: SignalType) -> int:
        return self.expiry_days[signal_type]


class AccumulatorConfig(BaseModel):
    """Accumulator contract processing parameters."""

    model_config = ConfigDict(frozen=True)

    weekly_settlement_weekday: int = 4   # Monday = 0
    weekly_rate_multiplier: float = 5.0
    knockout_warning_distance: float = 0.05

    @field_validator("weekly_settlement_weekday")
    @classmethod
    def validate_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError(f"weekly_settlement_weekday must be in 0..6, got {v}.")
        return v

    @field_validator("weekly_rate_multiplier", "knockout_warning_distance")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Value must be >= 0, got {v}.")
        return v


class CostConfig(BaseModel):
    """Break-even cost defaults."""

    model_config = ConfigDict(frozen=True)

    default_yields: dict[Commodity, float] = {
        Commodity.CORN: 180.0,
        Commodity.SOYBEANS: 55.0,
        Commodity.WHEAT: 70.0,
    }

    def default_yield(self, commodity: Commodity) -> float:
        return self.default_yields.get(commodity, 0.0)


class SchedulerConfig(BaseModel):
    """Cadence of the background scheduler."""

    model_config = ConfigDict(frozen=True)

    signal_interval_minutes: int = 60
    accumulator_time: str = "17:30"

    @field_validator("accumulator_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parts = v.split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError(f"accumulator_time must be HH:MM, got '{v}'.")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"accumulator_time out of range: '{v}'.")
        return v


class AppConfig(BaseModel):
    """Complete application configuration: the single source of truth.

    All pipeline stages and CLI commands receive an ``AppConfig`` instance.
    It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    signals: SignalConfig = SignalConfig()
    accumulator: AccumulatorConfig = AccumulatorConfig()
    costs: CostConfig = CostConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply GRAIN_MARKETING_* env vars to the raw config dict.

    Supported overrides:
      GRAIN_MARKETING_DB_PATH    → raw["database"]["db_path"]
      GRAIN_MARKETING_LOG_LEVEL  → raw["logging"]["level"]
      GRAIN_MARKETING_DEBUG      → raw["debug"]
    """
    if db_path := os.environ.get("GRAIN_MARKETING_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("GRAIN_MARKETING_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("GRAIN_MARKETING_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        signals=SignalConfig(**raw.get("signals", {})),
        accumulator=AccumulatorConfig(**raw.get("accumulator", {})),
        costs=CostConfig(**raw.get("costs", {})),
        scheduler=SchedulerConfig(**raw.get("scheduler", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
