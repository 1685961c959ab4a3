"""lotsweep.core.config

One config surface: ``config/default.yaml`` (or any file passed with
``--config``), overlaid by ``LOTSWEEP_*`` environment variables.

The loaded ``Config`` is frozen. The orchestrator receives it at
construction and nothing mutates it afterwards.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from lotsweep.backtest.strategies import STRATEGIES, is_valid_sell_condition, is_valid_strategy
from lotsweep.core.exceptions import ConfigError
from lotsweep.core.time import parse_run_date


class FilesConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    data_dir: Path = Path("data")
    output_dir: Path = Path("results")
    log_dir: Path = Path("logs")


class SimulationConfig(BaseModel):
    """Scalars shared by every combination in a sweep."""

    model_config = ConfigDict(frozen=True)

    assets: tuple[str, ...] = ("BTC",)
    invest_amt: float = 1000.0
    tax_rate: float = 0.0
    fees: float = 0.001
    start_date: str = "01Jan2021"
    end_date: str = "01Jan2022"

    @field_validator("assets")
    @classmethod
    def assets_not_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("Config file not configured for [assets]")
        return v

    @field_validator("invest_amt")
    @classmethod
    def invest_amt_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("invest_amt must be > 0")
        return v

    @field_validator("tax_rate", "fees")
    @classmethod
    def rate_in_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v < 1.0:
            raise ValueError("rates must be in [0, 1)")
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def date_parses(cls, v: str) -> str:
        parse_run_date(v)
        return v

    @model_validator(mode="after")
    def end_after_start(self) -> SimulationConfig:
        if parse_run_date(self.end_date) <= parse_run_date(self.start_date):
            raise ValueError("end_date must be after start_date")
        return self

    @property
    def start(self) -> datetime:
        return parse_run_date(self.start_date)

    @property
    def end(self) -> datetime:
        return parse_run_date(self.end_date)


class ParametersConfig(BaseModel):
    """Swept domains. Each must hold at least one value."""

    model_config = ConfigDict(frozen=True)

    strategies: tuple[str, ...] = ("MACD",)
    ema_values: tuple[int, ...] = (50,)
    reinvest_percentages: tuple[float, ...] = (0.5,)
    min_returns: tuple[float, ...] = (0.02,)
    percent_drops: tuple[float, ...] = (0.1,)
    balance_tripwires: tuple[float, ...] = (2.0,)
    sell_condition: int = 1

    @field_validator(
        "strategies",
        "ema_values",
        "reinvest_percentages",
        "min_returns",
        "percent_drops",
        "balance_tripwires",
    )
    @classmethod
    def domain_not_empty(cls, v: tuple[Any, ...], info) -> tuple[Any, ...]:
        if not v:
            raise ValueError(f"Config file not configured for [{info.field_name}]")
        return v

    @field_validator("strategies")
    @classmethod
    def strategies_known(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [s for s in v if not is_valid_strategy(s)]
        if unknown:
            raise ValueError(f"Invalid strategy {unknown}; expected one of {list(STRATEGIES)}")
        return v

    @field_validator("ema_values")
    @classmethod
    def ema_positive(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if any(e <= 0 for e in v):
            raise ValueError("ema_values must be > 0")
        return v

    @field_validator("balance_tripwires")
    @classmethod
    def tripwires_positive(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if any(t <= 0 for t in v):
            raise ValueError("balance_tripwires must be > 0")
        return v

    @field_validator("sell_condition")
    @classmethod
    def sell_condition_known(cls, v: int) -> int:
        if not is_valid_sell_condition(v):
            raise ValueError(f"Invalid sell_condition {v}; expected 1..6")
        return v


class SweepSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_workers: int | None = None
    progress_every: int = 100
    cache_ttl_s: float = 3600.0

    @field_validator("max_workers")
    @classmethod
    def workers_positive(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("max_workers must be >= 1")
        return v

    @field_validator("progress_every")
    @classmethod
    def progress_every_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("progress_every must be >= 1")
        return v


class LoggingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    json_output: bool = False


class Config(BaseSettings):
    """Root configuration. Single source of truth for a sweep."""

    files: FilesConfig = Field(default_factory=FilesConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    parameters: ParametersConfig = Field(default_factory=ParametersConfig)
    sweep: SweepSettings = Field(default_factory=SweepSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_prefix": "LOTSWEEP_", "env_nested_delimiter": "__", "frozen": True}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment outranks the YAML mapping, which arrives as init kwargs. Nested keys merge.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file is not valid YAML: {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must be a mapping: {path}")

        return cls.from_mapping(raw)

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> Config:
        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")
