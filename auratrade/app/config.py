"""Configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

STRATEGY_MODES = ("conservative", "balanced", "aggressive", "custom")


class AccountConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    starting_balance: float = Field(default=10000.0, ge=0)


class MarketConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    base_url: str = "https://api.exchange.coinbase.com"
    quote_currency: str = Field(default="USD", pattern=r"^[A-Z]{2,6}$")
    granularity_sec: int = Field(default=60, ge=60)
    history_size: int = Field(default=30, ge=1)
    poll_interval_sec: float = Field(default=10.0, gt=0)
    timeout_sec: float = Field(default=10.0, gt=0)
    assets: list[str] = Field(default_factory=lambda: ["BTC", "ETH", "SOL", "XRP", "DOGE"], min_length=1)
    default_asset: str = "BTC"

    @model_validator(mode="after")
    def _default_asset_listed(self) -> MarketConfig:
        self.assets = [asset.upper() for asset in self.assets]
        self.default_asset = self.default_asset.upper()
        if self.default_asset not in self.assets:
            raise ValueError(f"default_asset '{self.default_asset}' is not in assets")
        return self


class OracleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    model: str = "gemini-3-flash-preview"
    advice_model: str = "gemini-3-pro-preview"
    timeout_sec: float = Field(default=30.0, gt=0)
    analysis_interval_sec: float = Field(default=30.0, gt=0)
    min_samples: int = Field(default=5, ge=1)


class StrategyProfile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    risk_fraction: float = Field(gt=0, le=1)


class StrategyConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: str = Field(default="balanced", pattern=r"^(conservative|balanced|aggressive|custom)$")
    conservative: StrategyProfile = Field(default_factory=lambda: StrategyProfile(risk_fraction=0.05))
    balanced: StrategyProfile = Field(default_factory=lambda: StrategyProfile(risk_fraction=0.10))
    aggressive: StrategyProfile = Field(default_factory=lambda: StrategyProfile(risk_fraction=0.20))
    custom: StrategyProfile = Field(default_factory=lambda: StrategyProfile(risk_fraction=0.10))


class BotConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    auto_connect: bool = False
    auto_arm: bool = False


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    broadcast_interval_sec: float = Field(default=2.0, gt=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", pattern=r"^(TRACE|DEBUG|INFO|SUCCESS|WARNING|ERROR|CRITICAL)$")
    directory: str = "logs"
    filename: str = "auratrade.log"
    rotation: str = "5 MB"
    retention: int = Field(default=5, ge=1)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: str = Field(default="paper", pattern=r"^paper$")
    account: AccountConfig = Field(default_factory=AccountConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    bot: BotConfig = Field(default_factory=BotConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _analysis_slower_than_prices(self) -> AppConfig:
        if self.oracle.analysis_interval_sec <= self.market.poll_interval_sec:
            raise ValueError(
                f"oracle.analysis_interval_sec ({self.oracle.analysis_interval_sec}) must be longer than "
                f"market.poll_interval_sec ({self.market.poll_interval_sec})"
            )
        return self


def load_config(path: str | Path = "config.yml") -> AppConfig:
    """Load configuration from YAML file and validate schema."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file '{config_path}' not found. Copy config.yml.example to config.yml first."
        )

    with config_path.open("r", encoding="utf-8") as fh:
        raw_data = yaml.safe_load(fh) or {}

    try:
        config = AppConfig.model_validate(raw_data)
    except ValidationError as exc:
        raise ValueError(f"Invalid config '{config_path}': {exc}") from exc

    load_dotenv()
    if not config.oracle.api_key:
        config.oracle.api_key = os.getenv("GEMINI_API_KEY", "")
    return config
