"""Strategy-aware config resolver."""

from __future__ import annotations

from dataclasses import dataclass

from auratrade.app.config import STRATEGY_MODES, AppConfig, StrategyProfile


@dataclass(slots=True)
class EffectiveSettings:
    strategy_mode: str
    risk_fraction: float
    analysis_interval_sec: float
    poll_interval_sec: float
    min_samples: int


class ConfigResolver:
    def __init__(self, config: AppConfig) -> None:
        self.config = config

    @staticmethod
    def normalize_mode(mode: str | None) -> str:
        value = str(mode or "").strip().lower()
        if value not in STRATEGY_MODES:
            raise ValueError(f"unknown strategy mode '{mode}'")
        return value

    def get_effective_settings(self, mode: str | None = None) -> EffectiveSettings:
        resolved = self.normalize_mode(mode or self.config.strategy.mode)
        profile: StrategyProfile = getattr(self.config.strategy, resolved)
        return EffectiveSettings(
            strategy_mode=resolved,
            risk_fraction=profile.risk_fraction,
            analysis_interval_sec=self.config.oracle.analysis_interval_sec,
            poll_interval_sec=self.config.market.poll_interval_sec,
            min_samples=self.config.oracle.min_samples,
        )
