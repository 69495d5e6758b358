"""Session state for the bot lifecycle (memory only)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from auratrade.app.models import Classification


@dataclass(slots=True)
class BotState:
    selected_asset: str
    strategy_mode: str = "balanced"
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    connected: bool = False
    armed: bool = False
    analyzing: bool = False
    asset_generation: int = 0
    last_analysis: Classification | None = None
    last_analysis_at: datetime | None = None

    @property
    def trading_enabled(self) -> bool:
        return self.armed and self.connected

    def to_dict(self) -> dict[str, Any]:
        return {
            "selected_asset": self.selected_asset,
            "strategy_mode": self.strategy_mode,
            "started_at": self.started_at.isoformat(),
            "connected": self.connected,
            "armed": self.armed,
            "analyzing": self.analyzing,
            "last_analysis": self.last_analysis.model_dump() if self.last_analysis else None,
            "last_analysis_at": self.last_analysis_at.isoformat() if self.last_analysis_at else None,
        }
