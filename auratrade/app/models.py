"""Domain models for the simulated signal bot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

BUY = "BUY"
SELL = "SELL"
SIGNAL_KINDS = (BUY, SELL)

BULLISH = "BULLISH"
BEARISH = "BEARISH"
NEUTRAL = "NEUTRAL"


@dataclass(slots=True, frozen=True)
class PricePoint:
    time: str
    price: float
    volume: float


@dataclass(slots=True, frozen=True)
class Position:
    asset: str
    entry_price: float
    amount: float

    def market_value(self, current_price: float) -> float:
        return self.amount * current_price

    def unrealized_pnl(self, current_price: float) -> float:
        return (current_price - self.entry_price) * self.amount

    def pnl_percent(self, current_price: float) -> float:
        return (current_price - self.entry_price) / self.entry_price * 100.0


@dataclass(slots=True, frozen=True)
class Signal:
    id: str
    asset: str
    kind: str
    strength: int
    reason: str
    price: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True, frozen=True)
class LogEntry:
    time: str
    message: str


class Classification(BaseModel):
    """Structured answer of the sentiment oracle."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    sentiment: str = Field(pattern=r"^(BULLISH|BEARISH|NEUTRAL)$")
    score: float = Field(ge=-1.0, le=1.0)
    summary: str
    recommendation: str
    suggested_stop_loss: float | None = Field(default=None, alias="suggestedStopLoss")
    suggested_take_profit: float | None = Field(default=None, alias="suggestedTakeProfit")

    @field_validator("sentiment", mode="before")
    @classmethod
    def _upper_sentiment(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @classmethod
    def fallback(cls, summary: str) -> Classification:
        return cls(sentiment=NEUTRAL, score=0.0, summary=summary, recommendation="HOLD")

    @property
    def confidence_percent(self) -> float:
        return abs(self.score) * 100.0
