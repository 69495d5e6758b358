"""Decision policy turning oracle classifications into BUY/SELL signals."""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable

from auratrade.app.models import BEARISH, BULLISH, BUY, SELL, Classification, Signal

BUY_SCORE_THRESHOLD = 0.65
SELL_SCORE_THRESHOLD = -0.65
MIN_STRENGTH = 60
MAX_STRENGTH = 100


@dataclass(slots=True)
class SignalDecision:
    kind: str | None
    reason: str


class DecisionPolicy:
    """Maps a classification to a signal kind and builds signals.

    Thresholds are strict: a score of exactly 0.65 (or -0.65) holds.
    Strength comes from the injected ``rng`` so tests can seed it.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.clock = clock or (lambda: datetime.now(UTC))

    def evaluate(self, classification: Classification) -> SignalDecision:
        if classification.sentiment == BULLISH and classification.score > BUY_SCORE_THRESHOLD:
            return SignalDecision(BUY, "bullish_above_threshold")
        if classification.sentiment == BEARISH and classification.score < SELL_SCORE_THRESHOLD:
            return SignalDecision(SELL, "bearish_below_threshold")
        return SignalDecision(None, "hold")

    def strength(self) -> int:
        return self.rng.randrange(MIN_STRENGTH, MAX_STRENGTH)

    def build_signal(self, asset: str, kind: str, reason: str, price: float) -> Signal:
        if kind not in (BUY, SELL):
            raise ValueError(f"unsupported signal kind '{kind}'")
        return Signal(
            id=self.id_factory(),
            asset=asset,
            kind=kind,
            strength=self.strength(),
            reason=reason,
            price=price,
            timestamp=self.clock(),
        )

    def signal_for(self, asset: str, classification: Classification, price: float) -> Signal | None:
        decision = self.evaluate(classification)
        if decision.kind is None:
            return None
        return self.build_signal(asset, decision.kind, classification.recommendation, price)
