"""Risk management layer for simulated trade validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from auratrade.app.models import BUY, SELL, Position, Signal

DEFAULT_RISK_FRACTION = 0.10


@dataclass(slots=True)
class RiskDecision:
    allowed: bool
    reason: str
    risk_amount: float = 0.0
    amount: float = 0.0


class RiskManager:
    """Evaluates whether a signal may become a trade against the ledger."""

    def __init__(self, risk_fraction: float = DEFAULT_RISK_FRACTION) -> None:
        if not 0 < risk_fraction <= 1:
            raise ValueError(f"risk_fraction must be in (0, 1], got {risk_fraction}")
        self.risk_fraction = risk_fraction

    def evaluate(
        self,
        signal: Signal,
        positions: Mapping[str, Position],
        cash_balance: float,
        current_price: float,
    ) -> RiskDecision:
        if current_price <= 0:
            return RiskDecision(False, "invalid_price")

        if signal.kind == BUY:
            if signal.asset in positions:
                return RiskDecision(False, "already_long")
            risk_amount = self.risk_fraction * cash_balance
            if risk_amount <= 0:
                return RiskDecision(False, "no_balance")
            return RiskDecision(True, "ok", risk_amount=risk_amount, amount=risk_amount / current_price)

        if signal.kind == SELL:
            position = positions.get(signal.asset)
            if position is None:
                return RiskDecision(False, "no_position")
            return RiskDecision(True, "ok", risk_amount=0.0, amount=position.amount)

        return RiskDecision(False, "unknown_kind")
