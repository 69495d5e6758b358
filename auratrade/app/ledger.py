"""Simulated position and signal ledger.

State changes go through pure functions that return a new ``LedgerState``;
``Ledger`` is the single-writer aggregate that holds the current state and
writes the human-readable trail to the activity log.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from auratrade.app.activity_log import ActivityLog
from auratrade.app.decision_policy import DecisionPolicy
from auratrade.app.models import BUY, SELL, Classification, Position, Signal
from auratrade.app.risk_manager import DEFAULT_RISK_FRACTION, RiskDecision, RiskManager

SIGNAL_CAPACITY = 10


@dataclass(slots=True, frozen=True)
class LedgerState:
    cash_balance: float
    positions: dict[str, Position] = field(default_factory=dict)
    signals: tuple[Signal, ...] = ()

    def position_for(self, asset: str) -> Position | None:
        return self.positions.get(asset)

    def is_long(self, asset: str) -> bool:
        return asset in self.positions


def record_signal(state: LedgerState, signal: Signal, capacity: int = SIGNAL_CAPACITY) -> LedgerState:
    return replace(state, signals=((signal,) + state.signals)[:capacity])


def apply_signal(
    state: LedgerState,
    signal: Signal,
    current_price: float,
    risk_fraction: float = DEFAULT_RISK_FRACTION,
) -> tuple[LedgerState, RiskDecision]:
    decision = RiskManager(risk_fraction).evaluate(signal, state.positions, state.cash_balance, current_price)
    if not decision.allowed:
        return state, decision

    positions = dict(state.positions)
    if signal.kind == BUY:
        positions[signal.asset] = Position(
            asset=signal.asset,
            entry_price=current_price,
            amount=decision.amount,
        )
        return replace(state, cash_balance=state.cash_balance - decision.risk_amount, positions=positions), decision

    position = positions.pop(signal.asset)
    sale_value = position.amount * current_price
    return replace(state, cash_balance=state.cash_balance + sale_value, positions=positions), decision


def unrealized_pnl(state: LedgerState, asset: str, current_price: float) -> float:
    position = state.positions.get(asset)
    if position is None:
        return 0.0
    return position.unrealized_pnl(current_price)


class Ledger:
    """Owns cash, open positions and recent signals for one session."""

    def __init__(
        self,
        starting_balance: float,
        activity_log: ActivityLog | None = None,
        policy: DecisionPolicy | None = None,
        risk_fraction: float = DEFAULT_RISK_FRACTION,
        logger: Any | None = None,
    ) -> None:
        self.state = LedgerState(cash_balance=float(starting_balance))
        self.activity_log = activity_log or ActivityLog()
        self.policy = policy or DecisionPolicy()
        self.risk_fraction = risk_fraction
        self.logger = logger

    @property
    def cash_balance(self) -> float:
        return self.state.cash_balance

    @property
    def positions(self) -> dict[str, Position]:
        return dict(self.state.positions)

    @property
    def signals(self) -> list[Signal]:
        return list(self.state.signals)

    def on_classification(
        self,
        asset: str,
        classification: Classification,
        current_price: float,
        armed: bool,
    ) -> Signal | None:
        signal = self.policy.signal_for(asset, classification, current_price)
        if signal is None:
            return None

        self.state = record_signal(self.state, signal)
        self.activity_log.record(f"Neural Intelligence identified {signal.kind} opportunity for {asset}")
        self._info(
            "Ledger: signal id={} asset={} kind={} strength={} score={}",
            signal.id,
            asset,
            signal.kind,
            signal.strength,
            classification.score,
        )
        if armed:
            self.execute(signal, current_price)
        return signal

    def execute(self, signal: Signal, current_price: float) -> RiskDecision:
        before = self.state.positions.get(signal.asset)
        self.state, decision = apply_signal(self.state, signal, current_price, self.risk_fraction)
        if not decision.allowed:
            self._info("Ledger: skip signal id={} kind={} reason={}", signal.id, signal.kind, decision.reason)
            self.activity_log.record(f"Skipped {signal.kind} for {signal.asset}: {decision.reason}")
            return decision

        if signal.kind == BUY:
            self.activity_log.record(
                f"CB-ADV: Executed LIMIT BUY for {decision.amount:.4f} {signal.asset} @ ${current_price}"
            )
        elif before is not None:
            self.activity_log.record(
                f"CB-ADV: Executed MARKET SELL. Closed {before.asset} position for "
                f"${before.amount * current_price:.2f}"
            )
        self._info(
            "Ledger: executed {} asset={} price={} balance={}",
            signal.kind,
            signal.asset,
            current_price,
            round(self.state.cash_balance, 6),
        )
        return decision

    def close_position(self, asset: str, current_price: float) -> RiskDecision:
        """Manual market close, bypassing the oracle."""
        signal = self.policy.build_signal(asset, SELL, "Manual market close", current_price)
        return self.execute(signal, current_price)

    def unrealized_pnl(self, asset: str, current_price: float) -> float:
        return unrealized_pnl(self.state, asset, current_price)

    def total_unrealized_pnl(self, prices: dict[str, float]) -> float:
        total = 0.0
        for asset, position in self.state.positions.items():
            price = prices.get(asset)
            if price is not None and price > 0:
                total += position.unrealized_pnl(price)
        return total

    def equity(self, prices: dict[str, float]) -> float:
        equity = self.state.cash_balance
        for asset, position in self.state.positions.items():
            price = prices.get(asset)
            equity += position.market_value(price if price is not None and price > 0 else position.entry_price)
        return equity

    def snapshot(self, prices: dict[str, float]) -> dict[str, Any]:
        positions = []
        for asset, position in self.state.positions.items():
            price = prices.get(asset) or position.entry_price
            positions.append(
                {
                    "asset": asset,
                    "amount": position.amount,
                    "entry_price": position.entry_price,
                    "current_price": price,
                    "pnl": position.unrealized_pnl(price),
                    "pnl_percent": position.pnl_percent(price),
                }
            )
        return {
            "cash_balance": self.state.cash_balance,
            "equity": self.equity(prices),
            "unrealized_pnl": self.total_unrealized_pnl(prices),
            "positions": positions,
            "signals": [
                {
                    "id": signal.id,
                    "timestamp": signal.timestamp.isoformat(),
                    "asset": signal.asset,
                    "kind": signal.kind,
                    "strength": signal.strength,
                    "reason": signal.reason,
                    "price": signal.price,
                }
                for signal in self.state.signals
            ],
        }

    def _info(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info(message, *args)
