"""Trade engine driving price refresh and classify-and-decide cycles."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime
from typing import Any

from auratrade.app.activity_log import ActivityLog
from auratrade.app.config import AppConfig
from auratrade.app.config_resolver import ConfigResolver, EffectiveSettings
from auratrade.app.health import HealthMonitor
from auratrade.app.ledger import Ledger
from auratrade.app.models import Classification, PricePoint, Signal
from auratrade.app.price_feed import CoinbaseCandleFeed, FeedUnavailable
from auratrade.app.risk_manager import RiskDecision
from auratrade.app.sentiment_oracle import GeminiSentimentOracle
from auratrade.app.state import BotState

WARMUP_RETRY_SEC = 1.0


class TradeEngine:
    """Single-writer controller for one dashboard session.

    Two tasks run on the event loop: the price loop (from ``start`` until
    ``stop``) and the analysis loop (only while armed and connected).
    Results that arrive after the selected asset changed are dropped.
    """

    def __init__(
        self,
        config: AppConfig,
        price_feed: CoinbaseCandleFeed,
        oracle: GeminiSentimentOracle,
        ledger: Ledger,
        logger,
        health_monitor: HealthMonitor | None = None,
    ) -> None:
        self.config = config
        self.price_feed = price_feed
        self.oracle = oracle
        self.ledger = ledger
        self.logger = logger
        self.health_monitor = health_monitor or HealthMonitor(logger=logger)
        self.config_resolver = ConfigResolver(config)
        self.effective: EffectiveSettings = self.config_resolver.get_effective_settings()
        self.ledger.risk_fraction = self.effective.risk_fraction
        self.state = BotState(
            selected_asset=config.market.default_asset,
            strategy_mode=self.effective.strategy_mode,
        )
        self.market_data: list[PricePoint] = []
        self._last_price_by_asset: dict[str, float] = {}
        self._running = False
        self._price_task: asyncio.Task[None] | None = None
        self._analysis_task: asyncio.Task[None] | None = None

    @property
    def activity_log(self) -> ActivityLog:
        return self.ledger.activity_log

    @property
    def current_price(self) -> float:
        if not self.market_data:
            return 0.0
        return self.market_data[-1].price

    def prices(self) -> dict[str, float]:
        return dict(self._last_price_by_asset)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._price_task = asyncio.create_task(self._price_loop(), name="price-loop")
        self._sync_analysis_task()
        self.logger.info(
            "TradeEngine started asset={} mode={} risk_fraction={}",
            self.state.selected_asset,
            self.state.strategy_mode,
            self.effective.risk_fraction,
        )

    async def stop(self) -> None:
        self._running = False
        tasks = [task for task in (self._price_task, self._analysis_task) if task is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._price_task = None
        self._analysis_task = None
        self.logger.info("TradeEngine stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Operator intents
    # ------------------------------------------------------------------

    def connect(self) -> None:
        if self.state.connected:
            return
        self.state.connected = True
        self.health_monitor.set_connected(True)
        self.activity_log.record("Coinbase Advanced API Connected Successfully.")
        self._sync_analysis_task()

    def arm(self) -> bool:
        if not self.state.connected:
            self.logger.info("TradeEngine: arm ignored, exchange link not connected")
            return False
        if not self.state.armed:
            self.state.armed = True
            self.activity_log.record("Autonomous Bot ARMED")
            self._sync_analysis_task()
        return True

    def disarm(self) -> None:
        if not self.state.armed:
            return
        self.state.armed = False
        self.activity_log.record("Autonomous Bot DISARMED")
        self._sync_analysis_task()

    def toggle(self) -> bool:
        if self.state.armed:
            self.disarm()
            return False
        return self.arm()

    def select_asset(self, asset: str) -> None:
        normalized = asset.strip().upper()
        if normalized not in self.config.market.assets:
            raise ValueError(f"unsupported asset '{asset}'")
        if normalized == self.state.selected_asset:
            return
        self.state.selected_asset = normalized
        self.state.asset_generation += 1
        self.state.last_analysis = None
        self.state.last_analysis_at = None
        self.market_data = []
        self.activity_log.record(f"Active product switched to {self.price_feed.product_id(normalized)}")
        if self._running:
            self._restart_price_task()

    def set_strategy_mode(self, mode: str) -> EffectiveSettings:
        self.effective = self.config_resolver.get_effective_settings(mode)
        self.state.strategy_mode = self.effective.strategy_mode
        self.ledger.risk_fraction = self.effective.risk_fraction
        self.activity_log.record(
            f"Strategy mode {self.effective.strategy_mode.upper()}: "
            f"max order value {self.effective.risk_fraction:.0%} of portfolio"
        )
        return self.effective

    def close_position(self, asset: str) -> RiskDecision:
        normalized = asset.strip().upper()
        price = self._last_price_by_asset.get(normalized, 0.0)
        return self.ledger.close_position(normalized, price)

    async def advise_strategy(self, objective: str) -> str:
        return await self.oracle.advise_strategy(self.state.strategy_mode.upper(), objective)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def refresh_prices(self) -> bool:
        asset = self.state.selected_asset
        generation = self.state.asset_generation
        try:
            points = await self.price_feed.fetch_recent(asset)
        except FeedUnavailable as exc:
            self.health_monitor.record_feed_error(exc)
            self.logger.warning("TradeEngine: keeping last series for {} after feed error: {}", asset, exc)
            return False

        if generation != self.state.asset_generation:
            self.logger.info("TradeEngine: dropped stale price series for {}", asset)
            return False
        return self.on_prices(asset, points)

    def on_prices(self, asset: str, points: list[PricePoint]) -> bool:
        self.health_monitor.record_feed_ok()
        if not points:
            self.logger.warning("TradeEngine: empty price series for {}, keeping last series", asset)
            return False
        self.market_data = list(points)
        self._last_price_by_asset[asset] = points[-1].price
        return True

    async def analyze_once(self) -> Signal | None:
        if self.state.analyzing:
            self.logger.info("TradeEngine: classification already in flight, skip cycle")
            return None
        if len(self.market_data) < self.effective.min_samples:
            return None

        asset = self.state.selected_asset
        generation = self.state.asset_generation
        prices = [point.price for point in self.market_data]

        self.state.analyzing = True
        try:
            classification = await self.oracle.classify(asset, prices)
        finally:
            self.state.analyzing = False

        if generation != self.state.asset_generation:
            self.logger.info("TradeEngine: dropped classification for previous asset {}", asset)
            return None

        if self.oracle.last_failure is not None:
            self.health_monitor.record_oracle_error()
        else:
            self.health_monitor.record_oracle_ok()
        return self.on_classification(asset, classification)

    def on_classification(self, asset: str, classification: Classification) -> Signal | None:
        self.state.last_analysis = classification
        self.state.last_analysis_at = datetime.now(UTC)
        return self.ledger.on_classification(
            asset,
            classification,
            self.current_price,
            armed=self.state.trading_enabled,
        )

    async def _price_loop(self) -> None:
        while True:
            try:
                await self.refresh_prices()
            except Exception as exc:  # noqa: BLE001
                self.logger.error("TradeEngine price loop error: {}", exc)
            await asyncio.sleep(self.effective.poll_interval_sec)

    async def _analysis_loop(self) -> None:
        while True:
            delay = self.effective.analysis_interval_sec
            try:
                if len(self.market_data) < self.effective.min_samples:
                    # no series yet after connect or an asset switch
                    delay = min(WARMUP_RETRY_SEC, delay)
                elif self.state.trading_enabled:
                    await self.analyze_once()
            except Exception as exc:  # noqa: BLE001
                self.logger.error("TradeEngine analysis loop error: {}", exc)
            await asyncio.sleep(delay)

    def _sync_analysis_task(self) -> None:
        if self._running and self.state.trading_enabled:
            if self._analysis_task is None or self._analysis_task.done():
                self._analysis_task = asyncio.create_task(self._analysis_loop(), name="analysis-loop")
            return
        if self._analysis_task is not None:
            self._analysis_task.cancel()
            self._analysis_task = None

    def _restart_price_task(self) -> None:
        if self._price_task is not None:
            self._price_task.cancel()
        self._price_task = asyncio.create_task(self._price_loop(), name="price-loop")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        asset = self.state.selected_asset
        return {
            "state": self.state.to_dict(),
            "settings": {
                "strategy_mode": self.effective.strategy_mode,
                "risk_fraction": self.effective.risk_fraction,
            },
            "market": {
                "asset": asset,
                "product": self.price_feed.product_id(asset),
                "current_price": self.current_price,
                "points": [{"time": p.time, "price": p.price, "volume": p.volume} for p in self.market_data],
            },
            "assets": list(self.config.market.assets),
            "ledger": self.ledger.snapshot(self.prices()),
            "logs": [{"time": entry.time, "message": entry.message} for entry in self.activity_log.entries()],
            "health": self.health_monitor.snapshot(),
        }
