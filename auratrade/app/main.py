"""Application entrypoint."""

from __future__ import annotations

import asyncio
import contextlib
import random
from pathlib import Path

import uvicorn

from auratrade.app.activity_log import ActivityLog
from auratrade.app.config import AppConfig, load_config
from auratrade.app.decision_policy import DecisionPolicy
from auratrade.app.health import HealthMonitor
from auratrade.app.ledger import Ledger
from auratrade.app.logger import setup_logger
from auratrade.app.price_feed import CoinbaseCandleFeed
from auratrade.app.sentiment_oracle import GeminiSentimentOracle
from auratrade.app.trade_engine import TradeEngine

ROOT_DIR = Path(__file__).resolve().parents[1]


def resolve_config_path(root_dir: Path = ROOT_DIR) -> Path:
    config_path = root_dir / "config.yml"
    if config_path.exists():
        return config_path
    return root_dir / "config.yml.example"


def build_engine(config: AppConfig, logger, rng: random.Random | None = None) -> TradeEngine:
    activity_log = ActivityLog(logger=logger)
    ledger = Ledger(
        starting_balance=config.account.starting_balance,
        activity_log=activity_log,
        policy=DecisionPolicy(rng=rng),
        logger=logger,
    )
    price_feed = CoinbaseCandleFeed(
        base_url=config.market.base_url,
        quote_currency=config.market.quote_currency,
        granularity_sec=config.market.granularity_sec,
        history_size=config.market.history_size,
        timeout_sec=config.market.timeout_sec,
    )
    oracle = GeminiSentimentOracle(
        api_key=config.oracle.api_key,
        model=config.oracle.model,
        advice_model=config.oracle.advice_model,
        base_url=config.oracle.base_url,
        timeout_sec=config.oracle.timeout_sec,
        min_samples=config.oracle.min_samples,
        logger=logger,
    )
    return TradeEngine(
        config=config,
        price_feed=price_feed,
        oracle=oracle,
        ledger=ledger,
        logger=logger,
        health_monitor=HealthMonitor(logger=logger),
    )


async def run() -> None:
    """Headless bot: no dashboard, controls come from the ``bot`` config section."""
    config = load_config(resolve_config_path())
    logger = setup_logger(config.logging)
    engine = build_engine(config, logger)

    if not config.oracle.api_key:
        logger.warning("No Gemini API key configured; every classification will fall back to HOLD")

    if config.bot.auto_connect:
        engine.connect()
    if config.bot.auto_arm and not engine.arm():
        logger.error("bot.auto_arm requires bot.auto_connect; running disarmed")

    engine.start()
    logger.info(
        "Bot started asset={} connected={} armed={}",
        engine.state.selected_asset,
        engine.state.connected,
        engine.state.armed,
    )
    try:
        while True:
            await asyncio.sleep(1)
    finally:
        await engine.stop()
        logger.info("Final balance={} open_positions={}", round(engine.ledger.cash_balance, 2), len(engine.ledger.positions))


def main() -> None:
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run())


def serve() -> None:
    """Run the web dashboard with uvicorn."""
    config = load_config(resolve_config_path())
    uvicorn.run("auratrade.web.server:app", host=config.web.host, port=config.web.port)


if __name__ == "__main__":
    main()
