"""Shared fakes for engine, ledger and web tests."""

from __future__ import annotations

import asyncio
import random

import pytest
from loguru import logger

from auratrade.app.activity_log import ActivityLog
from auratrade.app.config import AppConfig
from auratrade.app.decision_policy import DecisionPolicy
from auratrade.app.ledger import Ledger
from auratrade.app.models import Classification, PricePoint
from auratrade.app.price_feed import FeedUnavailable
from auratrade.app.sentiment_oracle import FALLBACK_SUMMARY
from auratrade.app.trade_engine import TradeEngine


def make_points(prices: list[float]) -> list[PricePoint]:
    return [PricePoint(time=f"12:{i:02d}", price=p, volume=1.0 + i) for i, p in enumerate(prices)]


def bullish(score: float = 0.8, recommendation: str = "Accumulate on strength") -> Classification:
    return Classification(sentiment="BULLISH", score=score, summary="Momentum up", recommendation=recommendation)


def bearish(score: float = -0.8, recommendation: str = "Reduce exposure") -> Classification:
    return Classification(sentiment="BEARISH", score=score, summary="Momentum down", recommendation=recommendation)


class FakeFeed:
    def __init__(self, series: dict[str, list[PricePoint]] | None = None) -> None:
        self.series = series or {}
        self.error: Exception | None = None
        self.calls: list[str] = []

    def product_id(self, asset: str) -> str:
        return f"{asset}-USD"

    async def fetch_recent(self, asset: str) -> list[PricePoint]:
        self.calls.append(asset)
        if self.error is not None:
            raise self.error
        return list(self.series.get(asset, []))

    def fail_with(self, message: str = "down") -> None:
        self.error = FeedUnavailable(message)


class FakeOracle:
    def __init__(self, classification: Classification | None = None) -> None:
        self.classification = classification or bullish()
        self.calls: list[tuple[str, list[float]]] = []
        self.last_failure: str | None = None
        self.gate: asyncio.Event | None = None
        self.fail = False

    async def classify(self, asset: str, prices: list[float]) -> Classification:
        self.calls.append((asset, list(prices)))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            self.last_failure = "boom"
            return Classification.fallback(FALLBACK_SUMMARY)
        self.last_failure = None
        return self.classification

    async def advise_strategy(self, mode: str, objective: str) -> str:
        return f"{mode}: {objective}"


@pytest.fixture
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed({"BTC": make_points([50000.0] * 30), "ETH": make_points([3000.0] * 30)})


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def ledger() -> Ledger:
    return Ledger(starting_balance=10000.0, activity_log=ActivityLog(), policy=DecisionPolicy(rng=random.Random(7)))


@pytest.fixture
def engine(config: AppConfig, feed: FakeFeed, oracle: FakeOracle, ledger: Ledger) -> TradeEngine:
    return TradeEngine(config=config, price_feed=feed, oracle=oracle, ledger=ledger, logger=logger)
