"""Coinbase Exchange candle feed with async wrapper."""

from __future__ import annotations

import asyncio
import http.client
import json
from datetime import UTC, datetime
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from auratrade.app.models import PricePoint


class FeedUnavailable(RuntimeError):
    """Raised when recent prices cannot be fetched or parsed."""


class CoinbaseCandleFeed:
    """Fetches the most recent close/volume samples for an asset."""

    def __init__(
        self,
        base_url: str = "https://api.exchange.coinbase.com",
        quote_currency: str = "USD",
        granularity_sec: int = 60,
        history_size: int = 30,
        timeout_sec: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.quote_currency = quote_currency.upper()
        self.granularity_sec = granularity_sec
        self.history_size = history_size
        self.timeout_sec = timeout_sec

    def product_id(self, asset: str) -> str:
        value = asset.strip().upper().replace("/", "-").replace("_", "-")
        if "-" in value:
            return value
        return f"{value}-{self.quote_currency}"

    async def fetch_recent(self, asset: str) -> list[PricePoint]:
        path = f"/products/{self.product_id(asset)}/candles"
        payload = await asyncio.to_thread(self._request_sync, path, {"granularity": self.granularity_sec})
        return self.parse_candles(payload)

    def parse_candles(self, payload: Any) -> list[PricePoint]:
        if not isinstance(payload, list):
            raise FeedUnavailable(f"unexpected candles payload: {str(payload)[:200]}")

        points: list[PricePoint] = []
        for row in reversed(payload):
            points.append(self._parse_row(row))
        return points[-self.history_size :]

    def _parse_row(self, row: Any) -> PricePoint:
        if not isinstance(row, (list, tuple)) or len(row) < 6:
            raise FeedUnavailable(f"malformed candle row: {row!r}")
        try:
            ts = float(row[0])
            close = float(row[4])
            volume = float(row[5])
        except (TypeError, ValueError) as exc:
            raise FeedUnavailable(f"malformed candle row: {row!r}") from exc
        if close < 0 or volume < 0:
            raise FeedUnavailable(f"negative price/volume in candle row: {row!r}")
        label = datetime.fromtimestamp(ts, UTC).strftime("%H:%M")
        return PricePoint(time=label, price=close, volume=volume)

    def _request_sync(self, path: str, params: dict[str, object] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            url = f"{url}?{urlencode(params)}"
        req = Request(url=url, method="GET", headers={"Accept": "application/json", "User-Agent": "auratrade/0.1"})

        try:
            with urlopen(req, timeout=self.timeout_sec) as resp:
                raw = resp.read().decode("utf-8")
        except HTTPError as exc:
            raw = exc.read().decode("utf-8", errors="ignore")
            raise FeedUnavailable(f"HTTPError {exc.code}: {raw[:200]}") from exc
        except URLError as exc:
            raise FeedUnavailable(f"URLError: {exc}") from exc
        except TimeoutError as exc:
            raise FeedUnavailable(f"timeout: {exc}") from exc
        except (OSError, http.client.HTTPException, UnicodeDecodeError) as exc:
            raise FeedUnavailable(f"transport error: {exc.__class__.__name__}: {exc}") from exc

        try:
            return json.loads(raw or "null")
        except json.JSONDecodeError as exc:
            raise FeedUnavailable(f"invalid JSON from {path}: {exc}") from exc
