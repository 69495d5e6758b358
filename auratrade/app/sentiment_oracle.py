"""Gemini-backed market sentiment classifier."""

from __future__ import annotations

import asyncio
import http.client
import json
from collections.abc import Sequence
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from pydantic import ValidationError

from auratrade.app.models import Classification

FALLBACK_SUMMARY = "Error connecting to analysis engine."
ADVICE_OFFLINE = "Strategic engine offline. Please check connectivity."

CLASSIFICATION_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "sentiment": {"type": "STRING", "description": "BULLISH, BEARISH, or NEUTRAL"},
        "score": {"type": "NUMBER", "description": "Strength from -1 to 1"},
        "summary": {"type": "STRING"},
        "recommendation": {"type": "STRING"},
        "suggestedStopLoss": {"type": "NUMBER"},
        "suggestedTakeProfit": {"type": "NUMBER"},
    },
    "required": ["sentiment", "score", "summary", "recommendation"],
}


class ClassificationFailure(RuntimeError):
    """Raised when the oracle cannot produce a valid classification."""


def build_prompt(asset: str, prices: Sequence[float]) -> str:
    trend = ", ".join(f"{price:g}" for price in prices)
    return (
        f"Analyze the current trading situation for {asset}.\n"
        f"Recent price trend: {trend}.\n"
        "Act as a professional algorithmic trader. Evaluate the momentum, volatility, and potential risk.\n"
        "Return a structured JSON analysis."
    )


def build_advice_prompt(mode: str, objective: str) -> str:
    return (
        f"Generate a high-level automated trading strategy summary for {mode} risk profile "
        f'with the objective: "{objective}". Keep it concise and professional. '
        "Use bullet points for key rules."
    )


class GeminiSentimentOracle:
    """Classifies a price series; ``classify`` never raises."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3-flash-preview",
        advice_model: str = "gemini-3-pro-preview",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_sec: float = 30.0,
        min_samples: int = 5,
        logger: Any | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.advice_model = advice_model
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.min_samples = min_samples
        self.logger = logger
        self.last_failure: str | None = None

    async def classify(self, asset: str, prices: Sequence[float]) -> Classification:
        try:
            classification = await self._classify(asset, prices)
        except ClassificationFailure as exc:
            self._log_error("classify", exc)
            self.last_failure = str(exc)
            return Classification.fallback(FALLBACK_SUMMARY)
        except Exception as exc:  # noqa: BLE001
            self._log_error("classify_unexpected", exc)
            self.last_failure = str(exc)
            return Classification.fallback(FALLBACK_SUMMARY)
        self.last_failure = None
        return classification

    async def advise_strategy(self, mode: str, objective: str) -> str:
        try:
            body = {"contents": [{"parts": [{"text": build_advice_prompt(mode, objective)}]}]}
            text = await self._generate(self.advice_model, body)
        except Exception as exc:  # noqa: BLE001
            self._log_error("advise_strategy", exc)
            return ADVICE_OFFLINE
        return text.strip() or "Unable to generate strategy."

    async def _classify(self, asset: str, prices: Sequence[float]) -> Classification:
        if len(prices) < self.min_samples:
            raise ClassificationFailure(f"need at least {self.min_samples} prices, got {len(prices)}")

        body = {
            "contents": [{"parts": [{"text": build_prompt(asset, prices)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": CLASSIFICATION_SCHEMA,
            },
        }
        text = await self._generate(self.model, body)
        return self.parse_classification(text)

    @staticmethod
    def parse_classification(text: str) -> Classification:
        try:
            return Classification.model_validate_json(text or "{}")
        except ValidationError as exc:
            raise ClassificationFailure(f"invalid classification payload: {exc.error_count()} errors") from exc

    async def _generate(self, model: str, body: dict[str, Any]) -> str:
        if not self.api_key:
            raise ClassificationFailure("Gemini API key is not configured")
        payload = await asyncio.to_thread(self._request_sync, f"/models/{model}:generateContent", body)
        return self._extract_text(payload)

    @staticmethod
    def _extract_text(payload: dict[str, Any]) -> str:
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not isinstance(candidates, list) or not candidates:
            feedback = payload.get("promptFeedback") if isinstance(payload, dict) else None
            raise ClassificationFailure(f"no candidates in response feedback={feedback}")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
        if not text:
            raise ClassificationFailure(f"empty candidate finish_reason={candidates[0].get('finishReason')}")
        return text

    def _request_sync(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        req = Request(
            url=f"{self.base_url}{path}",
            data=json.dumps(body).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
        )

        try:
            with urlopen(req, timeout=self.timeout_sec) as resp:
                raw = resp.read().decode("utf-8")
        except HTTPError as exc:
            raw = exc.read().decode("utf-8", errors="ignore")
            raise ClassificationFailure(f"HTTPError {exc.code}: {raw[:200]}") from exc
        except URLError as exc:
            raise ClassificationFailure(f"URLError: {exc}") from exc
        except TimeoutError as exc:
            raise ClassificationFailure(f"timeout: {exc}") from exc
        except (OSError, http.client.HTTPException, UnicodeDecodeError) as exc:
            raise ClassificationFailure(f"transport error: {exc.__class__.__name__}: {exc}") from exc

        try:
            payload = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise ClassificationFailure(f"invalid JSON from Gemini: {exc}") from exc
        if not isinstance(payload, dict):
            raise ClassificationFailure("unexpected Gemini response shape")
        return payload

    def _log_error(self, scope: str, exc: Exception) -> None:
        if self.logger is not None and hasattr(self.logger, "error"):
            self.logger.error("SentimentOracle error [{}]: {}", scope, exc)
