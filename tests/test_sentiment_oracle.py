"""Tests for the Gemini sentiment oracle: parsing, fallbacks and advice."""

from __future__ import annotations

import asyncio
import http.client
import json

import pytest

from auratrade.app.models import NEUTRAL
from auratrade.app.sentiment_oracle import (
    ADVICE_OFFLINE,
    CLASSIFICATION_SCHEMA,
    FALLBACK_SUMMARY,
    ClassificationFailure,
    GeminiSentimentOracle,
    build_prompt,
)

PRICES = [100.0, 101.0, 102.5, 101.5, 103.0, 104.0]


def _response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]}


def _oracle(monkeypatch, reply, api_key: str = "test-key") -> tuple[GeminiSentimentOracle, list]:
    oracle = GeminiSentimentOracle(api_key=api_key)
    calls: list = []

    def fake_request(path, body):
        calls.append((path, body))
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(oracle, "_request_sync", fake_request)
    return oracle, calls


def _assert_fallback(oracle: GeminiSentimentOracle, result) -> None:
    assert result.sentiment == NEUTRAL
    assert result.score == 0.0
    assert result.summary == FALLBACK_SUMMARY
    assert result.recommendation == "HOLD"
    assert oracle.last_failure


class TestParseClassification:
    def test_camel_case_fields_and_lower_case_label(self):
        text = json.dumps(
            {
                "sentiment": "bullish",
                "score": 0.8,
                "summary": "Strong bid",
                "recommendation": "Buy",
                "suggestedStopLoss": 49000,
                "suggestedTakeProfit": 53000,
                "extra": "ignored",
            }
        )
        result = GeminiSentimentOracle.parse_classification(text)
        assert result.sentiment == "BULLISH"
        assert result.suggested_stop_loss == 49000
        assert result.suggested_take_profit == 53000
        assert result.confidence_percent == pytest.approx(80.0)

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "",
            json.dumps({"sentiment": "BULLISH", "score": 1.5, "summary": "", "recommendation": ""}),
            json.dumps({"sentiment": "SIDEWAYS", "score": 0.1, "summary": "", "recommendation": ""}),
            json.dumps({"sentiment": "BEARISH", "score": -0.5}),
        ],
    )
    def test_invalid_payloads_raise(self, text):
        with pytest.raises(ClassificationFailure):
            GeminiSentimentOracle.parse_classification(text)


class TestClassify:
    def test_success_sends_schema_and_prompt(self, monkeypatch):
        payload = {"sentiment": "BEARISH", "score": -0.7, "summary": "Weak", "recommendation": "Sell"}
        oracle, calls = _oracle(monkeypatch, _response(json.dumps(payload)))
        oracle.last_failure = "stale"

        result = asyncio.run(oracle.classify("BTC", PRICES))

        assert result.sentiment == "BEARISH"
        assert result.score == -0.7
        assert oracle.last_failure is None
        path, body = calls[0]
        assert path == "/models/gemini-3-flash-preview:generateContent"
        assert body["generationConfig"]["responseSchema"] is CLASSIFICATION_SCHEMA
        assert "BTC" in body["contents"][0]["parts"][0]["text"]

    def test_out_of_range_score_falls_back(self, monkeypatch):
        payload = {"sentiment": "BULLISH", "score": 3, "summary": "x", "recommendation": "y"}
        oracle, _ = _oracle(monkeypatch, _response(json.dumps(payload)))
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))

    def test_transport_error_falls_back(self, monkeypatch):
        oracle, _ = _oracle(monkeypatch, ClassificationFailure("URLError: down"))
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))

    def test_unexpected_error_falls_back(self, monkeypatch):
        oracle, _ = _oracle(monkeypatch, KeyError("boom"))
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))

    def test_no_candidates_falls_back(self, monkeypatch):
        oracle, _ = _oracle(monkeypatch, {"promptFeedback": {"blockReason": "SAFETY"}})
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))

    def test_empty_text_falls_back(self, monkeypatch):
        oracle, _ = _oracle(monkeypatch, {"candidates": [{"content": {"parts": []}}]})
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))

    def test_insufficient_samples_never_calls_remote(self, monkeypatch):
        oracle, calls = _oracle(monkeypatch, _response("{}"))
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES[:4])))
        assert calls == []

    def test_missing_api_key_falls_back(self, monkeypatch):
        oracle, calls = _oracle(monkeypatch, _response("{}"), api_key="")
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))
        assert calls == []


class TestAdvice:
    def test_returns_model_text(self, monkeypatch):
        oracle, calls = _oracle(monkeypatch, _response("  - Cut losers early\n"))
        advice = asyncio.run(oracle.advise_strategy("balanced", "grow slowly"))
        assert advice == "- Cut losers early"
        assert calls[0][0] == "/models/gemini-3-pro-preview:generateContent"

    def test_offline_message_on_failure(self, monkeypatch):
        oracle, _ = _oracle(monkeypatch, ClassificationFailure("down"))
        assert asyncio.run(oracle.advise_strategy("aggressive", "x")) == ADVICE_OFFLINE


def test_prompt_lists_prices():
    prompt = build_prompt("ETH", [1.5, 2.0])
    assert "ETH" in prompt
    assert "1.5, 2" in prompt


class TestTransportFailures:
    def test_remote_disconnect_is_classification_failure(self, monkeypatch):
        import auratrade.app.sentiment_oracle as sentiment_oracle

        def broken_urlopen(*args, **kwargs):
            raise http.client.RemoteDisconnected("closed")

        monkeypatch.setattr(sentiment_oracle, "urlopen", broken_urlopen)
        oracle = GeminiSentimentOracle(api_key="k")
        with pytest.raises(ClassificationFailure):
            oracle._request_sync("/models/m:generateContent", {})
        _assert_fallback(oracle, asyncio.run(oracle.classify("BTC", PRICES)))
