"""Health tracking for the price feed, the oracle and the exchange link."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

WARN_AFTER_ORACLE_ERRORS = 3


@dataclass(slots=True)
class HealthStatus:
    feed: str = "OK"
    oracle: str = "OK"
    feed_consecutive_errors: int = 0
    oracle_consecutive_errors: int = 0


class HealthMonitor:
    def __init__(self, logger: Any | None = None) -> None:
        self.logger = logger
        self.status = HealthStatus()
        self._connected = False

    def record_feed_ok(self) -> None:
        self.status.feed = "OK"
        self.status.feed_consecutive_errors = 0

    def record_feed_error(self, exc: Exception) -> None:
        self.status.feed = "ERROR"
        self.status.feed_consecutive_errors += 1
        self._log_warning(
            "HealthMonitor: price feed failed {} time(s) in a row: {}",
            self.status.feed_consecutive_errors,
            exc,
        )

    def record_oracle_ok(self) -> None:
        self.status.oracle = "OK"
        self.status.oracle_consecutive_errors = 0

    def record_oracle_error(self) -> None:
        self.status.oracle = "ERROR"
        self.status.oracle_consecutive_errors += 1
        if self.status.oracle_consecutive_errors == WARN_AFTER_ORACLE_ERRORS:
            self._log_warning("HealthMonitor: oracle failed {} times in a row", WARN_AFTER_ORACLE_ERRORS)

    def set_connected(self, connected: bool) -> None:
        self._connected = connected

    def snapshot(self) -> dict[str, str | int]:
        return {
            "exchange": "CONNECTED" if self._connected else "STANDBY",
            "feed": self.status.feed,
            "oracle": self.status.oracle,
            "feed_consecutive_errors": self.status.feed_consecutive_errors,
            "oracle_consecutive_errors": self.status.oracle_consecutive_errors,
        }

    def _log_warning(self, message: str, *args: object) -> None:
        if self.logger is not None and hasattr(self.logger, "warning"):
            self.logger.warning(message, *args)
        elif self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info(message, *args)
