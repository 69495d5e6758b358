"""Bounded newest-first activity log shown on the dashboard."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Any, Callable

from auratrade.app.models import LogEntry

LOG_CAPACITY = 50


class ActivityLog:
    def __init__(
        self,
        capacity: int = LOG_CAPACITY,
        logger: Any | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self.logger = logger
        self._clock = clock

    def record(self, message: str) -> LogEntry:
        entry = LogEntry(time=self._clock().strftime("%H:%M:%S"), message=str(message))
        self._entries.appendleft(entry)
        if self.logger is not None and hasattr(self.logger, "info"):
            self.logger.info("activity: {}", entry.message)
        return entry

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def lines(self) -> list[str]:
        return [f"[{entry.time}] {entry.message}" for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
