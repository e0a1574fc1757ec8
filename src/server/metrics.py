"""In-process request metrics collected by the request logging middleware."""

from __future__ import annotations

import time
from collections import deque
from typing import Deque


class RequestMetrics:
    """Request / error counters plus the last ``window`` response times."""

    def __init__(self, window: int = 100) -> None:
        self.started_at = time.time()
        self.request_count = 0
        self.error_count = 0
        self.response_times_ms: Deque[float] = deque(maxlen=window)

    def record(self, status_code: int, duration_ms: float) -> None:
        self.request_count += 1
        if status_code >= 400:
            self.error_count += 1
        self.response_times_ms.append(duration_ms)

    @property
    def average_response_ms(self) -> float:
        if not self.response_times_ms:
            return 0.0
        return sum(self.response_times_ms) / len(self.response_times_ms)

    @property
    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)
