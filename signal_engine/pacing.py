"""
Request Pacing and Retry for exchange REST calls

Public exchange endpoints enforce request-weight limits per rolling window.
Two tools live here:
1. RequestPacer: minimum spacing between requests plus a rolling-window cap
2. RetryPolicy: bounded retry with exponential backoff and jitter for
   transient failures
"""

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from .errors import MarketDataError

logger = logging.getLogger(__name__)


class RequestPacer:
    """
    Rate limiter for outbound market-data requests.

    Enforces:
    - Rule 1: minimum interval between consecutive requests
    - Rule 2: max requests per rolling window
    """

    def __init__(
        self,
        min_interval: float = 0.0,
        window_seconds: float = 60.0,
        max_requests: int = 1200,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize pacer.

        Args:
            min_interval: Seconds between consecutive requests (default: 0)
            window_seconds: Rolling window length (default: 60)
            max_requests: Requests allowed per window (default: 1200)
            clock: Monotonic time source
        """
        self.min_interval = min_interval
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.clock = clock

        self.request_times: Deque[float] = deque()
        self.last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()

        # Statistics
        self.total_requests = 0
        self.total_delays = 0
        self.total_delay_time = 0.0

    def required_wait(self, now: Optional[float] = None) -> float:
        """Seconds to wait before the next request may go out"""
        now = self.clock() if now is None else now
        wait_times = []

        if self.last_request_time is not None:
            elapsed = now - self.last_request_time
            if elapsed < self.min_interval:
                wait_times.append(self.min_interval - elapsed)

        window_start = now - self.window_seconds
        recent = [t for t in self.request_times if t > window_start]
        if len(recent) >= self.max_requests:
            wait_times.append(recent[0] + self.window_seconds - now)

        return max(wait_times) if wait_times else 0.0

    def record(self, timestamp: float) -> None:
        self.last_request_time = timestamp
        self.request_times.append(timestamp)
        self.total_requests += 1

        window_start = timestamp - self.window_seconds
        while self.request_times and self.request_times[0] <= window_start:
            self.request_times.popleft()

    async def wait_if_needed(self) -> float:
        """
        Sleep until a request is allowed, then record it.

        Callers are serialized so concurrent requests see each other's slots.

        Returns:
            Time waited in seconds (0 if no wait needed)
        """
        async with self._lock:
            now = self.clock()
            wait_time = self.required_wait(now)

            if wait_time > 0:
                self.total_delays += 1
                self.total_delay_time += wait_time
                logger.debug(f"Pacing: waiting {wait_time:.2f}s before request")
                await asyncio.sleep(wait_time)

            self.record(now + wait_time)
            return wait_time

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'total_requests': self.total_requests,
            'total_delays': self.total_delays,
            'total_delay_time_seconds': self.total_delay_time,
            'window_requests': len(self.request_times),
            'window_capacity_remaining': self.max_requests - len(self.request_times),
        }


@dataclass
class RetryPolicy:
    """Bounded exponential backoff applied at the data-fetch boundary"""
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based)"""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter:
            delay *= 0.75 + random.random() * 0.5
        return delay

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Execute an async request, retrying retryable MarketDataErrors.

        Args:
            func: Async function to call
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Result from func

        Raises:
            MarketDataError if the error is not retryable or all attempts fail
        """
        attempts = max(1, self.max_attempts)

        for attempt in range(attempts):
            try:
                return await func(*args, **kwargs)

            except MarketDataError as e:
                if not e.retryable:
                    raise

                if attempt == attempts - 1:
                    logger.error(f"Request failed after {attempts} attempts: {e}")
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)

        raise MarketDataError("Request failed unexpectedly")
