"""
Integration Manager - API Rate Limiting.

In-process fixed-window limiter keyed by (api_key, endpoint).
Each allowed check consumes one request from the window.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from core.clock import ClockFactory, ClockProtocol


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining_requests: int
    reset_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining_requests": self.remaining_requests,
            "reset_time": self.reset_time.isoformat(),
        }


class FixedWindowRateLimiter:
    """
    Counts requests per key in fixed windows aligned to the epoch.

    Counters from earlier windows are dropped when the first
    check of a new window arrives.
    """

    def __init__(
        self,
        max_requests: int = 1000,
        window_seconds: int = 3600,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if max_requests < 1 or window_seconds < 1:
            raise ValueError("max_requests and window_seconds must be >= 1")
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock or ClockFactory.get_clock()
        # key -> (window start epoch seconds, count)
        self._counters: Dict[Tuple[str, str], Tuple[int, int]] = {}
        self._current_window: Optional[int] = None

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def tracked_keys(self) -> int:
        """Keys holding a counter for the current window."""
        return len(self._counters)

    def _window_start(self) -> int:
        now = int(self._clock.now().timestamp())
        return now - now % self._window_seconds

    def next_reset(self) -> datetime:
        start = self._window_start()
        return datetime.fromtimestamp(start, tz=timezone.utc) + timedelta(seconds=self._window_seconds)

    def check(self, api_key: str, endpoint: str) -> RateLimitDecision:
        """Consume one request for the key if the window allows it."""
        key = (api_key, endpoint)
        window_start = self._window_start()
        if window_start != self._current_window:
            self._counters = {
                k: v for k, v in self._counters.items() if v[0] >= window_start
            }
            self._current_window = window_start

        start, count = self._counters.get(key, (window_start, 0))
        if start != window_start:
            count = 0

        allowed = count < self._max_requests
        if allowed:
            count += 1
        else:
            logger.warning(f"Rate limit exceeded for endpoint {endpoint}")
        self._counters[key] = (window_start, count)

        return RateLimitDecision(
            allowed=allowed,
            remaining_requests=self._max_requests - count,
            reset_time=self.next_reset(),
        )

    def reset(self) -> None:
        self._counters.clear()
        self._current_window = None
