"""
Rate Limiter Service
Sliding-window request accounting for ads platform APIs

Protects against exceeding rate limits for:
- Google Ads API: 15,000 operations/day per developer token
- Meta Ads API: 200 requests/hour per ad account
"""

from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple
from datetime import datetime
from threading import Lock
import time

from app.core.config import settings
from app.core.logging import logger
from app.utils.errors import RateLimitExceeded


class SlidingWindowRateLimiter:
    """
    Counts requests made in the trailing window.

    A request is allowed when fewer than `max_requests` were recorded in the
    last `window_seconds`, and the server-reported quota (if any) is not
    exhausted.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        platform: str,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize limiter.

        Args:
            max_requests: Requests allowed per window
            window_seconds: Window length in seconds
            platform: Platform name for logging
            clock: Time source (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.platform = platform
        self._clock = clock
        self._sleep = sleep
        self._requests: Deque[Tuple[float, str]] = deque()
        self._server_limit: Optional[Dict[str, float]] = None
        self.lock = Lock()

    def _clean_old_requests(self) -> None:
        cutoff = self._clock() - self.window_seconds
        while self._requests and self._requests[0][0] <= cutoff:
            self._requests.popleft()

    def check(self, endpoint: str = "") -> Tuple[bool, float]:
        """
        Check whether a request may be sent now.

        Args:
            endpoint: Endpoint name for logging

        Returns:
            (allowed, retry_after_seconds)
        """
        with self.lock:
            self._clean_old_requests()
            now = self._clock()

            if self._server_limit and self._server_limit["reset_at"] > now:
                if self._server_limit["remaining"] <= 0:
                    retry_after = self._server_limit["reset_at"] - now
                    logger.warning(
                        f"[RATE_LIMIT] {self.platform} quota exhausted, retry in {retry_after:.0f}s",
                        extra={"platform": self.platform, "endpoint": endpoint},
                    )
                    return False, retry_after

            if len(self._requests) >= self.max_requests:
                oldest_ts = self._requests[0][0]
                retry_after = max(0.0, oldest_ts + self.window_seconds - now)
                logger.warning(
                    f"[RATE_LIMIT] {self.platform} window full "
                    f"({len(self._requests)}/{self.max_requests}), retry in {retry_after:.0f}s",
                    extra={"platform": self.platform, "endpoint": endpoint},
                )
                return False, retry_after

            return True, 0.0

    def record(self, endpoint: str = "") -> None:
        """Record a request that was sent"""
        with self.lock:
            self._requests.append((self._clock(), endpoint))

    def update_from_headers(self, limit: int, remaining: int, reset_timestamp: float) -> None:
        """
        Store quota reported by the platform.

        Args:
            limit: Total quota
            remaining: Requests left
            reset_timestamp: Unix timestamp when the quota resets
        """
        with self.lock:
            self._server_limit = {
                "limit": limit,
                "remaining": remaining,
                "reset_at": reset_timestamp,
            }

        logger.debug(
            f"[RATE_LIMIT] {self.platform} server quota {remaining}/{limit}",
            extra={"platform": self.platform, "reset_at": reset_timestamp},
        )

    def wait(self, endpoint: str = "") -> None:
        """Block until a request is allowed, then record it"""
        allowed, retry_after = self.check(endpoint)

        if not allowed and retry_after > 0:
            logger.info(
                f"[RATE_LIMIT] Waiting {retry_after:.1f}s for {self.platform}",
                extra={"platform": self.platform, "endpoint": endpoint},
            )
            self._sleep(retry_after)

        self.record(endpoint)

    def remaining(self) -> int:
        """Requests still available in the current window"""
        with self.lock:
            self._clean_old_requests()
            return max(0, self.max_requests - len(self._requests))

    def next_reset(self) -> Optional[datetime]:
        """When the oldest recorded request leaves the window"""
        with self.lock:
            if not self._requests:
                return None
            return datetime.utcfromtimestamp(self._requests[0][0] + self.window_seconds)

    def reset(self) -> None:
        """Forget all recorded requests (for testing/admin)"""
        with self.lock:
            self._requests.clear()
            self._server_limit = None


class DailyRequestCounter:
    """
    Plain per-run request counter for Google Ads syncs.

    Raises once the daily developer-token limit is reached. It does not
    track wall-clock days; a new counter is created per sync run.
    """

    def __init__(self, limit: int):
        self.limit = limit
        self.count = 0

    def increment(self) -> int:
        self.count += 1
        if self.count >= self.limit:
            raise RateLimitExceeded(f"Limite diario de requisicoes atingido ({self.limit:,})".replace(",", "."))
        return self.count


# Platform defaults
PLATFORM_LIMITS: Dict[str, Tuple[int, float]] = {
    "meta_ads": (settings.META_HOURLY_REQUEST_LIMIT, 3600),
    "google_ads": (settings.GOOGLE_DAILY_REQUEST_LIMIT, 86400),
}

# Global limiter registry
_rate_limiters: Dict[str, SlidingWindowRateLimiter] = {}
_registry_lock = Lock()


def get_rate_limiter(platform: str, account_id: Optional[str] = None) -> SlidingWindowRateLimiter:
    """Get or create the limiter for a platform (and optional account)"""
    key = f"{platform}:{account_id}" if account_id else platform

    with _registry_lock:
        if key not in _rate_limiters:
            max_requests, window = PLATFORM_LIMITS.get(platform, (100, 60))
            _rate_limiters[key] = SlidingWindowRateLimiter(max_requests, window, platform)
            logger.info(f"[RATE_LIMIT] Created limiter {key} ({max_requests}/{window:.0f}s)")

        return _rate_limiters[key]
