"""
In-memory sliding-window rate limiting.

Two limiters are built per application by create_app() and kept on
app.state.rate_limiters:

- general: every API request counts, keyed by client IP
- login: only failed login attempts count, keyed by client IP

Counters live in process memory; each worker process limits on its own.
"""
import math
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, FrozenSet, Optional

from fastapi import Request

from portfolio_api.core.audit_utils import get_client_ip
from portfolio_api.core.config import Settings
from portfolio_api.core.exceptions import RateLimitExceededError
from portfolio_api.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimit:
    max_requests: int
    window_seconds: int


class SlidingWindowRateLimiter:
    """Counts events per key over a trailing window."""

    def __init__(self, limit: RateLimit):
        self.limit = limit
        self._events: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_sweep = time.monotonic()

    def _prune(self, events: Deque[float], now: float) -> None:
        window_start = now - self.limit.window_seconds
        while events and events[0] <= window_start:
            events.popleft()

    def _sweep(self, now: float) -> None:
        """Drop keys with no events left in the window. Caller holds the lock."""
        if now - self._last_sweep < self.limit.window_seconds:
            return
        self._last_sweep = now
        for key in list(self._events):
            events = self._events[key]
            self._prune(events, now)
            if not events:
                del self._events[key]

    def retry_after(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Seconds until key may act again, or None when it is under the limit.
        """
        timestamp = now if now is not None else time.monotonic()
        with self._lock:
            events = self._events.get(key)
            if not events:
                return None
            self._prune(events, timestamp)
            if not events:
                del self._events[key]
                return None
            if len(events) < self.limit.max_requests:
                return None
            return max(1, math.ceil(events[0] + self.limit.window_seconds - timestamp))

    def hit(self, key: str, now: Optional[float] = None) -> None:
        """Record one event for key."""
        timestamp = now if now is not None else time.monotonic()
        with self._lock:
            self._sweep(timestamp)
            events = self._events[key]
            self._prune(events, timestamp)
            events.append(timestamp)

    def allow(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Record an event if key is under the limit.

        Returns None when allowed, otherwise the retry-after seconds.
        """
        timestamp = now if now is not None else time.monotonic()
        blocked = self.retry_after(key, now=timestamp)
        if blocked is None:
            self.hit(key, now=timestamp)
        return blocked

    def tracked_keys(self) -> int:
        """Number of keys currently holding events."""
        with self._lock:
            return len(self._events)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._events.clear()
            else:
                self._events.pop(key, None)


class RateLimiters:
    """The limiters and exemptions of one application instance."""

    def __init__(self, settings: Settings):
        self.enabled = settings.rate_limit_enabled
        self.trusted_ips: FrozenSet[str] = frozenset(settings.trusted_ips_list)
        self.general = SlidingWindowRateLimiter(RateLimit(
            max_requests=settings.general_rate_limit_max_requests,
            window_seconds=settings.general_rate_limit_window_seconds,
        ))
        self.login = SlidingWindowRateLimiter(RateLimit(
            max_requests=settings.auth_rate_limit_max_attempts,
            window_seconds=settings.auth_rate_limit_window_seconds,
        ))

    def key_for(self, request: Request) -> Optional[str]:
        """Client key, or None when the request is exempt."""
        if not self.enabled:
            return None
        client_ip = get_client_ip(request, trust_forwarded=False) or "unknown"
        if client_ip in self.trusted_ips:
            return None
        return client_ip


def get_rate_limiters(request: Request) -> RateLimiters:
    return request.app.state.rate_limiters


async def enforce_general_rate_limit(request: Request) -> None:
    """Router-level dependency applying the general request budget."""
    limiters = get_rate_limiters(request)
    key = limiters.key_for(request)
    if key is None:
        return

    retry_after = limiters.general.allow(key)
    if retry_after is not None:
        logger.warning("rate_limit_exceeded", limiter="general", client=key, path=request.url.path)
        raise RateLimitExceededError(retry_after)


async def enforce_login_rate_limit(request: Request) -> None:
    """Reject login attempts from clients that exhausted their failure budget."""
    limiters = get_rate_limiters(request)
    key = limiters.key_for(request)
    if key is None:
        return

    retry_after = limiters.login.retry_after(key)
    if retry_after is not None:
        logger.warning("rate_limit_exceeded", limiter="login", client=key)
        raise RateLimitExceededError(
            retry_after,
            detail="Too many failed login attempts, please try again later",
        )


def record_failed_login(request: Request) -> None:
    limiters = get_rate_limiters(request)
    key = limiters.key_for(request)
    if key is not None:
        limiters.login.hit(key)
