# ratelimit/limiter.py
# ============================================================================
# Rate limiter "sliding window" par clé (user ou IP), stockage en RAM
# Une instance = un keyspace isolé (auth, read, write, steam…)
# ============================================================================

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Optional

from scout.errors import InternalLimiterError

log = logging.getLogger(__name__)


@dataclass(eq=False)
class Ticket:
    """
    One recorded request inside a window.

    Compared by identity: two requests recorded at the same instant are still
    two different tickets, so a retraction only ever removes its own.
    """
    at: float


@dataclass
class RateLimitEntry:
    """Requests recorded for one caller key."""
    requests: Deque[Ticket] = field(default_factory=deque)

    def prune(self, window_start: float) -> None:
        # Purge des requêtes sorties de la fenêtre
        while self.requests and self.requests[0].at <= window_start:
            self.requests.popleft()

    def expires_at(self, window: float) -> float:
        if not self.requests:
            return float("-inf")
        return self.requests[-1].at + window


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int
    limit: int
    reset_at: float
    reset_after_seconds: int = 0
    ticket: Optional[Ticket] = None


def client_ip(request: Any) -> str:
    """Real client IP, behind proxies and load balancers."""
    headers = getattr(request, "headers", {}) or {}
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip

    client = getattr(request, "client", None)
    if client is not None and getattr(client, "host", None):
        return client.host
    return "unknown"


def default_key_func(request: Any) -> str:
    """Authenticated user id if present, otherwise the source IP."""
    state = getattr(request, "state", None)
    user_id = getattr(state, "user_id", None) if state is not None else None
    if user_id:
        return f"user:{user_id}"
    return f"ip:{client_ip(request)}"


class SlidingWindowRateLimiter:
    """Per-key sliding window limiter (not clock-aligned buckets)."""

    def __init__(
        self,
        name: str,
        window_seconds: float = 60.0,
        max_requests: int = 60,
        key_func: Optional[Callable[[Any], str]] = None,
        skip_successful: bool = False,
        skip_failed: bool = False,
        message: str = "Too many requests, please try again later.",
        clock: Callable[[], float] = time.monotonic,
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")

        self.name = name
        self.window = window_seconds
        self.max_requests = max_requests
        self.key_func = key_func or default_key_func
        self.skip_successful = skip_successful
        self.skip_failed = skip_failed
        self.message = message
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

    def key_for(self, request: Any) -> str:
        return self.key_func(request)

    def check_and_record(self, key: str, now: Optional[float] = None) -> RateLimitDecision:
        """
        Check ``key`` against its window and record the request if allowed.

        Never raises: an internal fault is logged and the request is let
        through.
        """
        if now is None:
            now = self._clock()
        try:
            return self._check_and_record(key, now)
        except Exception as e:
            err = InternalLimiterError(f"{self.name} limiter failed for {key}: {e}")
            log.error("Rate limiter error: %s", err, exc_info=True)
            return RateLimitDecision(
                allowed=True,
                remaining=self.max_requests,
                retry_after_seconds=0,
                limit=self.max_requests,
                reset_at=now + self.window,
                reset_after_seconds=math.ceil(self.window),
            )

    def _check_and_record(self, key: str, now: float) -> RateLimitDecision:
        entry = self._entries.get(key)
        if entry is None:
            entry = RateLimitEntry()
            self._entries[key] = entry

        entry.prune(now - self.window)

        if len(entry.requests) >= self.max_requests:
            # On attend que la plus vieille requête sorte de la fenêtre
            oldest_expiry = entry.requests[0].at + self.window
            retry_after = max(0, math.ceil(oldest_expiry - now))
            log.warning(
                "Rate limit exceeded for %s on %s: %d/%d requests",
                key, self.name, len(entry.requests), self.max_requests,
            )
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                retry_after_seconds=retry_after,
                limit=self.max_requests,
                reset_at=oldest_expiry,
                reset_after_seconds=retry_after,
            )

        ticket = Ticket(now)
        entry.requests.append(ticket)
        reset_at = entry.requests[0].at + self.window
        return RateLimitDecision(
            allowed=True,
            remaining=self.max_requests - len(entry.requests),
            retry_after_seconds=0,
            limit=self.max_requests,
            reset_at=reset_at,
            reset_after_seconds=max(0, math.ceil(reset_at - now)),
            ticket=ticket,
        )

    def should_retract(self, status_code: int) -> bool:
        if self.skip_successful and 200 <= status_code < 300:
            return True
        if self.skip_failed and status_code >= 400:
            return True
        return False

    def report(self, key: str, ticket: Optional[Ticket], status_code: int) -> bool:
        """
        Report the outcome of a request recorded under ``key``.

        Returns True if ``ticket`` was retracted from the window.
        """
        if ticket is None or not self.should_retract(status_code):
            return False
        return self.retract(key, ticket)

    def retract(self, key: str, ticket: Ticket) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        for i, recorded in enumerate(entry.requests):
            if recorded is ticket:
                del entry.requests[i]
                return True
        # Déjà sorti de la fenêtre (ou balayé)
        return False

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop every key whose window has fully elapsed. Returns the count."""
        if now is None:
            now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if entry.expires_at(self.window) <= now
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            log.debug("Swept %d expired keys from %s limiter", len(expired), self.name)
        return len(expired)

    def usage(self, key: str, now: Optional[float] = None) -> int:
        """Number of requests currently counted for ``key``."""
        entry = self._entries.get(key)
        if entry is None:
            return 0
        if now is None:
            now = self._clock()
        entry.prune(now - self.window)
        return len(entry.requests)

    def __len__(self) -> int:
        return len(self._entries)
