# ratelimit/registry.py – Limiters nommés + balayage périodique des clés expirées

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from scout.ratelimit.limiter import SlidingWindowRateLimiter

log = logging.getLogger(__name__)

STEAM_GLOBAL_KEY = "global:steam-api"


def _steam_key(_request) -> str:
    # Une seule clé pour tous les users : protège le quota Steam global
    return STEAM_GLOBAL_KEY


def default_limiters(clock: Callable[[], float] = time.monotonic) -> Dict[str, SlidingWindowRateLimiter]:
    """Predefined profiles: strict auth (failures only), lenient read, strict write, global steam."""
    return {
        "auth": SlidingWindowRateLimiter(
            "auth", window_seconds=15 * 60, max_requests=5,
            skip_successful=True,  # seuls les échecs comptent
            message="Too many authentication attempts. Please try again later.",
            clock=clock,
        ),
        "read": SlidingWindowRateLimiter(
            "read", window_seconds=60, max_requests=120,
            message="Too many requests. Please try again shortly.",
            clock=clock,
        ),
        "write": SlidingWindowRateLimiter(
            "write", window_seconds=60, max_requests=20,
            message="Too many write operations. Please slow down.",
            clock=clock,
        ),
        "steam": SlidingWindowRateLimiter(
            "steam", window_seconds=5 * 60, max_requests=100,
            message="Steam API rate limit exceeded. Please try again later.",
            key_func=_steam_key,
            clock=clock,
        ),
    }


class RateLimiterRegistry:
    """
    Owns the process-wide limiters.

    Created at startup, ``start()`` launches the periodic sweep, ``stop()``
    cancels it at shutdown.
    """

    def __init__(self, limiters: Optional[Dict[str, SlidingWindowRateLimiter]] = None,
                 sweep_interval: float = 300.0):
        self._limiters: Dict[str, SlidingWindowRateLimiter] = (
            limiters if limiters is not None else default_limiters()
        )
        self.sweep_interval = sweep_interval
        self._task: Optional[asyncio.Task] = None

    def __getitem__(self, name: str) -> SlidingWindowRateLimiter:
        return self._limiters[name]

    def sweep(self) -> int:
        removed = 0
        for limiter in self._limiters.values():
            removed += limiter.sweep()
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                removed = self.sweep()
                if removed:
                    log.info("Rate limit sweep removed %d expired entries", removed)
            except Exception:
                log.exception("Rate limit sweep failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def stats(self) -> Dict[str, int]:
        return {name: len(limiter) for name, limiter in self._limiters.items()}
