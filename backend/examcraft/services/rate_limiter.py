"""
Rate-limited caller for the text-completion service.

Two orthogonal layers wrap every outbound request:

  THROTTLE: sliding window
    At most `limit` dispatches per rolling `window` seconds. A caller beyond
    the cap waits (asyncio.sleep, never busy-spin) until the oldest slot
    leaves the window. The slot is recorded at dispatch time, so a request
    that was sent and then cancelled by its caller still counts.

  RETRY: linear backoff
    On failure the request is retried up to `max_retries` times, sleeping
    `base_delay × attempt` seconds before attempt N+1. Every attempt takes a
    fresh throttle slot. When retries run out the last exception propagates
    unchanged; wrapping it with phase information is the caller's job.

One RateLimitedCaller is shared per process (get_rate_limited_caller) so that
concurrent gradings respect the same global window.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Optional

from examcraft.core.config import get_settings

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]
CompleteFn = Callable[..., Awaitable[str]]


class SlidingWindowLimiter:
    def __init__(
        self,
        limit: int = 5,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._stamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._stamps and now - self._stamps[0] >= self.window:
            self._stamps.popleft()

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._stamps)

    async def acquire(self) -> None:
        """Wait for a free slot, then record it."""
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)
                if len(self._stamps) < self.limit:
                    self._stamps.append(now)
                    return
                wait = self._stamps[0] + self.window - now
                logger.info("Throttle full (%d/%d); waiting %.2fs", len(self._stamps), self.limit, wait)
                await self._sleep(max(wait, 0.0))


class RateLimitedCaller:
    def __init__(
        self,
        complete: CompleteFn,
        limiter: Optional[SlidingWindowLimiter] = None,
        max_retries: int = 3,
        base_delay: float = 2.0,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._complete = complete
        self.limiter = limiter or SlidingWindowLimiter()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    async def invoke(
        self,
        messages: list,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        attempt = 0
        while True:
            await self.limiter.acquire()
            try:
                return await self._complete(
                    messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    json_mode=json_mode,
                )
            except Exception as exc:
                if attempt >= self.max_retries:
                    logger.error("Text service failed after %d attempts: %s", attempt + 1, exc)
                    raise
                attempt += 1
                delay = self.base_delay * attempt
                logger.warning(
                    "Text service attempt %d/%d failed: %s - retrying in %.1fs",
                    attempt, self.max_retries + 1, exc, delay,
                )
                await self._sleep(delay)


_CALLER: Optional[RateLimitedCaller] = None


def get_rate_limited_caller() -> RateLimitedCaller:
    """Return the process-wide caller (built lazily from settings)."""
    global _CALLER
    if _CALLER is None:
        from examcraft.services.ai import get_ai_service

        settings = get_settings()
        _CALLER = RateLimitedCaller(
            get_ai_service().complete,
            limiter=SlidingWindowLimiter(
                limit=settings.rate_limit_calls,
                window=settings.rate_limit_window_seconds,
            ),
            max_retries=settings.retry_max,
            base_delay=settings.retry_base_delay_seconds,
        )
    return _CALLER
