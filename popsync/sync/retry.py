"""Shared retry policy for upstream calls."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from ..errors import TransientUpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RetryPolicy:
    """Retry transient failures a fixed number of times with capped backoff."""

    retries: int = 1
    backoff_seconds: float = 1.0
    retry_on: tuple[type[BaseException], ...] = (TransientUpstreamError,)

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * min(2 ** (attempt - 1), 5)

    async def call(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        description: str,
    ) -> T:
        """Await ``func()``, retrying up to ``retries`` times on ``retry_on`` errors."""

        attempt = 0
        while True:
            try:
                return await func()
            except self.retry_on as exc:
                attempt += 1
                if attempt > self.retries:
                    raise
                backoff = self.delay_for(attempt)
                logger.info(
                    "Transient error during %s (%s). Retrying in %.1fs",
                    description,
                    exc,
                    backoff,
                )
                if backoff:
                    await asyncio.sleep(backoff)

    async def call_or_default(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        default: T,
        delay_seconds: float,
        description: str,
    ) -> tuple[T, bool]:
        """Like :meth:`call` but degrade to ``default`` after the courtesy delay.

        Returns the value and whether the call succeeded.
        """

        try:
            return await self.call(func, description=description), True
        except Exception as exc:
            logger.error("%s failed: %s", description, exc)
            if delay_seconds:
                await asyncio.sleep(delay_seconds)
            return default, False
