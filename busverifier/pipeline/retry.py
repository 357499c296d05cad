"""
Retry policy — bounded attempts with exponential backoff.

Wait ``backoff_base ** k`` seconds after failed attempt ``k`` (2s then 4s
with the defaults); no wait after the final attempt. Exhaustion returns
``None`` instead of raising.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, TypeVar

from busverifier.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_present(result: Any) -> bool:
    return result is not None


@dataclass
class RetryPolicy:
    attempts: int = 3
    backoff_base: float = 2.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RetryPolicy":
        return cls(attempts=settings.ai_max_attempts, backoff_base=settings.ai_backoff_base, **kwargs)

    def delay(self, attempt: int) -> float:
        return self.backoff_base ** attempt

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        is_usable: Callable[[Any], bool] = _is_present,
    ) -> Optional[T]:
        for attempt in range(1, self.attempts + 1):
            try:
                logger.info("Attempt %d/%d", attempt, self.attempts)
                result = await operation()
                if is_usable(result):
                    return result
                logger.warning("Attempt %d/%d returned no usable payload", attempt, self.attempts)
            except asyncio.CancelledError:
                raise
            except Exception as err:
                logger.warning("Attempt %d/%d failed: %s", attempt, self.attempts, err)

            if attempt < self.attempts:
                wait = self.delay(attempt)
                logger.info("Waiting %.1fs before retry...", wait)
                await self.sleep(wait)

        return None
