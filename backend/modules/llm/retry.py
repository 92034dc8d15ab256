"""
Retry/backoff policy for LLM calls.

Only rate-limit class failures are retried; everything else propagates
on the first attempt.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from modules.mcp.errors import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0

_RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "rate limit", "quota")


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an error as rate limiting / resource exhaustion."""
    if isinstance(error, RateLimitError):
        return True
    for attr in ("status_code", "code"):
        if getattr(error, attr, None) == 429:
            return True
    message = str(error).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


async def with_retry(
    call: Callable[[], Awaitable[T]],
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``call`` with exponential backoff on rate limiting.

    Waits ``base_delay * 2 ** attempt`` between attempts (1s, 2s with the
    defaults). The last failure is re-raised without a trailing delay.
    """
    for attempt in range(max_attempts):
        try:
            return await call()
        except Exception as e:
            if not is_rate_limit_error(e) or attempt == max_attempts - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"Rate limited (attempt {attempt + 1}/{max_attempts}), retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)

    raise RuntimeError("with_retry requires max_attempts >= 1")
