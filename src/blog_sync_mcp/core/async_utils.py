"""Async and retry utilities for callers of the synchronous sync core.

The core never retries; ``call_with_retry`` is the caller-side policy
used by the MCP tools and the CLI.
"""

import asyncio
import logging
import secrets
import time
from typing import Any, Callable, TypeVar

from ..errors import RequestFailed

T = TypeVar("T")
logger = logging.getLogger(__name__)

_BASE_RETRY_DELAY_SECONDS = 0.5
_MAX_RETRY_DELAY_SECONDS = 8.0
_JITTER_SCALE = 1000


def retry_delay_seconds(attempt: int) -> float:
    """Bounded exponential backoff with jitter."""
    base_delay = _BASE_RETRY_DELAY_SECONDS * (2 ** min(attempt, 10))
    jitter_ratio = secrets.randbelow(_JITTER_SCALE) / _JITTER_SCALE
    return min(_MAX_RETRY_DELAY_SECONDS, base_delay + base_delay * jitter_ratio)


def is_transient(exc: BaseException) -> bool:
    """True for transport failures and 5xx responses.

    Looks through exception chains, so a ``PublishFailed`` caused by a
    timeout counts as transient.
    """
    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, RequestFailed):
            return current.status is None or current.status >= 500
        current = current.__cause__
    return False


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    attempts: int = 3,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Call *func*, retrying transient remote failures.

    Non-transient errors and the last failure propagate unchanged.
    """
    for attempt in range(attempts):
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            if attempt + 1 >= attempts or not is_transient(exc):
                raise
            delay = retry_delay_seconds(attempt)
            logger.warning("%s; retrying in %.1fs", exc, delay)
            sleep(delay)
    raise AssertionError("unreachable")


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in a worker thread.

    Sync passes and publishes do blocking HTTP and file I/O; running them
    here keeps the event loop serving other requests.

    Example:
        result = await run_sync(engine.sync, force_delete=False)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
