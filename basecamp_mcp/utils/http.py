"""HTTP utilities providing 429-aware retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional

import httpx

from basecamp_mcp.core.errors import RateLimitError

logger = logging.getLogger(__name__)

BACKOFF_BASE_MS = 1_000
BACKOFF_JITTER_MS = 1_000
BACKOFF_CAP_MS = 30_000
DEFAULT_MAX_ATTEMPTS = 4


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of a rate-limited attempt: wait and retry, or give up."""

    retry: bool
    wait_ms: int


def compute_backoff_delay(
    attempt: int, *, rng: Callable[[], float] = random.random
) -> int:
    """Exponential backoff with up to one second of jitter, capped at 30s.

    attempt=0 waits 1-2s, attempt=1 waits 2-3s, attempt=2 waits 4-5s.
    """
    delay = BACKOFF_BASE_MS * (2**attempt) + rng() * BACKOFF_JITTER_MS
    return int(min(delay, BACKOFF_CAP_MS))


def parse_retry_after(
    value: Optional[str], *, now: Optional[datetime] = None
) -> Optional[int]:
    """Convert a ``Retry-After`` header to milliseconds.

    Accepts delta-seconds or an HTTP-date. Returns ``None`` when the header is
    absent or unparseable; dates in the past yield zero.
    """
    if value is None:
        return None
    header = value.strip()
    if not header:
        return None

    try:
        seconds = float(header)
    except ValueError:
        seconds = None
    if seconds is not None and math.isfinite(seconds):
        return max(0, math.floor(seconds * 1000))

    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    delta_ms = (when - current).total_seconds() * 1000
    return max(0, int(delta_ms))


def decide_retry(
    retry_after: Optional[str],
    attempt: int,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    rng: Callable[[], float] = random.random,
    now: Optional[datetime] = None,
) -> RetryDecision:
    """Decide what to do after a 429 on ``attempt`` (zero-based)."""
    if attempt >= max_attempts:
        return RetryDecision(retry=False, wait_ms=compute_backoff_delay(attempt, rng=rng))
    wait_ms = parse_retry_after(retry_after, now=now)
    if wait_ms is None:
        wait_ms = compute_backoff_delay(attempt, rng=rng)
    return RetryDecision(retry=True, wait_ms=wait_ms)


async def with_rate_limit(
    func: Callable[[], Awaitable[httpx.Response]],
    attempt: int = 0,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> httpx.Response:
    """Run ``func`` (one network attempt per call), retrying on HTTP 429.

    Any other status or exception is returned/raised untouched. After
    ``max_attempts`` retries a :class:`RateLimitError` carrying the computed
    backoff is raised.
    """
    while True:
        try:
            response = await func()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code != 429:
                raise
            response = exc.response

        if response.status_code != 429:
            return response

        decision = decide_retry(
            response.headers.get("retry-after"), attempt, max_attempts, rng=rng
        )
        if not decision.retry:
            logger.warning(
                "Rate limit retries exhausted after %d attempts", attempt + 1
            )
            raise RateLimitError(decision.wait_ms)

        logger.info(
            "Rate limited (attempt %d/%d); waiting %dms",
            attempt + 1,
            max_attempts,
            decision.wait_ms,
        )
        await sleep(decision.wait_ms / 1000)
        attempt += 1


__all__ = [
    "RetryDecision",
    "compute_backoff_delay",
    "decide_retry",
    "parse_retry_after",
    "with_rate_limit",
]
