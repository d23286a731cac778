"""Exponential backoff with jitter for upstream API calls.

Retries on HTTP 429, any 5xx, timeouts, and transport failures caused by a
connection reset or abort or a temporary DNS failure (EAI_AGAIN). Everything
else, including connection refused and permanent DNS errors, is fatal and
re-raised at once. The original exception always propagates unchanged so
callers can inspect the upstream status code.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import socket
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, replace
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Always transient, whatever caused them.
TIMEOUT_ERRORS: tuple[type[BaseException], ...] = (httpx.TimeoutException, TimeoutError)

# Transient when raised directly or found in an httpx transport error's cause chain.
TRANSIENT_CAUSES: tuple[type[BaseException], ...] = (
    ConnectionResetError,
    ConnectionAbortedError,
    TimeoutError,
)

_EAI_AGAIN = getattr(socket, "EAI_AGAIN", None)

JITTER_RATIO = 0.2


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry bounds. Delays are in seconds.

    Attributes:
        retries: Retries after the first attempt (total attempts = retries + 1).
        base_delay: Delay before the first retry.
        max_delay: Cap applied to the exponential delay, before jitter.
    """

    retries: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0

    def with_overrides(self, **changes: float) -> BackoffPolicy:
        return replace(self, **changes)


DEFAULT_POLICY = BackoffPolicy()


def _cause_chain(error: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_transient_cause(error: BaseException) -> bool:
    if isinstance(error, TRANSIENT_CAUSES):
        return True
    return (
        isinstance(error, socket.gaierror)
        and _EAI_AGAIN is not None
        and error.errno == _EAI_AGAIN
    )


def is_retryable(error: BaseException) -> bool:
    """Classify an error as transient (retry) or fatal (propagate)."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or 500 <= status < 600
    if isinstance(error, TIMEOUT_ERRORS):
        return True
    # a server dropping the connection mid-request is a reset
    if isinstance(error, httpx.RemoteProtocolError):
        return True
    if isinstance(error, httpx.TransportError):
        return any(_is_transient_cause(e) for e in _cause_chain(error))
    return _is_transient_cause(error)


def compute_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Capped exponential delay plus up to 20% jitter, rounded up to the ms."""
    capped = min(base_delay * (2**attempt), max_delay)
    jitter = random.uniform(0, capped * JITTER_RATIO)
    # round first so float noise (2.4 * 1000 = 2400.0000000000005) does not add a ms
    return math.ceil(round((capped + jitter) * 1000, 6)) / 1000


async def _sleep(delay: float) -> None:
    await asyncio.sleep(delay)


def _describe(error: BaseException) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return type(error).__name__


async def with_backoff(
    work: Callable[[int], Awaitable[T]],
    policy: BackoffPolicy | None = None,
) -> T:
    """Run ``work(attempt)`` until it succeeds, fails fatally, or retries run out.

    Args:
        work: Zero-state async operation; receives the attempt number (0-based).
        policy: Retry bounds. Defaults to 3 retries, 0.2s base, 2s cap.

    Returns:
        Whatever ``work`` returns on its first successful attempt.
    """
    policy = policy or DEFAULT_POLICY
    attempt = 0
    while True:
        try:
            return await work(attempt)
        except Exception as e:
            if attempt >= policy.retries or not is_retryable(e):
                raise
            delay = compute_delay(attempt, policy.base_delay, policy.max_delay)
            logger.warning(
                "Retry %d/%d after %s, waiting %.3fs",
                attempt + 1,
                policy.retries,
                _describe(e),
                delay,
            )
            await _sleep(delay)
            attempt += 1
