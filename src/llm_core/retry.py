from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx
import structlog

from .metrics import retry_attempts_total

log = structlog.get_logger()

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delays_ms: tuple[int, ...] = field(default=(1000, 2000, 4000))

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1.")
        if any(d < 0 for d in self.delays_ms):
            raise ValueError("delays_ms must be non-negative.")

    def delay_seconds(self, attempt_index: int) -> float:
        # attempt_index: 0-based index of the attempt that just failed
        if not self.delays_ms:
            return 0.0
        return self.delays_ms[min(attempt_index, len(self.delays_ms) - 1)] / 1000.0


DEFAULT_RETRY_POLICY = RetryPolicy()


def status_code_of(error: BaseException) -> int | None:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def is_transient(error: BaseException) -> bool:
    """Rate limiting, server-side 5xx and network-level failures are worth retrying."""
    if isinstance(error, httpx.TransportError):
        return True
    return status_code_of(error) in TRANSIENT_STATUS_CODES


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleeper: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """
    Run `operation`, re-issuing it after transient failures.

    Permanent failures are raised immediately. Once attempts are exhausted the
    last failure is raised unchanged.
    """
    policy = policy or DEFAULT_RETRY_POLICY
    sleep = sleeper or asyncio.sleep

    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not is_transient(e) or attempt >= policy.max_attempts - 1:
                raise
            reason = str(status_code_of(e) or type(e).__name__)
            delay = policy.delay_seconds(attempt)
            retry_attempts_total.labels(reason=reason).inc()
            log.info("provider_retry", attempt=attempt + 1, reason=reason, delay_seconds=delay, error=str(e))
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
