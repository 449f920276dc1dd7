"""Bounded retry with exponential backoff around a single logical call.

:func:`execute_with_retry` runs a zero-argument operation up to
``max_attempts`` times. Every failure is passed through
:func:`~apiguard.classifier.classify`; the resulting
:class:`~apiguard.exceptions.DomainError` decides what happens next:

- not retryable -> raised immediately;
- retryable on the final attempt -> raised;
- otherwise -> one suspension, then the next attempt.

The suspension is ``retry_after_seconds`` for rate-limited errors and
``base_delay_ms * 2 ** attempt`` for everything else (``base_delay_ms``,
``2 * base_delay_ms``, ``4 * base_delay_ms``, ...). No jitter is applied.

:func:`async_execute_with_retry` is the ``await``-based twin backed by
:func:`asyncio.sleep`. Both accept a ``sleep`` override so tests (and
callers with their own scheduler) can observe or replace the wait.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, NoReturn, Optional, TypeVar

from apiguard.classifier import classify
from apiguard.exceptions import DomainError, ErrorKind
from apiguard.output import get_output

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000


@dataclass
class RetryState:
    """Bookkeeping for one :func:`execute_with_retry` call."""

    attempt: int = 0
    last_error: Optional[DomainError] = None


def compute_delay_ms(error: DomainError, attempt: int, base_delay_ms: float) -> float:
    """Return the wait in milliseconds before the attempt after *attempt*.

    Args:
        error: The classified failure of attempt number *attempt*.
        attempt: Zero-based index of the attempt that just failed.
        base_delay_ms: Delay before the first retry.
    """
    if error.kind is ErrorKind.RATE_LIMITED and error.retry_after_seconds is not None:
        return error.retry_after_seconds * 1000
    return base_delay_ms * (2**attempt)


def execute_with_retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
    *,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """Call *operation* until it succeeds or retrying stops making sense.

    Args:
        operation: Zero-argument callable. May raise a raw failure or an
            already-classified :class:`DomainError`.
        max_attempts: Upper bound on calls to *operation*.
        base_delay_ms: Delay before the first retry; doubled each attempt.
        sleep: Blocking sleep taking **seconds**.

    Returns:
        Whatever *operation* returns on its first successful attempt.

    Raises:
        DomainError: The classified failure, once it is not retryable or
            the attempts are exhausted.
        ValueError: If *max_attempts* is less than 1.
    """
    _check_bounds(max_attempts, base_delay_ms)
    state = RetryState()

    while True:
        try:
            return operation()
        except Exception as exc:
            error = classify(exc)
            state.last_error = error
            delay_ms = _next_delay_ms(state, error, max_attempts, base_delay_ms)
            if delay_ms is None:
                _raise_classified(error, exc)
        sleep(delay_ms / 1000)
        state.attempt += 1


async def async_execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Async counterpart of :func:`execute_with_retry`.

    *operation* is a zero-argument callable returning an awaitable; it is
    re-invoked for every attempt. The backoff wait is a cooperative
    ``await sleep(seconds)``.
    """
    _check_bounds(max_attempts, base_delay_ms)
    state = RetryState()

    while True:
        try:
            return await operation()
        except Exception as exc:
            error = classify(exc)
            state.last_error = error
            delay_ms = _next_delay_ms(state, error, max_attempts, base_delay_ms)
            if delay_ms is None:
                _raise_classified(error, exc)
        await sleep(delay_ms / 1000)
        state.attempt += 1


def _check_bounds(max_attempts: int, base_delay_ms: float) -> None:
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    if base_delay_ms < 0:
        raise ValueError(f"base_delay_ms must not be negative, got {base_delay_ms}")


def _next_delay_ms(
    state: RetryState,
    error: DomainError,
    max_attempts: int,
    base_delay_ms: float,
) -> Optional[float]:
    """Return the wait before the next attempt, or ``None`` to give up."""
    if not error.retryable:
        get_output().debug(f"Not retrying {error.kind.value} error: {error.message}")
        return None
    if state.attempt >= max_attempts - 1:
        get_output().debug(
            f"Giving up after {max_attempts} attempts: {error.message}"
        )
        return None
    delay_ms = compute_delay_ms(error, state.attempt, base_delay_ms)
    get_output().debug(
        f"{error.kind.value} error, retrying in {delay_ms:g}ms "
        f"(attempt {state.attempt + 1}/{max_attempts})"
    )
    return delay_ms


def _raise_classified(error: DomainError, original: BaseException) -> NoReturn:
    if error is original:
        raise error
    raise error from original
