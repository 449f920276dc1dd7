"""Classification of transport failures into :class:`~apiguard.exceptions.DomainError`.

:func:`classify` is a pure function: it never recovers from a failure, it
only labels it. The ``retryable`` flag it assigns is authoritative for the
rest of the package -- :func:`apiguard.retry.execute_with_retry` consults
nothing else when deciding whether to re-attempt a call.

Status mapping::

    400          -> validation    (not retryable, message from body)
    401          -> unauthorized  (not retryable)
    403          -> forbidden     (not retryable)
    404          -> not_found     (not retryable)
    429          -> rate_limited  (retryable, honours ``retry-after``)
    500/502/503  -> server_error  (retryable)
    anything else, or no status -> server_error (not retryable)
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from apiguard.exceptions import DomainError, ErrorKind, TransportFailure

DEFAULT_RETRY_AFTER_SECONDS = 60
"""Wait applied to a 429 response that carries no usable ``retry-after`` header."""

DEFAULT_STATUS = 500
"""Status recorded for failures that never produced an HTTP response."""


class _Rule(NamedTuple):
    kind: ErrorKind
    retryable: bool
    message: Optional[str]  # None means "take the message from the failure"


_RULES: Mapping[int, _Rule] = MappingProxyType(
    {
        400: _Rule(ErrorKind.VALIDATION, False, None),
        401: _Rule(
            ErrorKind.UNAUTHORIZED, False, "Invalid API key. Check your configuration."
        ),
        403: _Rule(
            ErrorKind.FORBIDDEN, False, "Permission denied. Check your API key permissions."
        ),
        404: _Rule(
            ErrorKind.NOT_FOUND, False, "Resource not found. Verify IDs and permissions."
        ),
        500: _Rule(
            ErrorKind.SERVER_ERROR, True, "API error. Service may be temporarily unavailable."
        ),
        502: _Rule(
            ErrorKind.SERVER_ERROR, True, "API error. Service may be temporarily unavailable."
        ),
        503: _Rule(
            ErrorKind.SERVER_ERROR, True, "API error. Service may be temporarily unavailable."
        ),
    }
)


def classify(failure: BaseException) -> DomainError:
    """Convert a failure into a :class:`DomainError`.

    Args:
        failure: A :class:`TransportFailure`, an already-classified
            :class:`DomainError` (returned unchanged), or any other
            exception, which is treated as a failure without a status.

    Returns:
        The classified error.
    """
    if isinstance(failure, DomainError):
        return failure

    if isinstance(failure, TransportFailure):
        status = failure.status
        body = failure.body
        headers = failure.headers
        raw_message = failure.message
    else:
        status = None
        body = None
        headers = {}
        raw_message = str(failure)

    message = _body_error(body) or raw_message or "Unknown error"

    if status == 429:
        retry_after = parse_retry_after(headers)
        return DomainError(
            ErrorKind.RATE_LIMITED,
            f"Rate limit exceeded. Retry after {retry_after:g} seconds",
            http_status=429,
            retryable=True,
            retry_after_seconds=retry_after,
        )

    rule = _RULES.get(status) if status is not None else None
    if rule is None:
        return DomainError(
            ErrorKind.SERVER_ERROR,
            message,
            http_status=status if status is not None else DEFAULT_STATUS,
            retryable=False,
        )

    return DomainError(
        rule.kind,
        rule.message or message,
        http_status=status,
        retryable=rule.retryable,
    )


def parse_retry_after(headers: Mapping[str, str]) -> float:
    """Read the ``retry-after`` header (case-insensitive) as seconds.

    Only the delta-seconds form is understood. A missing, negative,
    non-finite (``nan``, ``inf``) or unparseable value yields
    :data:`DEFAULT_RETRY_AFTER_SECONDS`.
    """
    for name, value in headers.items():
        if name.lower() != "retry-after":
            continue
        try:
            seconds = float(str(value).strip())
        except ValueError:
            return float(DEFAULT_RETRY_AFTER_SECONDS)
        if not math.isfinite(seconds) or seconds < 0:
            return float(DEFAULT_RETRY_AFTER_SECONDS)
        return seconds
    return float(DEFAULT_RETRY_AFTER_SECONDS)


def _body_error(body: Any) -> Optional[str]:
    """Pull the ``error`` field out of a decoded JSON error body."""
    if isinstance(body, dict):
        value = body.get("error")
        if value:
            return str(value)
    return None
