"""Exception hierarchy for apiguard.

All exceptions inherit from :class:`ApiGuardError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apiguard.exit_codes`.
The CLI entry point in :func:`apiguard.app.main` catches ``ApiGuardError``
and exits with the appropriate code.

Subclass hierarchy::

    ApiGuardError (exit 1)
    +-- DomainError         (exit code chosen by ``kind``)
    +-- TransportFailure    (exit 6)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)

:class:`TransportFailure` is the *raw* failure raised by the transport
layer. :class:`DomainError` is the *classified* form built by
:func:`apiguard.classifier.classify`; it is the only failure type that
escapes :func:`apiguard.retry.execute_with_retry`.
"""

from __future__ import annotations

import enum
from typing import Any, Mapping, Optional

from apiguard.exit_codes import (
    EXIT_CODES_BY_KIND,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class ApiGuardError(Exception):
    """Base exception for all apiguard errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`apiguard.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ErrorKind(str, enum.Enum):
    """Stable failure categories callers can branch on."""

    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


class DomainError(ApiGuardError):
    """A classified, transport-detail-free failure.

    The ``kind`` tag decides which optional fields are meaningful:
    ``retry_after_seconds`` is only ever set for
    :attr:`ErrorKind.RATE_LIMITED`. Instances are immutable once built.

    Args:
        kind: The failure category.
        message: Human-readable description.
        http_status: The HTTP status the failure was derived from, if any.
        retryable: Whether re-attempting the same call may succeed.
        retry_after_seconds: Server-requested wait before the next attempt.

    Raises:
        ValueError: If ``retry_after_seconds`` is given for a kind other
            than ``RATE_LIMITED``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        http_status: Optional[int] = None,
        retryable: bool = False,
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        kind = ErrorKind(kind)
        if retry_after_seconds is not None and kind is not ErrorKind.RATE_LIMITED:
            raise ValueError("retry_after_seconds is only valid for rate_limited errors")
        super().__init__(message)
        object.__setattr__(self, "exit_code", EXIT_CODES_BY_KIND[kind.value])
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_message", message)
        object.__setattr__(self, "_http_status", http_status)
        object.__setattr__(self, "_retryable", retryable)
        object.__setattr__(self, "_retry_after_seconds", retry_after_seconds)

    # Python's exception machinery sets these while raising / chaining.
    _MUTABLE_DUNDERS = frozenset(
        {"__traceback__", "__cause__", "__context__", "__suppress_context__", "__notes__"}
    )

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self._MUTABLE_DUNDERS:
            object.__setattr__(self, name, value)
            return
        raise AttributeError(f"DomainError is immutable; cannot set {name!r}")

    def __reduce__(self) -> tuple[Any, ...]:
        return (
            DomainError,
            (
                self._kind,
                self._message,
                self._http_status,
                self._retryable,
                self._retry_after_seconds,
            ),
        )

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def http_status(self) -> Optional[int]:
        return self._http_status

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def retry_after_seconds(self) -> Optional[float]:
        return self._retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        """Return the caller-visible fields as a JSON-friendly dict."""
        data: dict[str, Any] = {
            "kind": self._kind.value,
            "message": self._message,
            "http_status": self._http_status,
            "retryable": self._retryable,
        }
        if self._retry_after_seconds is not None:
            data["retry_after_seconds"] = self._retry_after_seconds
        return data

    def __repr__(self) -> str:
        return (
            f"DomainError(kind={self._kind.value!r}, message={self._message!r}, "
            f"http_status={self._http_status!r}, retryable={self._retryable!r})"
        )


class TransportFailure(ApiGuardError):
    """Raw failure raised by a transport before classification.

    Args:
        message: Description of what went wrong.
        status: HTTP status code, or ``None`` for network-level failures
            (timeouts, refused connections).
        body: Decoded response body, when the server sent one.
        headers: Response headers.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.body = body
        self.headers: Mapping[str, str] = dict(headers or {})


class InvalidUsageError(ApiGuardError):
    """Raised for invalid CLI arguments or malformed parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(ApiGuardError):
    """Raised for configuration problems (missing files, invalid JSON/YAML, unset env vars)."""

    exit_code = EXIT_GENERIC_FAILURE
