"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one error category. Classified API failures
(:class:`~apiguard.exceptions.DomainError`) pick their code from
:data:`EXIT_CODES_BY_KIND`, so shell wrappers can branch on the failure
class without parsing stderr.

Example::

    $ apiguard call posts/retrieve -P id=missing
    $ echo $?
    4   # EXIT_NOT_FOUND -- the API answered 404
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (also used for configuration problems)."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, or the API rejected the request as invalid (HTTP 400)."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned a server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_RATE_LIMITED = 8
"""The API kept rate limiting the client after all retries were spent."""

EXIT_CODES_BY_KIND = {
    "validation": EXIT_INVALID_USAGE,
    "unauthorized": EXIT_AUTH_FAILURE,
    "forbidden": EXIT_AUTH_FAILURE,
    "not_found": EXIT_NOT_FOUND,
    "rate_limited": EXIT_RATE_LIMITED,
    "server_error": EXIT_SERVER_ERROR,
    "unknown": EXIT_GENERIC_FAILURE,
}
"""Exit code for each :class:`~apiguard.exceptions.ErrorKind` value."""
