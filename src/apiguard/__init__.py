"""apiguard -- a resilient access layer for rate-limited, paginated JSON APIs.

This package wraps an unreliable HTTP JSON API behind four cooperating
pieces so that call sites get deterministic, classified results.

Typical usage::

    with SyncTransport(config, api_key) as transport:
        client = ApiClient(transport, config)
        board = client.call("boards/retrieve", {"boardID": "abc"})
        posts = client.collect("posts/list", "posts", {"boardID": "abc"})

Modules:
    classifier: Maps transport failures to a classified :class:`DomainError`.
    retry: Executes an operation with bounded exponential-backoff retries.
    cache: Thread-safe, size-bounded LRU cache with per-entry TTL.
    pagination: Cursor and skip pagination state machines plus the
        per-resource strategy table.
    client: httpx transports and the :class:`ApiClient` that composes the
        pieces above.
    models: Pydantic configuration models.
    config: XDG-aware configuration loading with env-var expansion.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes, one per error kind.
    output: stdout/stderr formatting system with Rich support.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"
