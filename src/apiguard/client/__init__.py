"""HTTP client module for apiguard.

Provides httpx-backed transports and the API clients that compose the
cache, retry executor and paginators around them.

Classes:
    :class:`SyncTransport` -- blocking transport backed by :class:`httpx.Client`.
    :class:`AsyncTransport` -- non-blocking transport backed by :class:`httpx.AsyncClient`.
    :class:`ApiClient` -- cached, retried, paginated calls over a sync transport.
    :class:`AsyncApiClient` -- the same over an async transport.

Example::

    from apiguard.client import ApiClient, SyncTransport

    with SyncTransport(config, api_key) as transport:
        posts = ApiClient(transport, config).collect("posts/list", "posts")
"""

from apiguard.client.api_client import ApiClient, AsyncApiClient
from apiguard.client.transport import AsyncTransport, SyncTransport

__all__ = ["ApiClient", "AsyncApiClient", "AsyncTransport", "SyncTransport"]
