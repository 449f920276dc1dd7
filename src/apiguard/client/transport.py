"""httpx-backed transports that turn API calls into JSON or a :class:`TransportFailure`.

The target API is RPC-style: every endpoint is a ``POST`` to
``<base_url>/<endpoint>`` with a JSON body that carries the API key next to
the call's parameters::

    POST /posts/list
    {"apiKey": "...", "boardID": "abc", "limit": 10, "skip": 0}

Transports do one thing: send the request and either return the decoded
JSON body or raise a :class:`~apiguard.exceptions.TransportFailure`
describing what went wrong. They never retry, cache, or classify; that is
the job of :class:`~apiguard.client.api_client.ApiClient`.

Both transports must be used as context managers so the underlying
:class:`httpx.Client` / :class:`httpx.AsyncClient` is opened and closed.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from apiguard.exceptions import TransportFailure
from apiguard.models import ClientConfig


def _build_body(api_key: str, params: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {"apiKey": api_key, **(params or {})}


def _decode(response: httpx.Response) -> Any:
    """Return the JSON body, the raw text if it is not JSON, or ``None`` if empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _check_response(endpoint: str, response: httpx.Response) -> Any:
    body = _decode(response)
    if response.is_success:
        return body
    raise TransportFailure(
        f"POST {endpoint} failed with HTTP {response.status_code}",
        status=response.status_code,
        body=body,
        headers=dict(response.headers),
    )


def _network_failure(endpoint: str, exc: httpx.HTTPError) -> TransportFailure:
    return TransportFailure(f"POST {endpoint} failed: {exc.__class__.__name__}: {exc}")


class SyncTransport:
    """Blocking transport built on :class:`httpx.Client`.

    Args:
        config: Supplies ``base_url`` and the request timeout / SSL settings.
        api_key: Key sent in every request body.
        transport: Optional httpx transport (e.g. :class:`httpx.MockTransport`
            in tests).

    Example::

        with SyncTransport(config, api_key) as transport:
            boards = transport.call("boards/list")
    """

    def __init__(
        self,
        config: ClientConfig,
        api_key: str,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._api_key = api_key
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> SyncTransport:
        self._client = httpx.Client(
            base_url=self._config.base_url + "/",
            timeout=self._config.request.timeout,
            verify=self._config.request.verify_ssl,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def call(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> Any:
        """POST *params* to *endpoint* and return the decoded response.

        Raises:
            TransportFailure: On a non-2xx response (with status, body and
                headers) or a network / timeout error (without status).
        """
        assert self._client is not None, "Transport not initialised -- use as context manager"
        endpoint = endpoint.strip("/")
        try:
            response = self._client.post(endpoint, json=_build_body(self._api_key, params))
        except httpx.HTTPError as exc:
            raise _network_failure(endpoint, exc) from exc
        return _check_response(endpoint, response)


class AsyncTransport:
    """Non-blocking twin of :class:`SyncTransport` built on :class:`httpx.AsyncClient`.

    Example::

        async with AsyncTransport(config, api_key) as transport:
            boards = await transport.call("boards/list")
    """

    def __init__(
        self,
        config: ClientConfig,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._api_key = api_key
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> AsyncTransport:
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url + "/",
            timeout=self._config.request.timeout,
            verify=self._config.request.verify_ssl,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def call(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Async version of :meth:`SyncTransport.call`."""
        assert self._client is not None, "Transport not initialised -- use as async context manager"
        endpoint = endpoint.strip("/")
        try:
            response = await self._client.post(
                endpoint, json=_build_body(self._api_key, params)
            )
        except httpx.HTTPError as exc:
            raise _network_failure(endpoint, exc) from exc
        return _check_response(endpoint, response)
