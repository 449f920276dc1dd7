"""The calling layer: cache lookup, retried transport call, pagination.

:class:`ApiClient` is what call sites use. For a single call it

1. looks the request up in the shared :class:`~apiguard.cache.TTLCache`
   (read-only endpoints with a configured TTL only);
2. runs the transport call inside
   :func:`~apiguard.retry.execute_with_retry`, so failures come back as a
   classified :class:`~apiguard.exceptions.DomainError`;
3. stores the decoded result in the cache.

The cache keeps its own deep copy and every hit returns a fresh copy, so
callers may mutate what they get back.

For list endpoints :meth:`ApiClient.paginate` picks the strategy from
:func:`~apiguard.pagination.strategy_for` and drives the matching paginator.
Every page fetch is retried on its own; pages are never cached.

:class:`AsyncApiClient` offers the same surface on top of an
:class:`~apiguard.client.transport.AsyncTransport`.
"""

from __future__ import annotations

import asyncio
import copy
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator, Optional, Protocol

from apiguard.cache import TTLCache, make_cache_key
from apiguard.models import ClientConfig, CursorPage, PaginationStrategy, SkipPage
from apiguard.output import get_output
from apiguard.pagination import (
    AsyncCursorPaginator,
    AsyncSkipPaginator,
    CursorPaginator,
    SkipPaginator,
    strategy_for,
)
from apiguard.retry import async_execute_with_retry, execute_with_retry

_CACHEABLE_ACTIONS = frozenset({"list", "retrieve"})

_MISS = object()


class Transport(Protocol):
    def call(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> Any: ...


class AsyncTransportProtocol(Protocol):
    async def call(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> Any: ...


def _is_cacheable(endpoint: str) -> bool:
    """Only read-only actions (``*/list``, ``*/retrieve``) are cached."""
    return endpoint.strip("/").rsplit("/", 1)[-1] in _CACHEABLE_ACTIONS


def _cursor_page(body: Any, item_key: str) -> CursorPage:
    body = body or {}
    return CursorPage(
        items=body.get(item_key) or [],
        has_more=bool(body.get("hasMore")),
        next_cursor=body.get("cursor"),
    )


def _skip_page(body: Any, item_key: str) -> SkipPage:
    body = body or {}
    return SkipPage(items=body.get(item_key) or [], has_more=bool(body.get("hasMore")))


def _list_items(body: Any, item_key: str) -> list[Any]:
    if isinstance(body, list):
        return body
    return list((body or {}).get(item_key) or [])


class _ClientBase:
    def __init__(self, config: ClientConfig, cache: Optional[TTLCache[Any]]) -> None:
        self._config = config
        if cache is None and config.cache.enabled:
            cache = TTLCache(config.cache.max_size)
        self._cache = cache

    @property
    def cache(self) -> Optional[TTLCache[Any]]:
        return self._cache

    def invalidate(self, endpoint: str, params: Optional[dict[str, Any]] = None) -> None:
        """Drop the cached result of one call, if any."""
        if self._cache is not None:
            self._cache.delete(make_cache_key(endpoint, params))

    def _cache_ttl(self, endpoint: str, override: Optional[float]) -> Optional[float]:
        if self._cache is None:
            return None
        if override is not None:
            return override
        if not _is_cacheable(endpoint):
            return None
        return self._config.cache.ttl_for(endpoint)

    def _cache_lookup(self, endpoint: str, key: str) -> Any:
        assert self._cache is not None
        value = self._cache.get(key, _MISS)
        if value is _MISS:
            get_output().debug(f"Cache miss: {endpoint}")
        else:
            get_output().debug(f"Cache hit: {endpoint}")
            value = copy.deepcopy(value)
        return value

    def _cache_store(self, key: str, result: Any, ttl: float) -> None:
        assert self._cache is not None
        self._cache.set(key, copy.deepcopy(result), ttl)

    def _page_bounds(self, limit: Optional[int], max_total: Optional[int]) -> tuple[int, int]:
        pagination = self._config.pagination
        return (
            limit if limit is not None else pagination.limit,
            max_total if max_total is not None else pagination.max_total,
        )


class ApiClient(_ClientBase):
    """Cached, retried, paginated access to the API through a blocking transport.

    Args:
        transport: Anything with ``call(endpoint, params)``; normally an
            open :class:`~apiguard.client.transport.SyncTransport`.
        config: Supplies retry bounds, cache sizing/TTLs and page defaults.
        cache: Cache to share with other clients. When omitted, a private
            :class:`TTLCache` of ``config.cache.max_size`` is created
            (unless caching is disabled).
        sleep: Backoff sleep handed to the retry executor.
    """

    def __init__(
        self,
        transport: Transport,
        config: ClientConfig,
        cache: Optional[TTLCache[Any]] = None,
        *,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        super().__init__(config, cache)
        self._transport = transport
        self._sleep = sleep

    def call(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        *,
        cache_ttl: Optional[float] = None,
    ) -> Any:
        """Call *endpoint* once, through the cache and the retry executor.

        Args:
            endpoint: Endpoint name such as ``"boards/retrieve"``.
            params: Request parameters (the API key is added by the transport).
            cache_ttl: Explicit TTL in seconds. Forces caching for this call
                even on endpoints that are not cached by default.

        Raises:
            DomainError: When the call fails for good.
        """
        ttl = self._cache_ttl(endpoint, cache_ttl)
        key = make_cache_key(endpoint, params)
        if ttl is not None:
            cached = self._cache_lookup(endpoint, key)
            if cached is not _MISS:
                return cached

        result = self._retried(endpoint, params)

        if ttl is not None:
            self._cache_store(key, result, ttl)
        return result

    def paginate(
        self,
        endpoint: str,
        item_key: str,
        params: Optional[dict[str, Any]] = None,
        *,
        limit: Optional[int] = None,
        max_total: Optional[int] = None,
        strategy: Optional[PaginationStrategy] = None,
    ) -> Iterator[list[Any]]:
        """Yield non-empty batches of *item_key* items from a list endpoint.

        Args:
            endpoint: List endpoint such as ``"posts/list"``.
            item_key: Key of the item array in each response body.
            params: Filters sent with every page request.
            limit: Page size (defaults to ``config.pagination.limit``).
            max_total: Items budget (defaults to ``config.pagination.max_total``).
            strategy: Override the strategy from :func:`strategy_for`.
        """
        limit, max_total = self._page_bounds(limit, max_total)
        strategy = strategy or strategy_for(endpoint)
        base = dict(params or {})

        if strategy is PaginationStrategy.CURSOR:

            def fetch_cursor(cursor: Optional[str], batch_size: int) -> CursorPage:
                page_params = {**base, "limit": batch_size}
                if cursor is not None:
                    page_params["cursor"] = cursor
                return _cursor_page(self._retried(endpoint, page_params), item_key)

            yield from CursorPaginator(fetch_cursor, limit, max_total)

        elif strategy is PaginationStrategy.SKIP:

            def fetch_skip(skip: int, batch_size: int) -> SkipPage:
                page_params = {**base, "skip": skip, "limit": batch_size}
                return _skip_page(self._retried(endpoint, page_params), item_key)

            yield from SkipPaginator(fetch_skip, limit, max_total)

        else:
            items = _list_items(self.call(endpoint, params), item_key)
            if items:
                yield items

    def collect(
        self,
        endpoint: str,
        item_key: str,
        params: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> list[Any]:
        """Return every item :meth:`paginate` yields, flattened into one list."""
        items: list[Any] = []
        for batch in self.paginate(endpoint, item_key, params, **kwargs):
            items.extend(batch)
        return items

    def _retried(self, endpoint: str, params: Optional[dict[str, Any]]) -> Any:
        retry = self._config.retry
        return execute_with_retry(
            lambda: self._transport.call(endpoint, params),
            retry.max_attempts,
            retry.base_delay_ms,
            sleep=self._sleep,
        )


class AsyncApiClient(_ClientBase):
    """Async twin of :class:`ApiClient` over an awaitable transport."""

    def __init__(
        self,
        transport: AsyncTransportProtocol,
        config: ClientConfig,
        cache: Optional[TTLCache[Any]] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(config, cache)
        self._transport = transport
        self._sleep = sleep

    async def call(
        self,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        *,
        cache_ttl: Optional[float] = None,
    ) -> Any:
        ttl = self._cache_ttl(endpoint, cache_ttl)
        key = make_cache_key(endpoint, params)
        if ttl is not None:
            cached = self._cache_lookup(endpoint, key)
            if cached is not _MISS:
                return cached

        result = await self._retried(endpoint, params)

        if ttl is not None:
            self._cache_store(key, result, ttl)
        return result

    async def paginate(
        self,
        endpoint: str,
        item_key: str,
        params: Optional[dict[str, Any]] = None,
        *,
        limit: Optional[int] = None,
        max_total: Optional[int] = None,
        strategy: Optional[PaginationStrategy] = None,
    ) -> AsyncIterator[list[Any]]:
        limit, max_total = self._page_bounds(limit, max_total)
        strategy = strategy or strategy_for(endpoint)
        base = dict(params or {})

        if strategy is PaginationStrategy.CURSOR:

            async def fetch_cursor(cursor: Optional[str], batch_size: int) -> CursorPage:
                page_params = {**base, "limit": batch_size}
                if cursor is not None:
                    page_params["cursor"] = cursor
                return _cursor_page(await self._retried(endpoint, page_params), item_key)

            async for batch in AsyncCursorPaginator(fetch_cursor, limit, max_total):
                yield batch

        elif strategy is PaginationStrategy.SKIP:

            async def fetch_skip(skip: int, batch_size: int) -> SkipPage:
                page_params = {**base, "skip": skip, "limit": batch_size}
                return _skip_page(await self._retried(endpoint, page_params), item_key)

            async for batch in AsyncSkipPaginator(fetch_skip, limit, max_total):
                yield batch

        else:
            items = _list_items(await self.call(endpoint, params), item_key)
            if items:
                yield items

    async def collect(
        self,
        endpoint: str,
        item_key: str,
        params: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> list[Any]:
        items: list[Any] = []
        async for batch in self.paginate(endpoint, item_key, params, **kwargs):
            items.extend(batch)
        return items

    async def _retried(self, endpoint: str, params: Optional[dict[str, Any]]) -> Any:
        retry = self._config.retry
        return await async_execute_with_retry(
            lambda: self._transport.call(endpoint, params),
            retry.max_attempts,
            retry.base_delay_ms,
            sleep=self._sleep,
        )
