"""One iteration contract over cursor- and skip-paginated list endpoints.

The upstream API uses two incompatible pagination styles:

* **cursor** -- the server hands back an opaque ``next_cursor`` token that
  must be echoed on the following request;
* **skip** -- the client advances a numeric offset by the number of items
  it has received.

Each style is an explicit, pull-based state machine
(:class:`CursorPaginator`, :class:`SkipPaginator`) whose
:meth:`~CursorPaginator.next_batch` performs at most one fetch and returns a
:class:`~apiguard.models.PageStep`. The paginators are single-pass: once
``done`` is reported they never fetch again and cannot be restarted. They
also implement the iterator protocol, yielding only non-empty batches.

Both honour a ``max_total`` budget: each request asks for
``min(limit, max_total - total_fetched)`` items and iteration stops once
the budget is spent.

Paginators neither retry nor cache; callers wrap each ``fetch_page`` call
with :func:`~apiguard.retry.execute_with_retry` as needed. Anything
``fetch_page`` raises propagates unchanged and ends the iteration.

:func:`strategy_for` maps a resource (endpoint) name to the style it uses.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Iterator,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError

from apiguard.models import CursorPage, PageStep, PaginationStrategy, SkipPage

DEFAULT_LIMIT = 10
DEFAULT_MAX_TOTAL = 50

_STRATEGIES: Mapping[str, PaginationStrategy] = MappingProxyType(
    {
        "posts/list": PaginationStrategy.SKIP,
        "votes/list": PaginationStrategy.SKIP,
        "comments/list": PaginationStrategy.SKIP,
        "companies/list": PaginationStrategy.SKIP,
        "boards/list": PaginationStrategy.NONE,
        "tags/list": PaginationStrategy.NONE,
        "categories/list": PaginationStrategy.NONE,
    }
)

CursorResult = Union[CursorPage, Mapping[str, Any]]
SkipResult = Union[SkipPage, Mapping[str, Any]]
CursorFetch = Callable[[Optional[str], int], CursorResult]
SkipFetch = Callable[[int, int], SkipResult]
AsyncCursorFetch = Callable[[Optional[str], int], Awaitable[CursorResult]]
AsyncSkipFetch = Callable[[int, int], Awaitable[SkipResult]]

PageT = TypeVar("PageT", bound=BaseModel)


def strategy_for(resource_name: str) -> PaginationStrategy:
    """Return the pagination strategy for *resource_name*.

    Unknown resources fall back to :attr:`PaginationStrategy.NONE`.

    Example::

        >>> strategy_for("posts/list").value
        'skip'
    """
    return _STRATEGIES.get(resource_name.strip("/"), PaginationStrategy.NONE)


# ---------------------------------------------------------------------- #
# State machines
# ---------------------------------------------------------------------- #


def _check_bounds(limit: int, max_total: int) -> None:
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    if max_total < 0:
        raise ValueError(f"max_total must not be negative, got {max_total}")


class _PaginatorState:
    """Budget bookkeeping shared by both strategies."""

    def __init__(self, limit: int, max_total: int) -> None:
        _check_bounds(limit, max_total)
        self.limit = limit
        self.max_total = max_total
        self.total_fetched = 0
        self.done = max_total == 0

    @property
    def batch_size(self) -> int:
        return min(self.limit, self.max_total - self.total_fetched)

    def record(self, items: list[Any]) -> None:
        self.total_fetched += len(items)

    def validate(self, model: type[PageT], result: Any) -> PageT:
        """Coerce a fetch result into *model*; a malformed page ends the walk."""
        if isinstance(result, model):
            return result
        try:
            return model.model_validate(result)
        except ValidationError:
            self.done = True
            raise


class _CursorMachine:
    def __init__(self, limit: int, max_total: int) -> None:
        self._state = _PaginatorState(limit, max_total)
        self._cursor: Optional[str] = None

    @property
    def cursor(self) -> Optional[str]:
        return self._cursor

    @property
    def total_fetched(self) -> int:
        return self._state.total_fetched

    @property
    def done(self) -> bool:
        return self._state.done

    def _advance(self, result: CursorResult) -> PageStep:
        page = self._state.validate(CursorPage, result)
        self._state.record(page.items)
        if (
            not page.has_more
            or not page.next_cursor
            or self._state.total_fetched >= self._state.max_total
        ):
            self._state.done = True
        else:
            self._cursor = page.next_cursor
        return PageStep(batch=page.items, done=self._state.done)


class _SkipMachine:
    def __init__(self, limit: int, max_total: int) -> None:
        self._state = _PaginatorState(limit, max_total)
        self._skip = 0

    @property
    def skip(self) -> int:
        return self._skip

    @property
    def total_fetched(self) -> int:
        return self._state.total_fetched

    @property
    def done(self) -> bool:
        return self._state.done

    def _advance(self, result: SkipResult, requested: int) -> PageStep:
        page = self._state.validate(SkipPage, result)
        self._state.record(page.items)
        # A short page is final even when the server claims has_more.
        if (
            not page.has_more
            or len(page.items) < requested
            or self._state.total_fetched >= self._state.max_total
        ):
            self._state.done = True
        else:
            self._skip += len(page.items)
        return PageStep(batch=page.items, done=self._state.done)


# ---------------------------------------------------------------------- #
# Synchronous paginators
# ---------------------------------------------------------------------- #


class CursorPaginator(_CursorMachine):
    """Walk a cursor-paginated endpoint one page per pull.

    Args:
        fetch_page: ``fetch_page(cursor, batch_size)`` returning a
            :class:`CursorPage` or a mapping of its fields (``hasMore`` and
            ``nextCursor`` spellings accepted). The first call receives
            ``cursor=None``.
        limit: Maximum items requested per page.
        max_total: Total-items budget for the whole iteration.

    Example::

        for batch in CursorPaginator(fetch_votes, limit=25, max_total=100):
            handle(batch)
    """

    def __init__(
        self,
        fetch_page: CursorFetch,
        limit: int = DEFAULT_LIMIT,
        max_total: int = DEFAULT_MAX_TOTAL,
    ) -> None:
        super().__init__(limit, max_total)
        self._fetch_page = fetch_page

    def next_batch(self) -> PageStep:
        """Fetch the next page, or report ``done`` without fetching."""
        if self._state.done:
            return PageStep(done=True)
        try:
            result = self._fetch_page(self._cursor, self._state.batch_size)
        except Exception:
            self._state.done = True
            raise
        return self._advance(result)

    def __iter__(self) -> Iterator[list[Any]]:
        return self

    def __next__(self) -> list[Any]:
        while True:
            step = self.next_batch()
            if step.batch:
                return step.batch
            if step.done:
                raise StopIteration


class SkipPaginator(_SkipMachine):
    """Walk an offset-paginated endpoint one page per pull.

    Args:
        fetch_page: ``fetch_page(skip, batch_size)`` returning a
            :class:`SkipPage` or a mapping of its fields (``hasMore``
            accepted).
        limit: Maximum items requested per page.
        max_total: Total-items budget for the whole iteration.
    """

    def __init__(
        self,
        fetch_page: SkipFetch,
        limit: int = DEFAULT_LIMIT,
        max_total: int = DEFAULT_MAX_TOTAL,
    ) -> None:
        super().__init__(limit, max_total)
        self._fetch_page = fetch_page

    def next_batch(self) -> PageStep:
        """Fetch the next page, or report ``done`` without fetching."""
        if self._state.done:
            return PageStep(done=True)
        requested = self._state.batch_size
        try:
            result = self._fetch_page(self._skip, requested)
        except Exception:
            self._state.done = True
            raise
        return self._advance(result, requested)

    def __iter__(self) -> Iterator[list[Any]]:
        return self

    def __next__(self) -> list[Any]:
        while True:
            step = self.next_batch()
            if step.batch:
                return step.batch
            if step.done:
                raise StopIteration


def iterate_cursor(
    fetch_page: CursorFetch,
    limit: int = DEFAULT_LIMIT,
    max_total: int = DEFAULT_MAX_TOTAL,
) -> Iterator[list[Any]]:
    """Lazily yield the non-empty batches of a cursor-paginated endpoint."""
    return iter(CursorPaginator(fetch_page, limit, max_total))


def iterate_skip(
    fetch_page: SkipFetch,
    limit: int = DEFAULT_LIMIT,
    max_total: int = DEFAULT_MAX_TOTAL,
) -> Iterator[list[Any]]:
    """Lazily yield the non-empty batches of an offset-paginated endpoint."""
    return iter(SkipPaginator(fetch_page, limit, max_total))


def fetch_all(fetch: Callable[[], list[Any]]) -> list[Any]:
    """Run the single fetch of a ``none``-strategy resource."""
    return list(fetch())


# ---------------------------------------------------------------------- #
# Asynchronous paginators
# ---------------------------------------------------------------------- #


class AsyncCursorPaginator(_CursorMachine):
    """Awaitable twin of :class:`CursorPaginator`.

    Example::

        async for batch in AsyncCursorPaginator(fetch_votes):
            handle(batch)
    """

    def __init__(
        self,
        fetch_page: AsyncCursorFetch,
        limit: int = DEFAULT_LIMIT,
        max_total: int = DEFAULT_MAX_TOTAL,
    ) -> None:
        super().__init__(limit, max_total)
        self._fetch_page = fetch_page

    async def next_batch(self) -> PageStep:
        if self._state.done:
            return PageStep(done=True)
        try:
            result = await self._fetch_page(self._cursor, self._state.batch_size)
        except Exception:
            self._state.done = True
            raise
        return self._advance(result)

    def __aiter__(self) -> AsyncIterator[list[Any]]:
        return self

    async def __anext__(self) -> list[Any]:
        while True:
            step = await self.next_batch()
            if step.batch:
                return step.batch
            if step.done:
                raise StopAsyncIteration


class AsyncSkipPaginator(_SkipMachine):
    """Awaitable twin of :class:`SkipPaginator`."""

    def __init__(
        self,
        fetch_page: AsyncSkipFetch,
        limit: int = DEFAULT_LIMIT,
        max_total: int = DEFAULT_MAX_TOTAL,
    ) -> None:
        super().__init__(limit, max_total)
        self._fetch_page = fetch_page

    async def next_batch(self) -> PageStep:
        if self._state.done:
            return PageStep(done=True)
        requested = self._state.batch_size
        try:
            result = await self._fetch_page(self._skip, requested)
        except Exception:
            self._state.done = True
            raise
        return self._advance(result, requested)

    def __aiter__(self) -> AsyncIterator[list[Any]]:
        return self

    async def __anext__(self) -> list[Any]:
        while True:
            step = await self.next_batch()
            if step.batch:
                return step.batch
            if step.done:
                raise StopAsyncIteration


def aiterate_cursor(
    fetch_page: AsyncCursorFetch,
    limit: int = DEFAULT_LIMIT,
    max_total: int = DEFAULT_MAX_TOTAL,
) -> AsyncIterator[list[Any]]:
    """Async version of :func:`iterate_cursor`."""
    return AsyncCursorPaginator(fetch_page, limit, max_total)


def aiterate_skip(
    fetch_page: AsyncSkipFetch,
    limit: int = DEFAULT_LIMIT,
    max_total: int = DEFAULT_MAX_TOTAL,
) -> AsyncIterator[list[Any]]:
    """Async version of :func:`iterate_skip`."""
    return AsyncSkipPaginator(fetch_page, limit, max_total)
