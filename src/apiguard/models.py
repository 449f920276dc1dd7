"""Canonical Pydantic models shared across all apiguard modules.

The models fall into two groups:

**Configuration models** -- loaded from JSON/YAML by :mod:`apiguard.config`:
    :class:`RequestConfig`, :class:`RetryConfig`, :class:`CacheConfig`,
    :class:`PaginationConfig`, and the root :class:`ClientConfig`.

**Pagination models** -- exchanged between page-fetch callbacks and the
paginators in :mod:`apiguard.pagination`:
    :class:`PaginationStrategy`, :class:`CursorPage`, :class:`SkipPage`,
    and :class:`PageStep`.

The core components never read configuration themselves; the values in
these models are handed to them as plain parameters by
:class:`~apiguard.client.api_client.ApiClient` and the CLI.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings applied by the transports to every call."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class RetryConfig(BaseModel):
    """Bounds for :func:`~apiguard.retry.execute_with_retry`."""

    max_attempts: int = Field(default=3, ge=1, description="Total attempts per call")
    base_delay_ms: float = Field(
        default=1000, ge=0, description="Delay before the first retry, doubled each attempt"
    )


def _default_ttls() -> dict[str, int]:
    return {
        "boards": 3600,
        "tags": 3600,
        "users": 86400,
        "posts": 300,
        "comments": 180,
    }


class CacheConfig(BaseModel):
    """Response cache settings.

    ``ttl`` maps a resource name (the part of an endpoint before the first
    ``/``) to a TTL in seconds. Resources without an entry use
    ``default_ttl``; a ``default_ttl`` of ``None`` disables caching for
    them.

    Example::

        CacheConfig(max_size=50, ttl={"boards": 600})
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    max_size: int = Field(default=100, ge=1, description="Maximum cached responses")
    ttl: dict[str, int] = Field(default_factory=_default_ttls)
    default_ttl: Optional[int] = Field(default=300, ge=0)

    def ttl_for(self, endpoint: str) -> Optional[int]:
        """Return the TTL for *endpoint* (``"posts/list"`` -> ``ttl["posts"]``)."""
        resource = endpoint.strip("/").split("/", 1)[0]
        return self.ttl.get(resource, self.default_ttl)


class PaginationConfig(BaseModel):
    """Default page size and total-items budget for list operations."""

    limit: int = Field(default=10, ge=1, description="Items requested per page")
    max_total: int = Field(default=50, ge=0, description="Stop after this many items")


class ClientConfig(BaseModel):
    """Root configuration, persisted as ``config.json`` in the config directory.

    Extra keys are preserved in ``model_extra`` so that callers layering
    their own settings on the same file do not trip validation.
    """

    model_config = ConfigDict(extra="allow")

    base_url: str = Field(default="https://canny.io/api/v1", description="API root URL")
    api_key_source: str = Field(
        default="env:APIGUARD_API_KEY",
        description="Credential source: env:VAR or file:/path",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


# --- Pagination ---


class PaginationStrategy(str, enum.Enum):
    """How a list endpoint is walked.

    ``CURSOR`` follows an opaque server-issued token, ``SKIP`` advances a
    numeric offset, and ``NONE`` fetches everything in one call.
    """

    CURSOR = "cursor"
    SKIP = "skip"
    NONE = "none"


class CursorPage(BaseModel):
    """One page returned by a cursor-paginated fetch.

    Mappings may use the wire spelling (``hasMore``, ``nextCursor`` or
    ``cursor``). Any other key is rejected, so a misspelt ``has_more`` can
    not silently end iteration after the first page.
    """

    model_config = ConfigDict(extra="forbid")

    items: list[Any] = Field(default_factory=list)
    has_more: bool = Field(default=False, validation_alias=AliasChoices("has_more", "hasMore"))
    next_cursor: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("next_cursor", "nextCursor", "cursor")
    )


class SkipPage(BaseModel):
    """One page returned by an offset-paginated fetch (same key rules as :class:`CursorPage`)."""

    model_config = ConfigDict(extra="forbid")

    items: list[Any] = Field(default_factory=list)
    has_more: bool = Field(default=False, validation_alias=AliasChoices("has_more", "hasMore"))


class PageStep(BaseModel):
    """Result of one pull from a paginator.

    ``batch`` is empty when the step fetched nothing; ``done`` is ``True``
    once the paginator will not fetch again.
    """

    batch: list[Any] = Field(default_factory=list)
    done: bool = False
