from __future__ import annotations

import httpx
import pytest
from hishel.httpx import AsyncCacheClient

from fdrsync.adapters.http_resilience import ResilientClient
from fdrsync.config import CacheConfig, RateLimit, ResilienceConfig


def test_client_without_cache_is_plain_httpx() -> None:
    client = ResilientClient(
        ResilienceConfig(
            name="plain",
            base_url="https://fdr.test",
            connect_timeout_seconds=2.0,
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
        )
    )

    inner = client._client  # noqa: SLF001  # type: ignore[reportPrivateUsage]
    assert not isinstance(inner, AsyncCacheClient)
    assert inner.timeout == httpx.Timeout(30.0, connect=2.0)


def test_client_with_cache_uses_hishel() -> None:
    client = ResilientClient(
        ResilienceConfig(name="cached", cache=CacheConfig(backend="memory"))
    )

    inner = client._client  # noqa: SLF001  # type: ignore[reportPrivateUsage]
    assert isinstance(inner, AsyncCacheClient)


def test_sqlite_cache_needs_a_path() -> None:
    with pytest.raises(ValueError, match="sqlite_path"):
        ResilientClient(ResilienceConfig(name="cached", cache=CacheConfig(backend="sqlite")))


def test_disabled_cache_is_ignored() -> None:
    client = ResilientClient(
        ResilienceConfig(name="cached", cache=CacheConfig(enabled=False, backend="sqlite"))
    )

    inner = client._client  # noqa: SLF001  # type: ignore[reportPrivateUsage]
    assert not isinstance(inner, AsyncCacheClient)
