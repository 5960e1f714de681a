from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest

from fdrsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_batch_config,
    get_event_sink_config,
    get_fdr_api_config,
)
from fdrsync.config.fdr_api import (
    FDR_API_BASE_URL,
    FDR_API_SUBSCRIPTION_HEADER,
    is_revision_payload,
)

_BATCH_VARS = (
    "FDR_CLUSTER_ID",
    "FDR_BATCH_CRON",
    "FDR_BATCH_THREAD_POOL_SIZE",
    "FDR_BATCH_STAGING_PAGE_SIZE",
    "FDR_BATCH_SKIP_LIMIT",
    "FDR_BATCH_RETRY_LIMIT",
    "FDR_BATCH_RETRY_BACKOFF_SECONDS",
    "FDR_BATCH_MAX_EXECUTION_HOURS",
    "FDR_BATCH_ENABLED",
)


@pytest.fixture
def clean_batch_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _BATCH_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_batch_config_defaults(
    clean_batch_env: pytest.MonkeyPatch,
) -> None:
    clean_batch_env.setattr("fdrsync.config.batch.socket.gethostname", lambda: "host-1")

    config = get_batch_config()

    assert config.cluster_id == "host-1"
    assert config.cron == "0 2 * * *"
    assert config.thread_pool_size == 5
    assert config.staging_page_size == 100
    assert config.skip_limit == 10
    assert config.retry_limit == 3
    assert config.max_execution_hours == 2
    assert config.enabled is True


def test_batch_config_reads_overrides(clean_batch_env: pytest.MonkeyPatch) -> None:
    clean_batch_env.setenv("FDR_CLUSTER_ID", "node-a")
    clean_batch_env.setenv("FDR_BATCH_CRON", "*/15 * * * *")
    clean_batch_env.setenv("FDR_BATCH_THREAD_POOL_SIZE", "8")
    clean_batch_env.setenv("FDR_BATCH_SKIP_LIMIT", "0")
    clean_batch_env.setenv("FDR_BATCH_RETRY_BACKOFF_SECONDS", "0.5")
    clean_batch_env.setenv("FDR_BATCH_ENABLED", "false")

    config = get_batch_config()

    assert config.cluster_id == "node-a"
    assert config.cron == "*/15 * * * *"
    assert config.thread_pool_size == 8
    assert config.skip_limit == 0
    assert config.retry_backoff_seconds == 0.5
    assert config.enabled is False


def test_batch_config_rejects_empty_pool(clean_batch_env: pytest.MonkeyPatch) -> None:
    clean_batch_env.setenv("FDR_BATCH_THREAD_POOL_SIZE", "0")

    with pytest.raises(ConfigurationError):
        get_batch_config()


@pytest.mark.parametrize(
    ("enabled", "base_url", "active"),
    [
        ("true", "https://events.test", True),
        ("true", "", False),
        ("false", "https://events.test", False),
    ],
)
def test_event_sink_is_active_only_with_a_target(
    monkeypatch: pytest.MonkeyPatch,
    enabled: str,
    base_url: str,
    active: bool,  # noqa: FBT001
) -> None:
    monkeypatch.setenv("FDR_EVENTS_ENABLED", enabled)
    monkeypatch.setenv("FDR_EVENTS_BASE_URL", base_url)

    assert get_event_sink_config().active is active


def test_fdr_api_config_requires_subscription_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FDR_API_SUBSCRIPTION_KEY", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        get_fdr_api_config()

    assert "FDR_API_SUBSCRIPTION_KEY" in str(exc.value)


def test_fdr_api_config_sends_subscription_header(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FDR_API_SUBSCRIPTION_KEY", "secret")
    monkeypatch.delenv("FDR_API_BASE_URL", raising=False)
    monkeypatch.setenv("FDR_API_PAGE_SIZE", "250")

    config = get_fdr_api_config()

    assert config.subscription_key == "secret"
    assert config.page_size == 250
    assert config.resilience.base_url == FDR_API_BASE_URL
    assert config.resilience.default_headers is not None
    assert config.resilience.default_headers[FDR_API_SUBSCRIPTION_HEADER] == "secret"


def test_fdr_api_http_cache_is_opt_in(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FDR_API_SUBSCRIPTION_KEY", "secret")
    monkeypatch.setenv("FDRSYNC_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("FDR_API_HTTP_CACHE", raising=False)

    assert get_fdr_api_config().resilience.cache is None

    monkeypatch.setenv("FDR_API_HTTP_CACHE", "on")
    cache = get_fdr_api_config().resilience.cache

    assert cache is not None
    assert cache.backend == "sqlite"
    assert cache.sqlite_path == str(tmp_path.resolve() / "http_cache.db")
    assert cache.should_cache is is_revision_payload


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"fdr": "FLOW-1", "revision": 2}, True),
        ({"data": [{"iuv": "123", "pay": 1}]}, True),
        ({"data": [{"fdr": "FLOW-1", "published": "2025-03-01T10:00:00"}]}, False),
        ({"data": []}, False),
        ([], False),
    ],
)
def test_only_revision_payloads_are_cached(payload: object, expected: bool) -> None:  # noqa: FBT001
    assert is_revision_payload(payload) is expected
