"""Settlement platform (FDR organization API) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int, env_str, require_env_vars
from .http_resilience import CacheConfig, ResilienceConfig, RetryPolicy
from .storage import get_storage_config

FDR_API_BASE_URL = "https://api.platform.pagopa.it/fdr-org/service/v1"
FDR_API_SUBSCRIPTION_HEADER = "Ocp-Apim-Subscription-Key"
DEFAULT_PAGE_SIZE = 1000
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_READ_TIMEOUT_SECONDS = 30.0
DEFAULT_HTTP_RETRIES = 3
DEFAULT_CACHE_TTL_SECONDS = 7 * 24 * 3600.0


@dataclass(slots=True, frozen=True)
class FdrApiConfig:
    """Holds the upstream FDR API configuration values."""

    subscription_key: str
    resilience: ResilienceConfig
    page_size: int = DEFAULT_PAGE_SIZE


def is_revision_payload(payload: object) -> bool:
    """Whether a response body belongs to one published flow revision.

    Flow details and payment pages are addressed by revision and never change
    once published. Listings of published flows do change and are not cached.
    """

    if not isinstance(payload, dict):
        return False
    if "revision" in payload:
        return True
    data = payload.get("data")
    return isinstance(data, list) and any(
        isinstance(item, dict) and "iuv" in item for item in data
    )


def _cache_config() -> CacheConfig | None:
    if not env_bool("FDR_API_HTTP_CACHE", False):  # noqa: FBT003
        return None
    return CacheConfig(
        backend="sqlite",
        sqlite_path=str(get_storage_config().http_cache_path()),
        default_ttl_seconds=env_float(
            "FDR_API_HTTP_CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS, minimum=1.0
        ),
        should_cache=is_revision_payload,
    )


def get_fdr_api_config(*, resilience: ResilienceConfig | None = None) -> FdrApiConfig:
    values = require_env_vars(("FDR_API_SUBSCRIPTION_KEY",))
    subscription_key = values["FDR_API_SUBSCRIPTION_KEY"]
    base_url = env_str("FDR_API_BASE_URL", FDR_API_BASE_URL)
    return FdrApiConfig(
        subscription_key=subscription_key,
        page_size=env_int("FDR_API_PAGE_SIZE", DEFAULT_PAGE_SIZE, minimum=1),
        resilience=resilience
        or ResilienceConfig(
            name="fdr-api",
            base_url=base_url,
            timeout_seconds=env_float(
                "FDR_API_READ_TIMEOUT_SECONDS", DEFAULT_READ_TIMEOUT_SECONDS, minimum=0.1
            ),
            connect_timeout_seconds=env_float(
                "FDR_API_CONNECT_TIMEOUT_SECONDS", DEFAULT_CONNECT_TIMEOUT_SECONDS, minimum=0.1
            ),
            retry=RetryPolicy(
                total=env_int("FDR_API_MAX_RETRIES", DEFAULT_HTTP_RETRIES, minimum=0)
            ),
            cache=_cache_config(),
            default_headers={
                FDR_API_SUBSCRIPTION_HEADER: subscription_key,
                "Accept": "application/json",
            },
        ),
    )
