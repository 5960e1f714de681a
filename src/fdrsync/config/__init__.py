"""Application configuration helpers."""

from __future__ import annotations

from .batch import BatchConfig, get_batch_config
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .events import EventSinkConfig, get_event_sink_config
from .fdr_api import FdrApiConfig, get_fdr_api_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)

__all__ = [
    "BatchConfig",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "EventSinkConfig",
    "FdrApiConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_batch_config",
    "get_database_config",
    "get_database_uri",
    "get_event_sink_config",
    "get_fdr_api_config",
    "get_storage_config",
    "require_env_vars",
]
