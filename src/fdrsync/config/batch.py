"""Batch scheduling, concurrency and fault-tolerance settings."""

from __future__ import annotations

import socket
from dataclasses import dataclass

from .env import env_bool, env_float, env_int, env_str

DEFAULT_CRON = "0 2 * * *"
DEFAULT_THREAD_POOL_SIZE = 5
DEFAULT_STAGING_PAGE_SIZE = 100
DEFAULT_SKIP_LIMIT = 10
DEFAULT_RETRY_LIMIT = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 2.0
DEFAULT_MAX_EXECUTION_HOURS = 2


@dataclass(slots=True, frozen=True)
class BatchConfig:
    cluster_id: str
    cron: str = DEFAULT_CRON
    thread_pool_size: int = DEFAULT_THREAD_POOL_SIZE
    staging_page_size: int = DEFAULT_STAGING_PAGE_SIZE
    skip_limit: int = DEFAULT_SKIP_LIMIT
    retry_limit: int = DEFAULT_RETRY_LIMIT
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    max_execution_hours: int = DEFAULT_MAX_EXECUTION_HOURS
    enabled: bool = True


def get_batch_config() -> BatchConfig:
    return BatchConfig(
        cluster_id=env_str("FDR_CLUSTER_ID", socket.gethostname()),
        cron=env_str("FDR_BATCH_CRON", DEFAULT_CRON),
        thread_pool_size=env_int(
            "FDR_BATCH_THREAD_POOL_SIZE", DEFAULT_THREAD_POOL_SIZE, minimum=1
        ),
        staging_page_size=env_int(
            "FDR_BATCH_STAGING_PAGE_SIZE", DEFAULT_STAGING_PAGE_SIZE, minimum=1
        ),
        skip_limit=env_int("FDR_BATCH_SKIP_LIMIT", DEFAULT_SKIP_LIMIT, minimum=0),
        retry_limit=env_int("FDR_BATCH_RETRY_LIMIT", DEFAULT_RETRY_LIMIT, minimum=1),
        retry_backoff_seconds=env_float(
            "FDR_BATCH_RETRY_BACKOFF_SECONDS", DEFAULT_RETRY_BACKOFF_SECONDS, minimum=0.0
        ),
        max_execution_hours=env_int(
            "FDR_BATCH_MAX_EXECUTION_HOURS", DEFAULT_MAX_EXECUTION_HOURS, minimum=1
        ),
        enabled=env_bool("FDR_BATCH_ENABLED", True),  # noqa: FBT003
    )
