"""Acquisition pipeline for settlement flows.

A run is a fixed sequence of stages: the staging area is cleared, newly
published flow headers are discovered per creditor domain and staged, then every
staged flow is enriched, its payments are fetched and it is reconciled into the
final store. Stages share counters through ``StageStats`` and report to a
``RunReport``.
"""

from __future__ import annotations

from .cleanup import CleanupStage
from .headers import DomainWork, DomainWorkQueue, HeaderAcquisitionStage, stage_headers
from .orchestrator import AcquisitionPipeline, PipelineStage, RunState, log_recap
from .partitioned import (
    FlowAcquisitionStage,
    Partition,
    UnknownDomainError,
    partition_by_domain,
)
from .retry import RetrySettings, SkipBudget, SkipLimitExceededError, StageFailedError
from .stats import PartitionStats, RunReport, StageStats, utcnow

__all__ = [
    "AcquisitionPipeline",
    "CleanupStage",
    "DomainWork",
    "DomainWorkQueue",
    "FlowAcquisitionStage",
    "HeaderAcquisitionStage",
    "Partition",
    "PartitionStats",
    "PipelineStage",
    "RetrySettings",
    "RunReport",
    "RunState",
    "SkipBudget",
    "SkipLimitExceededError",
    "StageFailedError",
    "StageStats",
    "UnknownDomainError",
    "log_recap",
    "partition_by_domain",
    "stage_headers",
    "utcnow",
]
