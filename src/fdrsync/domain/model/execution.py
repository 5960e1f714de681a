"""Coordination records shared by every node running the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import ActivationKind, ExecutionStatus

if TYPE_CHECKING:
    from datetime import datetime

JOB_NAME = "fdrAcquisitionJob"
TRIGGER_MARKER_KEY = "batch_fdr"

PARAM_JOB_ID = "JobID"
PARAM_WHEN = "When"
PARAM_CLUSTER_ID = "ClusterID"
PARAM_ACTIVATION = "ActivationKind"


@dataclass(eq=False, kw_only=True)
class StepRecord:
    step_name: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    start_time: datetime | None = None
    end_time: datetime | None = None
    read_count: int = 0
    write_count: int = 0
    skip_count: int = 0
    error_count: int = 0
    exit_description: str | None = None
    execution: ExecutionRecord | None = field(default=None, repr=False)
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class ExecutionRecord:
    """One run of the pipeline.

    ``lock_token`` holds the job name while the run is live and is cleared when
    the run ends; storage keeps it unique so two live runs of the same job can
    never be recorded at once.
    """

    job_name: str
    owner_node: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    activation: ActivationKind = ActivationKind.SCHEDULED
    start_time: datetime | None = None
    end_time: datetime | None = None
    last_updated: datetime | None = None
    exit_description: str | None = None
    parameters: dict[str, str] = field(default_factory=dict[str, str])
    lock_token: str | None = None
    steps: list[StepRecord] = field(default_factory=list[StepRecord])
    id: int | None = None

    @property
    def is_live(self) -> bool:
        return self.end_time is None and not self.status.is_terminal

    def add_step(self, step: StepRecord) -> StepRecord:
        # Only the collection append cascades the step into the session.
        if step not in self.steps:
            self.steps.append(step)
        step.execution = self
        return step

    def close(self, status: ExecutionStatus, *, at: datetime, description: str | None) -> None:
        self.status = status
        self.end_time = at
        self.last_updated = at
        self.exit_description = description
        self.lock_token = None


@dataclass(eq=False, kw_only=True)
class ManualTriggerMarker:
    """Shared row bumped by operators to request a manual run."""

    job_key: str
    last_updated: datetime | None = None
    started_at: datetime | None = None
    owner_node: str | None = None
