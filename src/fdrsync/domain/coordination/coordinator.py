"""Cluster-wide mutual exclusion over pipeline runs.

Every node shares the ``execution_record`` store. A run may start only when no
live record exists for the job; the record carries a unique lock token while it
is live, so the store rejects a second concurrent insert even when two nodes
pass the check at the same moment.

This is advisory exclusion. Abandoning a record never stops the process that
opened it: a preempted node keeps running until it finishes, and its late
writes are absorbed by the unique keys on staged and reconciled flows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from fdrsync.domain.acquisition.stats import utcnow
from fdrsync.domain.model import (
    JOB_NAME,
    PARAM_ACTIVATION,
    PARAM_CLUSTER_ID,
    PARAM_JOB_ID,
    PARAM_WHEN,
    ExecutionRecord,
    ExecutionStatus,
    StepRecord,
)
from fdrsync.domain.ports.persistence import ConcurrentWriteError
from fdrsync.domain.ports.unit_of_work import with_transaction

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from fdrsync.domain.acquisition.stats import StageStats
    from fdrsync.domain.model import ActivationKind
    from fdrsync.domain.ports.unit_of_work import AcquisitionRepositories, UnitOfWorkFactory

log = getLogger(__name__)

DEFAULT_MAX_RUN_HOURS = 2
STEP_ABANDONED_DESCRIPTION = "Step abandoned: job stale"
_INCONSISTENT_STATUSES = frozenset({ExecutionStatus.UNKNOWN, ExecutionStatus.ABANDONED})


class ExecutionAlreadyRunningError(RuntimeError):
    """Raised when a run cannot start because another one is live."""

    def __init__(self, record: ExecutionRecord | None) -> None:
        owner = None
        if record is not None:
            owner = record.parameters.get(PARAM_CLUSTER_ID) or record.owner_node
        super().__init__(f"Job already running on node {owner or 'unknown'}")
        self.record = record
        self.owner_node = owner


def abandon_description(max_run_hours: int) -> str:
    return (
        "abandoned automatically: stale execution detected after "
        f"{max_run_hours} hours or anomalous state"
    )


@dataclass(slots=True)
class ExecutionCoordinator:
    unit_of_work_factory: UnitOfWorkFactory
    node_id: str
    job_name: str = JOB_NAME
    max_run_hours: int = DEFAULT_MAX_RUN_HOURS
    clock: Callable[[], datetime] = utcnow

    def try_acquire(self, job_name: str | None = None) -> ExecutionRecord | None:
        """Return the live execution of ``job_name``; ``None`` means a run may start."""

        name = job_name or self.job_name
        return with_transaction(
            self.unit_of_work_factory,
            lambda repositories: repositories.executions.find_live(name),
        )

    def is_stale(self, record: ExecutionRecord, max_run_hours: int | None = None) -> bool:
        """Whether ``record`` is stuck and may be abandoned.

        UNKNOWN and ABANDONED records are already inconsistent and always stale.
        A RUNNING record is stale once more than ``max_run_hours`` whole hours
        have elapsed since it started.
        """

        if record.status in _INCONSISTENT_STATUSES:
            return True
        if record.status is not ExecutionStatus.RUNNING or record.start_time is None:
            return False
        limit = self.max_run_hours if max_run_hours is None else max_run_hours
        elapsed_hours = int((self.clock() - record.start_time).total_seconds() // 3600)
        if elapsed_hours > limit:
            log.warning(
                "Execution %s has been running for %s hours (limit %s)",
                record.id,
                elapsed_hours,
                limit,
            )
            return True
        return False

    def abandon(self, record: ExecutionRecord, reason: str | None = None) -> bool:
        """Mark a stale ``record`` FAILED together with its running steps.

        Returns False when the record is not stale or could not be updated.
        """

        if not self.is_stale(record):
            log.warning("Execution %s is not stale, refusing to abandon it", record.id)
            return False
        return self._fail(record, reason or abandon_description(self.max_run_hours))

    def force_abandon(self, record: ExecutionRecord, reason: str) -> bool:
        """Mark ``record`` FAILED regardless of its age."""

        log.warning("Forcing abandon of execution %s: %s", record.id, reason)
        return self._fail(record, reason)

    def owner_of(self, record: ExecutionRecord | None) -> str | None:
        if record is None:
            return None
        return record.parameters.get(PARAM_CLUSTER_ID) or record.owner_node or None

    def start_run(self, activation: ActivationKind) -> ExecutionRecord:
        """Insert a RUNNING record owned by this node, or raise if one is live."""

        now = self.clock()
        record = ExecutionRecord(
            job_name=self.job_name,
            owner_node=self.node_id,
            status=ExecutionStatus.RUNNING,
            activation=activation,
            start_time=now,
            last_updated=now,
            lock_token=self.job_name,
            parameters={
                PARAM_JOB_ID: str(uuid.uuid4()),
                PARAM_WHEN: now.isoformat(),
                PARAM_CLUSTER_ID: self.node_id,
                PARAM_ACTIVATION: activation.value,
            },
        )

        def insert(repositories: AcquisitionRepositories) -> ExecutionRecord:
            live = repositories.executions.find_live(self.job_name)
            if live is not None:
                raise ExecutionAlreadyRunningError(live)
            repositories.executions.add(record)
            return record

        try:
            started = with_transaction(self.unit_of_work_factory, insert)
        except ConcurrentWriteError as exc:
            raise ExecutionAlreadyRunningError(self.try_acquire()) from exc
        log.info(
            "Started execution %s of %s on node %s (%s)",
            started.id,
            self.job_name,
            self.node_id,
            activation,
        )
        return started

    def record_step(self, record: ExecutionRecord, stats: StageStats) -> bool:
        """Persist the current counters of one stage; failures are logged only."""

        def save(repositories: AcquisitionRepositories) -> None:
            current = self._reload(repositories, record)
            step = next((s for s in current.steps if s.step_name == stats.name), None)
            if step is None:
                step = current.add_step(StepRecord(step_name=stats.name))
            step.status = stats.status
            step.start_time = stats.started_at
            step.end_time = stats.finished_at
            step.read_count = stats.read
            step.write_count = stats.write_count
            step.skip_count = stats.skip_count
            step.error_count = stats.errors
            step.exit_description = stats.description
            current.last_updated = self.clock()

        try:
            with_transaction(self.unit_of_work_factory, save)
        except Exception:
            log.exception("Could not record step %s of execution %s", stats.name, record.id)
            return False
        return True

    def finish_run(
        self,
        record: ExecutionRecord,
        status: ExecutionStatus,
        description: str | None = None,
    ) -> bool:
        """Close ``record`` with its final status.

        Returns False when another node already closed it, typically after
        abandoning it as stale; that outcome is kept.
        """

        def close(repositories: AcquisitionRepositories) -> bool:
            current = self._reload(repositories, record)
            if not current.is_live:
                log.warning(
                    "Execution %s was already closed with status %s, keeping it",
                    current.id,
                    current.status,
                )
                return False
            current.close(status, at=self.clock(), description=description)
            return True

        closed = with_transaction(self.unit_of_work_factory, close)
        if closed:
            log.info("Execution %s finished with status %s", record.id, status)
        return closed

    def last_execution(self) -> ExecutionRecord | None:
        return with_transaction(
            self.unit_of_work_factory,
            lambda repositories: repositories.executions.latest(self.job_name),
        )

    def _fail(self, record: ExecutionRecord, description: str) -> bool:
        def mark_failed(repositories: AcquisitionRepositories) -> None:
            current = self._reload(repositories, record)
            now = self.clock()
            for step in current.steps:
                if step.status is ExecutionStatus.RUNNING:
                    step.status = ExecutionStatus.FAILED
                    step.end_time = now
                    step.exit_description = STEP_ABANDONED_DESCRIPTION
            current.close(ExecutionStatus.FAILED, at=now, description=description)

        try:
            with_transaction(self.unit_of_work_factory, mark_failed)
        except Exception:
            log.exception("Could not abandon execution %s", record.id)
            return False
        log.info("Execution %s abandoned: %s", record.id, description)
        return True

    @staticmethod
    def _reload(repositories: AcquisitionRepositories, record: ExecutionRecord) -> ExecutionRecord:
        current = repositories.executions.get(record.id) if record.id is not None else None
        if current is None:
            raise LookupError(f"Execution {record.id} not found")
        return current
