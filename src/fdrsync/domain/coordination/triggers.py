"""Thin surfaces that decide when to start a run.

Scheduled, manual and marker-driven activations all go through the same
coordinator check, so they share one mutex across the cluster.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING

from croniter import croniter

from fdrsync.domain.acquisition.stats import utcnow
from fdrsync.domain.model import PARAM_JOB_ID, TRIGGER_MARKER_KEY, ActivationKind
from fdrsync.domain.ports.unit_of_work import with_transaction

from .coordinator import ExecutionAlreadyRunningError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from fdrsync.domain.acquisition import RunReport
    from fdrsync.domain.model import ExecutionRecord
    from fdrsync.domain.ports.unit_of_work import AcquisitionRepositories, UnitOfWorkFactory

    from .coordinator import ExecutionCoordinator
    from .launcher import JobLauncher

log = getLogger(__name__)

FORCED_REASON = "forced execution requested via API"


def _summary(record: ExecutionRecord | None) -> Mapping[str, object] | None:
    if record is None:
        return None
    return {
        "id": record.id,
        "status": record.status.value,
        "activation": record.activation.value,
        "owner_node": record.owner_node,
        "start_time": record.start_time.isoformat() if record.start_time else None,
        "end_time": record.end_time.isoformat() if record.end_time else None,
        "exit_description": record.exit_description,
    }


@dataclass(slots=True)
class ScheduledRunner:
    """Cron-driven activation."""

    launcher: JobLauncher
    coordinator: ExecutionCoordinator
    cron: str
    enabled: bool = True
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        if not croniter.is_valid(self.cron):
            raise ValueError(f"Invalid cron expression: {self.cron}")

    def next_execution(self, after: datetime | None = None) -> datetime:
        return croniter(self.cron, after or self.clock()).get_next(datetime)

    def run_once(self) -> RunReport | None:
        """Start a scheduled run unless another live run holds the job."""

        if not self.enabled:
            log.info("Scheduled execution disabled")
            return None

        coordinator = self.coordinator
        live = coordinator.try_acquire()
        if live is not None:
            owner = coordinator.owner_of(live)
            if coordinator.is_stale(live):
                if not coordinator.abandon(live):
                    log.error("Stale execution %s could not be abandoned, skipping run", live.id)
                    return None
                log.warning("Abandoned stale execution %s owned by %s", live.id, owner)
            elif owner == coordinator.node_id:
                log.warning("Job %s is still running on this node", coordinator.job_name)
                return None
            else:
                log.info("Job %s is running on node %s, skipping", coordinator.job_name, owner)
                return None

        try:
            return self.launcher.launch(ActivationKind.SCHEDULED)
        except ExecutionAlreadyRunningError as exc:
            log.info("Job %s was started by node %s first", coordinator.job_name, exc.owner_node)
            return None

    def run_forever(self, stop: threading.Event) -> None:
        """Sleep until each cron tick and run, until ``stop`` is set."""

        while not stop.is_set():
            upcoming = self.next_execution()
            delay = max((upcoming - self.clock()).total_seconds(), 0.0)
            log.info("Next scheduled execution at %s", upcoming.isoformat())
            if stop.wait(delay):
                return
            self.run_once()


@dataclass(slots=True, frozen=True)
class TriggerResponse:
    status: HTTPStatus
    message: str
    cluster_id: str
    run_id: str | None = None
    owner_node: str | None = None

    def as_dict(self) -> Mapping[str, object]:
        return {
            "status": int(self.status),
            "message": self.message,
            "cluster_id": self.cluster_id,
            "run_id": self.run_id,
            "owner_node": self.owner_node,
        }


def _launch_in_thread(work: Callable[[], None]) -> None:
    threading.Thread(target=work, name="fdr-manual-run", daemon=True).start()


@dataclass(slots=True)
class ManualTrigger:
    """Operator-requested activation.

    The run itself proceeds through ``launch_async``; ``trigger`` never waits
    for it.
    """

    launcher: JobLauncher
    coordinator: ExecutionCoordinator
    schedule: ScheduledRunner | None = None
    launch_async: Callable[[Callable[[], None]], None] = _launch_in_thread

    def trigger(self, *, force: bool = False) -> TriggerResponse:
        coordinator = self.coordinator
        node = coordinator.node_id
        try:
            live = coordinator.try_acquire()
            if live is not None:
                owner = coordinator.owner_of(live)
                if force:
                    if not coordinator.force_abandon(live, FORCED_REASON):
                        return TriggerResponse(
                            HTTPStatus.SERVICE_UNAVAILABLE,
                            f"Unable to abandon execution {live.id}",
                            node,
                            owner_node=owner,
                        )
                elif coordinator.is_stale(live):
                    return TriggerResponse(
                        HTTPStatus.SERVICE_UNAVAILABLE,
                        f"Execution {live.id} is stale, retry with force",
                        node,
                        owner_node=owner,
                    )
                else:
                    return TriggerResponse(
                        HTTPStatus.CONFLICT,
                        f"Job already running on node {owner}",
                        node,
                        owner_node=owner,
                    )
            record = self.launcher.start(ActivationKind.MANUAL)
        except ExecutionAlreadyRunningError as exc:
            return TriggerResponse(
                HTTPStatus.CONFLICT,
                f"Job already running on node {exc.owner_node}",
                node,
                owner_node=exc.owner_node,
            )
        except Exception as exc:
            log.exception("Manual trigger failed")
            return TriggerResponse(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc), node)

        self.launch_async(lambda: self._execute(record))
        return TriggerResponse(
            HTTPStatus.ACCEPTED,
            "Execution started",
            node,
            run_id=record.parameters.get(PARAM_JOB_ID),
            owner_node=node,
        )

    def _execute(self, record: ExecutionRecord) -> None:
        try:
            self.launcher.execute(record)
        except Exception:
            log.exception("Manual execution %s terminated with an error", record.id)

    def status(self) -> Mapping[str, object]:
        live = self.coordinator.try_acquire()
        return {
            "cluster_id": self.coordinator.node_id,
            "running": live is not None,
            "stale": live is not None and self.coordinator.is_stale(live),
            "owner_node": self.coordinator.owner_of(live),
            "execution": _summary(live),
        }

    def last_execution(self) -> Mapping[str, object] | None:
        return _summary(self.coordinator.last_execution())

    def next_execution(self) -> datetime | None:
        if self.schedule is None or not self.schedule.enabled:
            return None
        return self.schedule.next_execution()


@dataclass(slots=True)
class TriggerMarkerWatcher:
    """Poll the shared trigger marker and run when it advances.

    The checkpoint starts at construction time, so only requests made after
    the watcher came up start a run.
    """

    launcher: JobLauncher
    coordinator: ExecutionCoordinator
    unit_of_work_factory: UnitOfWorkFactory
    job_key: str = TRIGGER_MARKER_KEY
    clock: Callable[[], datetime] = utcnow
    checkpoint: datetime | None = None
    _checking: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.checkpoint is None:
            self.checkpoint = self.clock()

    def check(self) -> RunReport | None:
        with self._lock:
            if self._checking:
                log.debug("Marker check already in progress")
                return None
            self._checking = True
        try:
            return self._check()
        finally:
            with self._lock:
                self._checking = False

    def _check(self) -> RunReport | None:
        requested_at = with_transaction(self.unit_of_work_factory, self._requested_at)
        if requested_at is None:
            return None
        if self.checkpoint is not None and requested_at <= self.checkpoint:
            return None
        log.info("Manual activation requested at %s", requested_at.isoformat())

        live = self.coordinator.try_acquire()
        if live is not None:
            log.warning(
                "Job %s already running on node %s, ignoring activation",
                self.coordinator.job_name,
                self.coordinator.owner_of(live),
            )
            self.checkpoint = self.clock()
            return None

        try:
            report = self.launcher.launch(ActivationKind.MANUAL)
        except ExecutionAlreadyRunningError as exc:
            log.warning("Job started by node %s first, ignoring activation", exc.owner_node)
            self.checkpoint = self.clock()
            return None
        except Exception:
            self.checkpoint = self.clock()
            raise
        with_transaction(self.unit_of_work_factory, self._stamp_marker)
        self.checkpoint = self.clock()
        return report

    def _requested_at(self, repositories: AcquisitionRepositories) -> datetime | None:
        marker = repositories.trigger_markers.get(self.job_key)
        return marker.last_updated if marker is not None else None

    def _stamp_marker(self, repositories: AcquisitionRepositories) -> None:
        marker = repositories.trigger_markers.get(self.job_key)
        if marker is None:
            return
        marker.started_at = self.clock()
        marker.owner_node = self.coordinator.node_id
