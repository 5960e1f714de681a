"""Run the acquisition pipeline under a coordinated execution record."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from fdrsync.domain.model import PARAM_JOB_ID, ExecutionStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from fdrsync.domain.acquisition import AcquisitionPipeline, RunReport
    from fdrsync.domain.model import ActivationKind, ExecutionRecord

    from .coordinator import ExecutionCoordinator

log = getLogger(__name__)


@dataclass(slots=True)
class JobLauncher:
    """Open an execution record, run a fresh pipeline and close the record.

    ``pipeline_factory`` is called once per run since a pipeline instance
    cannot be run twice.
    """

    coordinator: ExecutionCoordinator
    pipeline_factory: Callable[[], AcquisitionPipeline]

    def start(self, activation: ActivationKind) -> ExecutionRecord:
        return self.coordinator.start_run(activation)

    def execute(self, record: ExecutionRecord) -> RunReport:
        pipeline = self.pipeline_factory()
        run_id = record.parameters.get(PARAM_JOB_ID) or str(record.id)
        try:
            report = pipeline.run(
                run_id,
                on_stage_started=lambda stats: self.coordinator.record_step(record, stats),
                on_stage_finished=lambda stats: self.coordinator.record_step(record, stats),
            )
        except Exception as exc:
            self.coordinator.finish_run(record, ExecutionStatus.FAILED, str(exc))
            raise
        self.coordinator.finish_run(record, report.status, report.error)
        return report

    def launch(self, activation: ActivationKind) -> RunReport:
        """Start and execute a run in the calling thread."""

        return self.execute(self.start(activation))
