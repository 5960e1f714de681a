"""Stage-based orchestrator for one acquisition run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from fdrsync.domain.model import ExecutionStatus

from .retry import StageFailedError
from .stats import RunReport, StageStats, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = getLogger(__name__)

_BANNER = "=" * 80


class RunState(StrEnum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PipelineStage(Protocol):
    """Contract implemented by each acquisition stage."""

    name: str

    def run(self, stats: StageStats) -> None: ...


type StageListener = Callable[[StageStats], None]


@dataclass(slots=True)
class AcquisitionPipeline:
    """Run the configured stages strictly in order.

    A stage starts only when the previous one finished without a fatal error.
    Every stage is reported to ``on_stage_started`` when it begins and to
    ``on_stage_finished`` when it ends, successfully or not.
    """

    stages: Sequence[PipelineStage] = field(default_factory=tuple)
    state: RunState = RunState.NOT_STARTED

    def run(
        self,
        run_id: str,
        *,
        on_stage_started: StageListener | None = None,
        on_stage_finished: StageListener | None = None,
    ) -> RunReport:
        """Execute every stage and return the run report.

        A fatal stage error stops the run; the report then carries status FAILED
        and the error text instead of the exception propagating.
        """

        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError(f"Pipeline already {self.state}")
        self.state = RunState.RUNNING
        report = RunReport(run_id=run_id, status=ExecutionStatus.RUNNING, started_at=utcnow())
        _log_start(report)

        try:
            for stage in self.stages:
                stats = StageStats(name=stage.name)
                report.stages.append(stats)
                stats.start()
                _notify(on_stage_started, stats)
                try:
                    stage.run(stats)
                except Exception as exc:
                    stats.finish(ExecutionStatus.FAILED, str(exc))
                    _notify(on_stage_finished, stats)
                    raise StageFailedError(stage.name, exc) from exc
                stats.finish(ExecutionStatus.COMPLETED)
                _notify(on_stage_finished, stats)
        except StageFailedError as exc:
            log.exception("Run %s failed in stage %s", run_id, exc.stage)
            self.state = RunState.FAILED
            report.status = ExecutionStatus.FAILED
            report.error = str(exc)
        else:
            self.state = RunState.COMPLETED
            report.status = ExecutionStatus.COMPLETED
        finally:
            report.finished_at = utcnow()
            log_recap(report)
        return report


def _notify(listener: StageListener | None, stats: StageStats) -> None:
    if listener is not None:
        listener(stats)


def _log_start(report: RunReport) -> None:
    log.info(_BANNER)
    log.info("FDR ACQUISITION RUN %s", report.run_id)
    log.info("Started at %s", report.started_at.strftime("%H:%M:%S"))
    log.info(_BANNER)


def log_recap(report: RunReport) -> None:
    """Log the per-stage summary of ``report``."""

    log.info(_BANNER)
    log.info("RUN SUMMARY")
    log.info(_BANNER)
    elapsed = (report.finished_at or utcnow()) - report.started_at
    log.info("Final status: %s", report.status)
    log.info("Total duration: %s seconds", int(elapsed.total_seconds()))

    for number, stage in enumerate(report.stages, start=1):
        log.info("--- STAGE %s: %s ---", number, stage.name.upper())
        log.info("Status: %s", stage.status)
        if stage.deleted:
            log.info("Staged flows removed: %s", stage.deleted)
        if not stage.partitions and (
            stage.read or stage.staged or stage.skipped_in_staging or stage.skipped_in_final
        ):
            log.info("Domains processed: %s", stage.read)
            log.info("Flows staged: %s", stage.staged)
            log.info("Flows skipped (already reconciled): %s", stage.skipped_in_final)
            log.info("Flows skipped (already staged): %s", stage.skipped_in_staging)
        if stage.partitions:
            log.info("Partitions: %s", len(stage.partitions))
            for partition in stage.partitions.values():
                log.info(
                    "  %s: read=%s written=%s skipped=%s errors=%s",
                    partition.domain_code,
                    partition.read,
                    partition.written,
                    partition.skipped,
                    partition.errors,
                )
            log.info(
                "Totals: read=%s written=%s skipped=%s",
                stage.read,
                stage.written,
                stage.skipped + stage.skipped_in_final,
            )
        log.info("Errors: %s", stage.errors)
        log.info("Duration: %s ms", stage.duration_ms)
        if stage.description:
            log.info("Detail: %s", stage.description)
    log.info(_BANNER)
