from __future__ import annotations

import logging

import pytest

from fdrsync.domain.acquisition import (
    AcquisitionPipeline,
    CleanupStage,
    RunReport,
    RunState,
    StageStats,
    log_recap,
)
from fdrsync.domain.model import ExecutionStatus, StagingFlow
from tests.helpers.fdr import (
    BASE_TIME,
    FakeStagingRepository,
    FakeUnitOfWorkFactory,
    RecordingStage,
)


def test_stages_run_in_order_and_report_completion() -> None:
    journal: list[str] = []
    started: list[str] = []
    finished: list[tuple[str, ExecutionStatus]] = []
    pipeline = AcquisitionPipeline(
        stages=(
            RecordingStage("cleanup", journal, counts={"deleted": 2}),
            RecordingStage("header-acquisition", journal, counts={"read": 3, "staged": 4}),
        )
    )

    report = pipeline.run(
        "run-1",
        on_stage_started=lambda stats: started.append(stats.name),
        on_stage_finished=lambda stats: finished.append((stats.name, stats.status)),
    )

    assert journal == ["cleanup", "header-acquisition"]
    assert started == journal
    assert finished == [
        ("cleanup", ExecutionStatus.COMPLETED),
        ("header-acquisition", ExecutionStatus.COMPLETED),
    ]
    assert report.status is ExecutionStatus.COMPLETED
    assert report.error is None
    assert report.finished_at is not None
    assert pipeline.state is RunState.COMPLETED
    header_stats = report.stage("header-acquisition")
    assert header_stats is not None
    assert header_stats.write_count == 4


def test_failing_stage_stops_the_run() -> None:
    journal: list[str] = []
    finished: list[StageStats] = []
    pipeline = AcquisitionPipeline(
        stages=(
            RecordingStage("cleanup", journal),
            RecordingStage("header-acquisition", journal, error=RuntimeError("boom")),
            RecordingStage("flow-acquisition", journal),
        )
    )

    report = pipeline.run("run-2", on_stage_finished=finished.append)

    assert journal == ["cleanup", "header-acquisition"]
    assert report.status is ExecutionStatus.FAILED
    assert report.error is not None
    assert "boom" in report.error
    assert pipeline.state is RunState.FAILED
    assert finished[-1].status is ExecutionStatus.FAILED
    assert finished[-1].description == "boom"
    assert report.stage("flow-acquisition") is None


def test_pipeline_runs_only_once() -> None:
    pipeline = AcquisitionPipeline(stages=(RecordingStage("cleanup", []),))
    pipeline.run("run-3")

    with pytest.raises(RuntimeError):
        pipeline.run("run-3")


def test_recap_reports_header_stage_with_only_reconciled_flows(
    caplog: pytest.LogCaptureFixture,
) -> None:
    stage = StageStats(name="header-acquisition", read=2, skipped_in_final=3)
    stage.start()
    stage.finish(ExecutionStatus.COMPLETED)
    report = RunReport(
        run_id="run-5",
        status=ExecutionStatus.COMPLETED,
        started_at=BASE_TIME,
        finished_at=BASE_TIME,
        stages=[stage],
    )

    with caplog.at_level(logging.INFO, logger="fdrsync.domain.acquisition.orchestrator"):
        log_recap(report)

    assert "Domains processed: 2" in caplog.text
    assert "Flows skipped (already reconciled): 3" in caplog.text


def test_report_as_dict_lists_every_stage() -> None:
    pipeline = AcquisitionPipeline(
        stages=(RecordingStage("cleanup", [], counts={"deleted": 1}),)
    )

    view = pipeline.run("run-4").as_dict()

    assert view["run_id"] == "run-4"
    assert view["status"] == "COMPLETED"
    assert view["stages"]["cleanup"]["deleted"] == 1  # type: ignore[index]


def test_cleanup_stage_empties_staging(uow_factory: FakeUnitOfWorkFactory) -> None:
    repository = FakeStagingRepository(uow_factory.store)
    for code in ("FLOW-1", "FLOW-2"):
        repository.add(
            StagingFlow(
                domain_code="77777777777",
                flow_code=code,
                psp_id="PSP1",
                revision=1,
                published_at=BASE_TIME,
            )
        )
    stats = StageStats(name="cleanup")

    CleanupStage(uow_factory).run(stats)

    assert uow_factory.store.staging == {}
    assert stats.deleted == 2
    assert all(uow.committed for uow in uow_factory.created)
