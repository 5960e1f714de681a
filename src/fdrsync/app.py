"""Application wiring: configuration, adapters and trigger surfaces."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from fdrsync.adapters.events import HttpEventSink
from fdrsync.adapters.fdr_api import FdrApiClient
from fdrsync.adapters.sqlalchemy.migrations import upgrade_head
from fdrsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyAcquisitionUnitOfWork,
    is_started,
    startup,
)
from fdrsync.config import (
    get_batch_config,
    get_database_uri,
    get_event_sink_config,
    get_fdr_api_config,
)
from fdrsync.domain.acquisition import (
    AcquisitionPipeline,
    CleanupStage,
    FlowAcquisitionStage,
    HeaderAcquisitionStage,
    RetrySettings,
)
from fdrsync.domain.coordination import (
    ExecutionCoordinator,
    JobLauncher,
    ManualTrigger,
    ScheduledRunner,
    TriggerMarkerWatcher,
)
from fdrsync.domain.ports.events import NullEventSink

if TYPE_CHECKING:
    from collections.abc import Callable

    from fdrsync.config import BatchConfig, EventSinkConfig
    from fdrsync.domain.ports.events import EventSink
    from fdrsync.domain.ports.fetching import FlowSource
    from fdrsync.domain.ports.unit_of_work import UnitOfWorkFactory

log = getLogger(__name__)


def build_event_sink(config: EventSinkConfig, *, cluster_id: str) -> EventSink:
    if not config.active:
        return NullEventSink()
    log.info("Shipping upstream call events to %s", config.base_url)
    return HttpEventSink(base_url=config.base_url, cluster_id=cluster_id)


def build_pipeline_factory(
    source: FlowSource,
    unit_of_work_factory: UnitOfWorkFactory,
    batch: BatchConfig,
) -> Callable[[], AcquisitionPipeline]:
    """Return a callable producing a fresh three-stage pipeline per run."""

    retry = RetrySettings(
        attempts=batch.retry_limit,
        backoff_seconds=batch.retry_backoff_seconds,
    )

    def factory() -> AcquisitionPipeline:
        return AcquisitionPipeline(
            stages=(
                CleanupStage(unit_of_work_factory),
                HeaderAcquisitionStage(
                    source,
                    unit_of_work_factory,
                    worker_count=batch.thread_pool_size,
                    skip_limit=batch.skip_limit,
                    retry=retry,
                ),
                FlowAcquisitionStage(
                    source,
                    unit_of_work_factory,
                    skip_limit=batch.skip_limit,
                    page_size=batch.staging_page_size,
                    retry=retry,
                ),
            )
        )

    return factory


@dataclass(slots=True)
class Application:
    """Every trigger surface of one node, sharing a single coordinator."""

    batch: BatchConfig
    coordinator: ExecutionCoordinator
    launcher: JobLauncher
    scheduler: ScheduledRunner
    manual: ManualTrigger
    watcher: TriggerMarkerWatcher
    event_sink: EventSink

    def close(self) -> None:
        if isinstance(self.event_sink, HttpEventSink):
            self.event_sink.close()


def build_application(
    *,
    source: FlowSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    batch: BatchConfig | None = None,
    event_sink: EventSink | None = None,
    launch_async: Callable[[Callable[[], None]], None] | None = None,
) -> Application:
    """Assemble the application, starting persistence unless a factory is supplied."""

    effective_batch = batch or get_batch_config()
    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyAcquisitionUnitOfWork

    effective_sink = event_sink or build_event_sink(
        get_event_sink_config(), cluster_id=effective_batch.cluster_id
    )
    effective_source = source or FdrApiClient(get_fdr_api_config(), event_sink=effective_sink)

    coordinator = ExecutionCoordinator(
        unit_of_work_factory,
        effective_batch.cluster_id,
        max_run_hours=effective_batch.max_execution_hours,
    )
    launcher = JobLauncher(
        coordinator,
        build_pipeline_factory(effective_source, unit_of_work_factory, effective_batch),
    )
    scheduler = ScheduledRunner(
        launcher,
        coordinator,
        effective_batch.cron,
        enabled=effective_batch.enabled,
    )
    manual = (
        ManualTrigger(launcher, coordinator, schedule=scheduler)
        if launch_async is None
        else ManualTrigger(launcher, coordinator, schedule=scheduler, launch_async=launch_async)
    )
    watcher = TriggerMarkerWatcher(launcher, coordinator, unit_of_work_factory)

    log.info(
        "Node %s ready: cron=%s, workers=%s, skip_limit=%s, retry_limit=%s",
        effective_batch.cluster_id,
        effective_batch.cron,
        effective_batch.thread_pool_size,
        effective_batch.skip_limit,
        effective_batch.retry_limit,
    )
    return Application(
        batch=effective_batch,
        coordinator=coordinator,
        launcher=launcher,
        scheduler=scheduler,
        manual=manual,
        watcher=watcher,
        event_sink=effective_sink,
    )


def migrate_database(database_uri: str | None = None) -> None:
    """Bring the configured database to the latest schema revision."""

    uri = database_uri or get_database_uri()
    log.info("Upgrading database schema to head")
    upgrade_head(database_uri=uri)
