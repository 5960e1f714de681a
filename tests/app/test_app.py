from __future__ import annotations

import pytest

from fdrsync.adapters.events import HttpEventSink
from fdrsync.app import build_application, build_event_sink, build_pipeline_factory
from fdrsync.config import BatchConfig, EventSinkConfig
from fdrsync.domain.ports.events import NullEventSink
from tests.helpers.fdr import FakeFlowSource, FakeUnitOfWorkFactory


def test_inactive_event_sink_discards_events() -> None:
    sink = build_event_sink(EventSinkConfig(enabled=True, base_url=""), cluster_id="node-a")

    assert isinstance(sink, NullEventSink)


def test_active_event_sink_posts_over_http() -> None:
    sink = build_event_sink(
        EventSinkConfig(enabled=True, base_url="https://events.test"), cluster_id="node-a"
    )

    assert isinstance(sink, HttpEventSink)
    assert sink.cluster_id == "node-a"
    sink.close()


def test_pipeline_factory_builds_fresh_pipelines_in_stage_order() -> None:
    factory = build_pipeline_factory(
        FakeFlowSource(), FakeUnitOfWorkFactory(), BatchConfig(cluster_id="node-a")
    )

    first, second = factory(), factory()

    assert first is not second
    assert [stage.name for stage in first.stages] == [
        "cleanup",
        "header-acquisition",
        "flow-acquisition",
    ]


def test_application_shares_one_coordinator() -> None:
    app = build_application(
        source=FakeFlowSource(),
        unit_of_work_factory=FakeUnitOfWorkFactory(),
        batch=BatchConfig(cluster_id="node-a", cron="*/5 * * * *"),
        event_sink=NullEventSink(),
    )

    assert app.coordinator.node_id == "node-a"
    assert app.launcher.coordinator is app.coordinator
    assert app.manual.coordinator is app.coordinator
    assert app.scheduler.coordinator is app.coordinator
    assert app.watcher.coordinator is app.coordinator
    assert app.manual.next_execution() is not None
    app.close()


def test_application_rejects_invalid_cron() -> None:
    with pytest.raises(ValueError, match="cron"):
        build_application(
            source=FakeFlowSource(),
            unit_of_work_factory=FakeUnitOfWorkFactory(),
            batch=BatchConfig(cluster_id="node-a", cron="not a cron"),
            event_sink=NullEventSink(),
        )
