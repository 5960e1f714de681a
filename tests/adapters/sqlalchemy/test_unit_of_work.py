from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect

from fdrsync.adapters.sqlalchemy.migrations import current_revision
from fdrsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyAcquisitionUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from fdrsync.domain.model import JOB_NAME, ExecutionRecord, StagingFlow
from fdrsync.domain.ports.persistence import ConcurrentWriteError
from tests.helpers.fdr import at, make_domain

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()

    with pytest.raises(StartupError):
        SqlAlchemyAcquisitionUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_startup_brings_schema_to_head(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    tables = set(inspect(sqlite_engine).get_table_names())

    assert {
        "creditor_domain",
        "staging_flow",
        "reconciled_flow",
        "reconciliation_item",
        "execution_record",
        "step_record",
        "manual_trigger_marker",
    } <= tables
    assert current_revision(sqlite_engine) == "0001_initial"


def test_repositories_need_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyAcquisitionUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories


def test_unit_of_work_persists_across_sessions(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyAcquisitionUnitOfWork() as uow:
        uow.repositories.domains.add(make_domain("11111111111"))
        uow.repositories.staging_flows.add(
            StagingFlow(
                domain_code="11111111111",
                flow_code="F1",
                psp_id="PSP1",
                revision=1,
                published_at=at(0),
            )
        )
        uow.commit()

    with SqlAlchemyAcquisitionUnitOfWork() as uow:
        assert uow.repositories.domains.get("11111111111") is not None
        assert uow.repositories.staging_flows.count() == 1


def test_exception_rolls_back_pending_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError), SqlAlchemyAcquisitionUnitOfWork() as uow:
        uow.repositories.domains.add(make_domain("11111111111"))
        raise RuntimeError("boom")

    with SqlAlchemyAcquisitionUnitOfWork() as uow:
        assert uow.repositories.domains.get("11111111111") is None


def test_second_live_record_is_a_concurrent_write(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyAcquisitionUnitOfWork() as uow:
        uow.repositories.executions.add(
            ExecutionRecord(job_name=JOB_NAME, owner_node="node-a", lock_token=JOB_NAME)
        )
        uow.commit()

    with SqlAlchemyAcquisitionUnitOfWork() as uow:
        uow.repositories.executions.add(
            ExecutionRecord(job_name=JOB_NAME, owner_node="node-b", lock_token=JOB_NAME)
        )
        with pytest.raises(ConcurrentWriteError):
            uow.commit()

    with SqlAlchemyAcquisitionUnitOfWork() as uow:
        live = uow.repositories.executions.find_live(JOB_NAME)
        assert live is not None
        assert live.owner_node == "node-a"
