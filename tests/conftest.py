from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from fdrsync.adapters.sqlalchemy import start_mappers
from fdrsync.adapters.sqlalchemy.migrations import upgrade_head
from fdrsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyAcquisitionUnitOfWork,
    shutdown,
    startup,
)
from tests.helpers.fdr import FakeClock, FakeFlowSource, FakeUnitOfWorkFactory

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_file_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed engine, for tests whose workers run on several threads."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'fdrsync.db'}", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyAcquisitionUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyAcquisitionUnitOfWork:
        return SqlAlchemyAcquisitionUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def uow_factory() -> FakeUnitOfWorkFactory:
    return FakeUnitOfWorkFactory()


@pytest.fixture
def source() -> FakeFlowSource:
    return FakeFlowSource()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
