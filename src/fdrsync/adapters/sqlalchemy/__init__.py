"""SQLAlchemy adapter package for fdrsync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCreditorDomainRepository,
    SqlAlchemyExecutionRepository,
    SqlAlchemyPaymentPositionRepository,
    SqlAlchemyPaymentRepository,
    SqlAlchemyReconciledFlowRepository,
    SqlAlchemyStagingFlowRepository,
    SqlAlchemyTriggerMarkerRepository,
)
from .unit_of_work import (
    SqlAlchemyAcquisitionUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAcquisitionUnitOfWork",
    "SqlAlchemyCreditorDomainRepository",
    "SqlAlchemyExecutionRepository",
    "SqlAlchemyPaymentPositionRepository",
    "SqlAlchemyPaymentRepository",
    "SqlAlchemyReconciledFlowRepository",
    "SqlAlchemyStagingFlowRepository",
    "SqlAlchemyTriggerMarkerRepository",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
