"""Domain port definitions for adapters."""

from __future__ import annotations

from .events import AcquisitionEvent, EventOperation, EventOutcome, EventSink, NullEventSink
from .fetching import FlowSource, FlowSourceError
from .persistence import (
    ConcurrentWriteError,
    CreditorDomainRepository,
    ExecutionRepository,
    PaymentPositionRepository,
    PaymentRepository,
    ReconciledFlowRepository,
    Repository,
    StagingFlowRepository,
    TriggerMarkerRepository,
)
from .unit_of_work import (
    AcquisitionRepositories,
    AcquisitionUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
    with_transaction,
)

__all__ = [
    "AcquisitionEvent",
    "AcquisitionRepositories",
    "AcquisitionUnitOfWork",
    "ConcurrentWriteError",
    "CreditorDomainRepository",
    "EventOperation",
    "EventOutcome",
    "EventSink",
    "ExecutionRepository",
    "FlowSource",
    "FlowSourceError",
    "NullEventSink",
    "PaymentPositionRepository",
    "PaymentRepository",
    "ReconciledFlowRepository",
    "Repository",
    "RepositoryCollection",
    "StagingFlowRepository",
    "TriggerMarkerRepository",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "with_transaction",
]
