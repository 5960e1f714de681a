"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from fdrsync.domain.ports.persistence import (
        CreditorDomainRepository,
        ExecutionRepository,
        PaymentPositionRepository,
        PaymentRepository,
        ReconciledFlowRepository,
        StagingFlowRepository,
        TriggerMarkerRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class AcquisitionRepositories(RepositoryCollection):
    """Repositories used by the acquisition pipeline and its coordinator."""

    domains: CreditorDomainRepository
    staging_flows: StagingFlowRepository
    reconciled_flows: ReconciledFlowRepository
    payments: PaymentRepository
    positions: PaymentPositionRepository
    executions: ExecutionRepository
    trigger_markers: TriggerMarkerRepository


type AcquisitionUnitOfWork = UnitOfWork[AcquisitionRepositories]
type UnitOfWorkFactory = Callable[[], AcquisitionUnitOfWork]


def with_transaction[T](
    unit_of_work_factory: UnitOfWorkFactory,
    work: Callable[[AcquisitionRepositories], T],
) -> T:
    """Run ``work`` in a fresh unit of work and commit it.

    Any exception raised by ``work`` or by the commit itself rolls the unit of
    work back before propagating.
    """

    with unit_of_work_factory() as uow:
        result = work(uow.repositories)
        uow.commit()
        return result
