"""Ports for persisting flows, reference data and coordination records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from fdrsync.domain.model import (
    CreditorDomain,
    ExecutionRecord,
    ManualTriggerMarker,
    Payment,
    PaymentPosition,
    ReconciledFlow,
    StagingFlow,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from fdrsync.domain.model import FlowKey


class ConcurrentWriteError(RuntimeError):
    """Raised on commit when a unique key was claimed by a concurrent writer."""


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class CreditorDomainRepository(Repository[CreditorDomain], Protocol):
    def get(self, domain_code: str) -> CreditorDomain | None: ...

    def list_enabled_with_last_publication(
        self,
    ) -> Sequence[tuple[CreditorDomain, datetime | None]]:
        """Domains that download flows, with the latest reconciled publication time."""
        ...


@runtime_checkable
class StagingFlowRepository(Repository[StagingFlow], Protocol):
    def get(self, staging_id: int) -> StagingFlow | None: ...

    def exists(self, key: FlowKey) -> bool: ...

    def count(self) -> int: ...

    def delete(self, flow: StagingFlow) -> None: ...

    def delete_all(self) -> int: ...

    def list_domain_codes(self) -> Sequence[str]: ...

    def list_for_domain(
        self,
        domain_code: str,
        *,
        after: tuple[datetime, int] | None = None,
        limit: int = 100,
    ) -> Sequence[StagingFlow]:
        """Page of staged flows ordered by ``(published_at, id)``, strictly after ``after``."""
        ...


@runtime_checkable
class ReconciledFlowRepository(Repository[ReconciledFlow], Protocol):
    def exists(self, flow_code: str, psp_id: str, revision: int) -> bool: ...

    def get(self, flow_code: str, psp_id: str, revision: int) -> ReconciledFlow | None: ...


@runtime_checkable
class PaymentRepository(Repository[Payment], Protocol):
    def find_all(
        self,
        domain_code: str,
        iuv: str,
        *,
        iur: str | None = None,
        item_index: int | None = None,
    ) -> Sequence[Payment]:
        """Payments for ``(domain_code, iuv)``, narrowed by ``iur``/``item_index`` when given."""
        ...


@runtime_checkable
class PaymentPositionRepository(Repository[PaymentPosition], Protocol):
    def find_by_iuv(self, domain_code: str, iuv: str) -> PaymentPosition | None: ...


@runtime_checkable
class ExecutionRepository(Repository[ExecutionRecord], Protocol):
    def get(self, execution_id: int) -> ExecutionRecord | None: ...

    def find_live(self, job_name: str) -> ExecutionRecord | None: ...

    def latest(self, job_name: str) -> ExecutionRecord | None: ...


@runtime_checkable
class TriggerMarkerRepository(Repository[ManualTriggerMarker], Protocol):
    def get(self, job_key: str) -> ManualTriggerMarker | None: ...
