"""Metadata + payment acquisition, partitioned by creditor domain.

One partition is created per domain present in staging when the stage starts,
and each partition runs on its own worker. Inside a partition the staged flows
are handled one at a time in ascending publication order; every flow is
enriched, fetched, reconciled and written in its own transactions, so the work
already committed survives a failure later in the partition.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, NamedTuple

from fdrsync.domain.ports.unit_of_work import with_transaction
from fdrsync.domain.reconciliation import FlowReconciler

from .retry import RetrySettings, SkipBudget, SkipLimitExceededError
from .stats import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence
    from datetime import datetime

    from fdrsync.domain.model import FlowMetadata, ReportedPayment, StagingFlow
    from fdrsync.domain.ports.fetching import FlowSource
    from fdrsync.domain.ports.unit_of_work import AcquisitionRepositories, UnitOfWorkFactory

    from .stats import StageStats

log = getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class Partition(NamedTuple):
    name: str
    domain_code: str
    number: int
    total: int


class FlowOutcome(NamedTuple):
    written: bool
    reason: str | None = None


class UnknownDomainError(LookupError):
    """Raised when a staged flow names a creditor domain that is not registered."""

    def __init__(self, domain_code: str, flow_code: str) -> None:
        super().__init__(f"Domain {domain_code} not found, leaving flow {flow_code} staged")
        self.domain_code = domain_code
        self.flow_code = flow_code


def partition_by_domain(domain_codes: Sequence[str]) -> list[Partition]:
    total = len(domain_codes)
    partitions = [
        Partition(f"partition-{code}", code, number, total)
        for number, code in enumerate(domain_codes, start=1)
    ]
    log.info("Created %s partitions", total)
    return partitions


@dataclass(slots=True)
class FlowAcquisitionStage:
    source: FlowSource
    unit_of_work_factory: UnitOfWorkFactory
    skip_limit: int = 10
    page_size: int = DEFAULT_PAGE_SIZE
    retry: RetrySettings = field(default_factory=RetrySettings)
    clock: Callable[[], datetime] = utcnow
    name: str = "flow-acquisition"

    def run(self, stats: StageStats) -> None:
        partitions = partition_by_domain(
            with_transaction(
                self.unit_of_work_factory,
                lambda repositories: list(repositories.staging_flows.list_domain_codes()),
            )
        )
        if not partitions:
            log.info("No staged flows to acquire")
            return

        budget = SkipBudget(self.name, self.skip_limit)
        stop = threading.Event()
        with ThreadPoolExecutor(
            max_workers=len(partitions), thread_name_prefix="fdr-partition"
        ) as pool:
            futures = [
                pool.submit(self._run_partition, partition, stats, budget, stop)
                for partition in partitions
            ]
            errors = [future.exception() for future in futures]

        for error in errors:
            if error is not None:
                raise error

    def _run_partition(
        self,
        partition: Partition,
        stats: StageStats,
        budget: SkipBudget,
        stop: threading.Event,
    ) -> None:
        log.info(
            "Partition %s (%s/%s) started", partition.name, partition.number, partition.total
        )
        stats.add_partition(partition.domain_code)
        for staged in self._staged_flows(partition.domain_code):
            if stop.is_set():
                return
            stats.add_partition(partition.domain_code, read=1)
            try:
                outcome = self._acquire_flow(staged)
            except Exception as exc:  # noqa: BLE001
                stats.add_partition(partition.domain_code, errors=1, skipped=1)
                try:
                    budget.consume(f"flow {staged.flow_code} of {partition.domain_code}", exc)
                except SkipLimitExceededError:
                    stop.set()
                    raise
                continue

            if outcome.written:
                stats.add_partition(partition.domain_code, written=1)
            elif outcome.reason == "reconciled":
                stats.add(skipped_in_final=1)
            else:
                stats.add_partition(partition.domain_code, errors=1)
        log.info("Partition %s finished", partition.name)

    def _staged_flows(self, domain_code: str) -> Iterator[StagingFlow]:
        after: tuple[datetime, int] | None = None
        while True:
            page = with_transaction(
                self.unit_of_work_factory,
                lambda repositories: list(
                    repositories.staging_flows.list_for_domain(
                        domain_code, after=after, limit=self.page_size
                    )
                ),
            )
            if not page:
                return
            yield from page
            last = page[-1]
            if last.id is None:
                return
            after = (last.published_at, last.id)

    def _acquire_flow(self, staged: StagingFlow) -> FlowOutcome:
        description = f"flow {staged.flow_code} (psp {staged.psp_id}, rev {staged.revision})"
        metadata = self.retry.call(
            lambda: self.source.get_flow_details(
                staged.domain_code, staged.flow_code, staged.revision, staged.psp_id
            ),
            description=f"Fetching metadata of {description}",
        )
        enriched = with_transaction(
            self.unit_of_work_factory,
            lambda repositories: _enrich(repositories, staged, metadata),
        )
        if enriched is None:
            log.info("Staged %s disappeared before enrichment", description)
            return FlowOutcome(written=False, reason="missing")

        payments = self.retry.call(
            lambda: self.source.get_payments(
                staged.domain_code, staged.flow_code, staged.revision, staged.psp_id
            ),
            description=f"Fetching payments of {description}",
        )
        return with_transaction(
            self.unit_of_work_factory,
            lambda repositories: self._write(repositories, enriched, payments),
        )

    def _write(
        self,
        repositories: AcquisitionRepositories,
        staged: StagingFlow,
        payments: Sequence[ReportedPayment],
    ) -> FlowOutcome:
        current = repositories.staging_flows.get(staged.id) if staged.id is not None else None
        if repositories.reconciled_flows.exists(staged.flow_code, staged.psp_id, staged.revision):
            log.warning("Flow %s already reconciled, dropping staged copy", staged.flow_code)
            if current is not None:
                repositories.staging_flows.delete(current)
            return FlowOutcome(written=False, reason="reconciled")

        domain = repositories.domains.get(staged.domain_code)
        if domain is None:
            raise UnknownDomainError(staged.domain_code, staged.flow_code)

        reconciler = FlowReconciler(
            payments=repositories.payments, positions=repositories.positions
        )
        reconciled = reconciler.reconcile(
            current or staged, payments, domain=domain, acquired_at=self.clock()
        )
        repositories.reconciled_flows.add(reconciled)
        if current is not None:
            repositories.staging_flows.delete(current)
        log.info(
            "Saved flow %s with %s payments and status %s",
            reconciled.flow_code,
            len(reconciled.items),
            reconciled.status,
        )
        return FlowOutcome(written=True)


def _enrich(
    repositories: AcquisitionRepositories,
    staged: StagingFlow,
    metadata: FlowMetadata,
) -> StagingFlow | None:
    if staged.id is None:
        return None
    current = repositories.staging_flows.get(staged.id)
    if current is None:
        return None
    current.apply_metadata(metadata)
    return current
