"""Header acquisition: discover newly published flows and stage them.

A fixed pool of workers drains a FIFO of ``(domain, last publication)`` pairs.
The queue belongs to the stage instance and is rebuilt at the start of every
run, so no two workers ever receive the same domain.
"""

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, NamedTuple

from fdrsync.domain.model import StagingFlow
from fdrsync.domain.ports.unit_of_work import with_transaction

from .retry import RetrySettings, SkipBudget, SkipLimitExceededError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from fdrsync.domain.model import FlowHeader
    from fdrsync.domain.ports.fetching import FlowSource
    from fdrsync.domain.ports.unit_of_work import AcquisitionRepositories, UnitOfWorkFactory

    from .stats import StageStats

log = getLogger(__name__)


class DomainWork(NamedTuple):
    domain_code: str
    last_published_at: datetime | None


class StagingOutcome(NamedTuple):
    saved: int
    skipped_in_final: int
    skipped_in_staging: int


class DomainWorkQueue:
    """Bounded FIFO of domains, filled once and drained concurrently."""

    def __init__(self, entries: Sequence[DomainWork]) -> None:
        self._queue: queue.Queue[DomainWork] = queue.Queue(maxsize=max(len(entries), 1))
        for entry in entries:
            self._queue.put_nowait(entry)

    def next(self) -> DomainWork | None:
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()


@dataclass(slots=True)
class HeaderAcquisitionStage:
    source: FlowSource
    unit_of_work_factory: UnitOfWorkFactory
    worker_count: int = 5
    skip_limit: int = 10
    retry: RetrySettings = field(default_factory=RetrySettings)
    name: str = "header-acquisition"
    _queue: DomainWorkQueue | None = field(default=None, init=False, repr=False)

    def run(self, stats: StageStats) -> None:
        self._queue = DomainWorkQueue(self._load_domains())
        log.info("Header acquisition over %s domains", len(self._queue))

        budget = SkipBudget(self.name, self.skip_limit)
        stop = threading.Event()
        workers = max(1, min(self.worker_count, len(self._queue)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fdr-headers") as pool:
            futures = [
                pool.submit(self._drain, self._queue, stats, budget, stop) for _ in range(workers)
            ]
            errors = [future.exception() for future in futures]

        for error in errors:
            if error is not None:
                raise error

    def _load_domains(self) -> list[DomainWork]:
        def load(repositories: AcquisitionRepositories) -> list[DomainWork]:
            return [
                DomainWork(domain.domain_code, last_published)
                for domain, last_published in (
                    repositories.domains.list_enabled_with_last_publication()
                )
            ]

        return with_transaction(self.unit_of_work_factory, load)

    def _drain(
        self,
        work_queue: DomainWorkQueue,
        stats: StageStats,
        budget: SkipBudget,
        stop: threading.Event,
    ) -> None:
        while not stop.is_set():
            work = work_queue.next()
            if work is None:
                return
            stats.add(read=1)
            try:
                self._acquire_domain(work, stats)
            except Exception as exc:  # noqa: BLE001
                stats.add(errors=1, skipped=1)
                try:
                    budget.consume(f"domain {work.domain_code}", exc)
                except SkipLimitExceededError:
                    stop.set()
                    raise

    def _acquire_domain(self, work: DomainWork, stats: StageStats) -> None:
        headers = self.retry.call(
            lambda: self.source.list_flows(work.domain_code, work.last_published_at),
            description=f"Listing flows of domain {work.domain_code}",
        )
        outcome = with_transaction(
            self.unit_of_work_factory,
            lambda repositories: stage_headers(repositories, work.domain_code, headers),
        )
        stats.add(
            staged=outcome.saved,
            skipped_in_final=outcome.skipped_in_final,
            skipped_in_staging=outcome.skipped_in_staging,
        )
        log.info(
            "Domain %s: saved %s new (skipped %s duplicates)",
            work.domain_code,
            outcome.saved,
            outcome.skipped_in_final + outcome.skipped_in_staging,
        )


def stage_headers(
    repositories: AcquisitionRepositories,
    domain_code: str,
    headers: Sequence[FlowHeader],
) -> StagingOutcome:
    """Insert unseen ``headers`` into staging and advance the domain checkpoint."""

    saved = skipped_in_final = skipped_in_staging = 0
    latest: datetime | None = None
    seen: set[tuple[str, str, int]] = set()
    for header in headers:
        candidate = StagingFlow.from_header(domain_code, header)
        natural_key = (header.flow_code, header.psp_id, header.revision)
        if repositories.reconciled_flows.exists(*natural_key):
            skipped_in_final += 1
            continue
        if natural_key in seen or repositories.staging_flows.exists(candidate.key):
            skipped_in_staging += 1
            continue
        repositories.staging_flows.add(candidate)
        seen.add(natural_key)
        saved += 1
        if latest is None or header.published_at > latest:
            latest = header.published_at

    if latest is not None:
        domain = repositories.domains.get(domain_code)
        if domain is not None:
            domain.last_acquisition = latest
    return StagingOutcome(saved, skipped_in_final, skipped_in_staging)
