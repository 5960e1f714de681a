"""Stage clearing the staging area before a run."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from fdrsync.domain.ports.unit_of_work import with_transaction

if TYPE_CHECKING:
    from fdrsync.domain.ports.unit_of_work import AcquisitionRepositories, UnitOfWorkFactory

    from .stats import StageStats

log = getLogger(__name__)


@dataclass(slots=True)
class CleanupStage:
    unit_of_work_factory: UnitOfWorkFactory
    name: str = "cleanup"

    def run(self, stats: StageStats) -> None:
        def clear(repositories: AcquisitionRepositories) -> int:
            existing = repositories.staging_flows.count()
            repositories.staging_flows.delete_all()
            return existing

        deleted = with_transaction(self.unit_of_work_factory, clear)
        stats.add(deleted=deleted)
        log.info("Removed %s staged flows", deleted)
