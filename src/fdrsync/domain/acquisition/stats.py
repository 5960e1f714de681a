"""Counters collected while stages run."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fdrsync.domain.model import ExecutionStatus

if TYPE_CHECKING:
    from collections.abc import Mapping


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class PartitionStats:
    domain_code: str
    read: int = 0
    written: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass(slots=True)
class StageStats:
    """Thread-safe counters for one stage execution.

    ``skipped_in_final`` and ``skipped_in_staging`` count flows that were
    already known; ``skipped`` counts work items given up after errors.
    """

    name: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    read: int = 0
    staged: int = 0
    written: int = 0
    skipped_in_final: int = 0
    skipped_in_staging: int = 0
    skipped: int = 0
    errors: int = 0
    deleted: int = 0
    description: str | None = None
    partitions: dict[str, PartitionStats] = field(default_factory=dict[str, PartitionStats])
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, **counts: int) -> None:
        with self._lock:
            for name, value in counts.items():
                setattr(self, name, getattr(self, name) + value)

    def add_partition(self, domain_code: str, **counts: int) -> None:
        with self._lock:
            partition = self.partitions.setdefault(domain_code, PartitionStats(domain_code))
            for name, value in counts.items():
                setattr(partition, name, getattr(partition, name) + value)
                setattr(self, name, getattr(self, name) + value)

    def start(self) -> None:
        self.started_at = utcnow()
        self.status = ExecutionStatus.RUNNING

    def finish(self, status: ExecutionStatus, description: str | None = None) -> None:
        self.finished_at = utcnow()
        self.status = status
        self.description = description

    @property
    def duration_ms(self) -> int:
        if self.started_at is None or self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    @property
    def write_count(self) -> int:
        return self.staged + self.written + self.deleted

    @property
    def skip_count(self) -> int:
        return self.skipped + self.skipped_in_final + self.skipped_in_staging


@dataclass(slots=True)
class RunReport:
    run_id: str
    status: ExecutionStatus
    started_at: datetime
    finished_at: datetime | None = None
    stages: list[StageStats] = field(default_factory=list[StageStats])
    error: str | None = None

    def stage(self, name: str) -> StageStats | None:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def as_dict(self) -> Mapping[str, object]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
            "stages": {
                stage.name: {
                    "status": stage.status.value,
                    "read": stage.read,
                    "staged": stage.staged,
                    "written": stage.written,
                    "skipped_in_final": stage.skipped_in_final,
                    "skipped_in_staging": stage.skipped_in_staging,
                    "skipped": stage.skipped,
                    "errors": stage.errors,
                    "deleted": stage.deleted,
                    "duration_ms": stage.duration_ms,
                }
                for stage in self.stages
            },
        }
