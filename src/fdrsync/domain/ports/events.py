"""Port for best-effort notification of upstream calls."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


class EventOperation(StrEnum):
    GET_PUBLISHED_FLOWS = "GET_PUBLISHED_FLOWS"
    GET_FLOW_DETAILS = "GET_FLOW_DETAILS"
    GET_PAYMENTS = "GET_PAYMENTS"


class EventOutcome(StrEnum):
    OK = "OK"
    KO = "KO"


@dataclass(slots=True, frozen=True)
class AcquisitionEvent:
    operation: EventOperation
    outcome: EventOutcome
    domain_code: str
    url: str
    started_at: datetime
    finished_at: datetime
    flow_code: str | None = None
    psp_id: str | None = None
    detail: str | None = None
    status_code: int | None = None

    @property
    def elapsed_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)


@runtime_checkable
class EventSink(Protocol):
    """Fire-and-forget receiver; implementations must never raise."""

    def emit(self, event: AcquisitionEvent) -> None: ...


class NullEventSink:
    def emit(self, event: AcquisitionEvent) -> None:
        _ = event


__all__ = [
    "AcquisitionEvent",
    "EventOperation",
    "EventOutcome",
    "EventSink",
    "NullEventSink",
]
