"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class FlowStatus(StrEnum):
    ACCEPTED = "ACCEPTED"
    ANOMALOUS = "ANOMALOUS"


class ItemStatus(StrEnum):
    OK = "OK"
    ANOMALOUS = "ANOMALOUS"
    OTHER_INTERMEDIARY = "OTHER_INTERMEDIARY"


class ExecutionStatus(StrEnum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"
    UNKNOWN = "UNKNOWN"

    @property
    def is_terminal(self) -> bool:
        return self in {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}


class ActivationKind(StrEnum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class PaymentOutcome(IntEnum):
    """Outcome codes reported for each payment of a flow, as stored locally."""

    EXECUTED = 0
    REVOKED = 3
    STAND_IN = 4
    STAND_IN_NO_RECEIPT = 8
    NO_RECEIPT = 9


NO_RECEIPT_OUTCOMES: frozenset[int] = frozenset(
    {PaymentOutcome.NO_RECEIPT, PaymentOutcome.STAND_IN_NO_RECEIPT}
)
