"""Anomaly codes attached to reconciled flows and items."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

ANOMALY_SEPARATOR: Final[str] = "|"
ITEM_ANOMALY_MAX_LENGTH: Final[int] = 512


class AnomalyCode(StrEnum):
    PAYMENT_NOT_FOUND = "007101"
    AMBIGUOUS_PAYMENT = "007102"
    PAID_AMOUNT_MISMATCH = "007104"
    TOTAL_AMOUNT_MISMATCH = "007106"
    PAYMENT_COUNT_MISMATCH = "007107"
    UNKNOWN_POSITION = "007111"
    REVOKED_AMOUNT_MISMATCH = "007112"
    MULTI_ITEM_POSITION = "007114"
    DUPLICATE_IN_FLOW = "007115"


@dataclass(slots=True, frozen=True)
class Anomaly:
    code: AnomalyCode
    message: str

    def __str__(self) -> str:
        return f"{self.code}#{self.message}"


def join_anomalies(anomalies: Iterable[Anomaly], *, max_length: int | None = None) -> str | None:
    text = ANOMALY_SEPARATOR.join(str(anomaly) for anomaly in anomalies)
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        return text[:max_length]
    return text


def payment_not_found() -> Anomaly:
    return Anomaly(
        AnomalyCode.PAYMENT_NOT_FOUND,
        "The payment referenced by the report is not present locally.",
    )


def ambiguous_payment() -> Anomaly:
    return Anomaly(
        AnomalyCode.AMBIGUOUS_PAYMENT,
        "The report references more than one managed payment.",
    )


def paid_amount_mismatch(reported: object, paid: object) -> Anomaly:
    return Anomaly(
        AnomalyCode.PAID_AMOUNT_MISMATCH,
        f"Reported amount [{reported}] does not match the paid amount [{paid}]",
    )


def revoked_amount_mismatch(reported: object, revoked: object) -> Anomaly:
    return Anomaly(
        AnomalyCode.REVOKED_AMOUNT_MISMATCH,
        f"Reported amount [{reported}] does not match the revoked amount [{revoked}]",
    )


def unknown_position() -> Anomaly:
    return Anomaly(AnomalyCode.UNKNOWN_POSITION, "The payment position is unknown")


def multi_item_position() -> Anomaly:
    return Anomaly(
        AnomalyCode.MULTI_ITEM_POSITION,
        "The payment position holds more than one item",
    )


def duplicate_in_flow(domain_code: str, iuv: str, iur: str | None, index: int | None) -> Anomaly:
    return Anomaly(
        AnomalyCode.DUPLICATE_IN_FLOW,
        f"Report [Domain:{domain_code} Iuv:{iuv} Iur:{iur} Index:{index}] is duplicated "
        "inside the flow; manual intervention required.",
    )


def total_amount_mismatch(reported: object, declared: object) -> Anomaly:
    return Anomaly(
        AnomalyCode.TOTAL_AMOUNT_MISMATCH,
        f"Sum of reported amounts [{reported}] does not match the flow total [{declared}]",
    )


def payment_count_mismatch(reported: int, declared: int) -> Anomaly:
    return Anomaly(
        AnomalyCode.PAYMENT_COUNT_MISMATCH,
        f"Number of reported payments [{reported}] does not match the flow count [{declared}]",
    )
