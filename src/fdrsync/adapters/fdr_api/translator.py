"""Translate FDR API payloads into domain value objects."""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING

from fdrsync.domain.model import FlowHeader, FlowMetadata, PaymentOutcome, ReportedPayment

from .schema import PayStatus

if TYPE_CHECKING:
    from .schema import PaymentPayload, PublishedFlow, SingleFlow

_OUTCOME_BY_STATUS: dict[PayStatus, PaymentOutcome] = {
    PayStatus.EXECUTED: PaymentOutcome.EXECUTED,
    PayStatus.REVOKED: PaymentOutcome.REVOKED,
    PayStatus.STAND_IN: PaymentOutcome.STAND_IN,
    PayStatus.STAND_IN_NO_RPT: PaymentOutcome.STAND_IN_NO_RECEIPT,
    PayStatus.NO_RPT: PaymentOutcome.NO_RECEIPT,
}


def _to_utc(value: datetime | None) -> datetime | None:
    return value.astimezone(UTC) if value is not None else None


def _start_of_day(value: date | None) -> datetime | None:
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=UTC)


def outcome_for(status: PayStatus | None) -> int | None:
    if status is None:
        return None
    return int(_OUTCOME_BY_STATUS[status])


def to_flow_header(payload: PublishedFlow) -> FlowHeader:
    return FlowHeader(
        flow_code=payload.fdr,
        psp_id=payload.psp_id,
        revision=payload.revision,
        published_at=payload.published.astimezone(UTC),
    )


def to_flow_metadata(payload: SingleFlow, *, psp_id: str) -> FlowMetadata:
    sender = payload.sender
    receiver = payload.receiver
    return FlowMetadata(
        flow_code=payload.fdr,
        revision=payload.revision,
        psp_id=sender.psp_id if sender is not None and sender.psp_id else psp_id,
        settlement_id=payload.regulation,
        flow_date=_to_utc(payload.fdr_date),
        settlement_date=_start_of_day(payload.regulation_date),
        declared_count=payload.tot_payments,
        declared_total=payload.sum_payments,
        bic_code=payload.bic_code_pouring_bank,
        psp_name=sender.psp_name if sender is not None else None,
        psp_broker_id=sender.psp_broker_id if sender is not None else None,
        channel_id=sender.channel_id if sender is not None else None,
        domain_name=receiver.organization_name if receiver is not None else None,
        published_at=_to_utc(payload.published),
        updated_at=_to_utc(payload.updated),
        status=payload.status,
    )


def to_reported_payment(payload: PaymentPayload) -> ReportedPayment:
    return ReportedPayment(
        iuv=payload.iuv,
        amount=payload.pay,
        iur=payload.iur,
        item_index=payload.index,
        outcome=outcome_for(payload.pay_status),
        paid_at=_to_utc(payload.pay_date),
    )
