from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fdrsync.adapters.fdr_api import (
    PaymentPayload,
    PayStatus,
    PublishedFlowsPage,
    SingleFlow,
    outcome_for,
    to_flow_header,
    to_flow_metadata,
    to_reported_payment,
)
from fdrsync.adapters.fdr_api.schema import PageMetadata
from fdrsync.domain.model import PaymentOutcome


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (PayStatus.EXECUTED, PaymentOutcome.EXECUTED),
        (PayStatus.REVOKED, PaymentOutcome.REVOKED),
        (PayStatus.STAND_IN, PaymentOutcome.STAND_IN),
        (PayStatus.STAND_IN_NO_RPT, PaymentOutcome.STAND_IN_NO_RECEIPT),
        (PayStatus.NO_RPT, PaymentOutcome.NO_RECEIPT),
        (None, None),
    ],
)
def test_outcome_for_maps_pay_status(status: PayStatus | None, expected: int | None) -> None:
    assert outcome_for(status) == expected


def test_unknown_pay_status_is_rejected() -> None:
    with pytest.raises(ValueError, match="payStatus"):
        PaymentPayload.model_validate({"iuv": "1", "pay": 1, "payStatus": "LOST"})


@pytest.mark.parametrize(
    ("published", "expected"),
    [
        ("2025-03-01T10:00:00", datetime(2025, 3, 1, 9, 0, tzinfo=UTC)),
        ("2025-03-01T10:00:00+02:00", datetime(2025, 3, 1, 8, 0, tzinfo=UTC)),
        ("2025-03-01T10:00:00Z", datetime(2025, 3, 1, 10, 0, tzinfo=UTC)),
    ],
)
def test_flow_header_publication_is_normalised_to_utc(published: str, expected: datetime) -> None:
    page = PublishedFlowsPage.model_validate(
        {"data": [{"fdr": "FLOW-1", "pspId": "PSP1", "revision": 3, "published": published}]}
    )

    header = to_flow_header(page.data[0])

    assert header.published_at == expected
    assert header.published_at.tzinfo is UTC
    assert header.revision == 3


def test_flow_metadata_falls_back_to_requested_psp() -> None:
    payload = SingleFlow.model_validate({"fdr": "FLOW-1", "revision": 1})

    metadata = to_flow_metadata(payload, psp_id="PSP9")

    assert metadata.psp_id == "PSP9"
    assert metadata.psp_name is None
    assert metadata.settlement_date is None
    assert metadata.declared_total is None


def test_reported_payment_keeps_identifiers() -> None:
    payload = PaymentPayload.model_validate(
        {"iuv": "RF12ABC", "iur": "IUR-7", "index": 2, "pay": "4.20", "payStatus": "STAND_IN"}
    )

    payment = to_reported_payment(payload)

    assert (payment.iuv, payment.iur, payment.item_index) == ("RF12ABC", "IUR-7", 2)
    assert payment.outcome == PaymentOutcome.STAND_IN
    assert payment.paid_at is None


@pytest.mark.parametrize(
    ("number", "total", "expected"),
    [(1, 3, True), (3, 3, False), (None, 3, False), (1, None, False)],
)
def test_page_metadata_has_more(
    number: int | None,
    total: int | None,
    expected: bool,  # noqa: FBT001
) -> None:
    assert PageMetadata(pageNumber=number, totPage=total).has_more is expected
