"""Match reported payments against local records and classify anomalies.

Items are processed in the order the flow reports them. Each item is looked up
among local payments; the number of matches decides which checks apply:

* one match: compare amounts (paid amount, or revoked amount for revocations);
* no match: identifiers owned by another intermediary are left alone, ours are
  explained through the local payment position where possible;
* several matches: the item is ambiguous, which also flags the whole flow.

Duplicate reports inside the same flow are always flagged, whatever the item
status was before. Only ambiguous matches and the flow-level totals checks
make a flow anomalous; other item anomalies stay at item level.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING

from fdrsync.domain.iuv import is_internal
from fdrsync.domain.model import (
    NO_RECEIPT_OUTCOMES,
    FlowStatus,
    ItemStatus,
    PaymentOutcome,
    ReconciledFlow,
    ReconciliationItem,
)

from .anomalies import (
    ITEM_ANOMALY_MAX_LENGTH,
    Anomaly,
    ambiguous_payment,
    duplicate_in_flow,
    join_anomalies,
    multi_item_position,
    paid_amount_mismatch,
    payment_count_mismatch,
    payment_not_found,
    revoked_amount_mismatch,
    total_amount_mismatch,
    unknown_position,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from fdrsync.domain.model import CreditorDomain, Payment, ReportedPayment, StagingFlow
    from fdrsync.domain.ports.persistence import PaymentPositionRepository, PaymentRepository

log = getLogger(__name__)

DEFAULT_ITEM_INDEX = 1


@dataclass(slots=True)
class FlowReconciler:
    payments: PaymentRepository
    positions: PaymentPositionRepository

    def reconcile(
        self,
        staged: StagingFlow,
        reported: Sequence[ReportedPayment],
        *,
        domain: CreditorDomain | None,
        acquired_at: datetime,
    ) -> ReconciledFlow:
        """Build the reconciled flow for ``staged`` from its ``reported`` payments."""

        flow = ReconciledFlow.from_staging(staged, acquired_at=acquired_at)
        flow_anomalies: list[Anomaly] = []
        reported_total = Decimal(0)

        for payment in reported:
            item = self._reconcile_item(flow, payment, domain, flow_anomalies)
            flow.add_item(item)
            reported_total += payment.amount

        if flow.declared_total is not None and reported_total != flow.declared_total:
            log.info(
                "Flow %s: reported total %s differs from declared total %s",
                flow.flow_code,
                reported_total,
                flow.declared_total,
            )
            flow_anomalies.append(total_amount_mismatch(reported_total, flow.declared_total))

        if flow.declared_count is not None and len(reported) != flow.declared_count:
            log.info(
                "Flow %s: %s payments reported, %s declared",
                flow.flow_code,
                len(reported),
                flow.declared_count,
            )
            flow_anomalies.append(payment_count_mismatch(len(reported), flow.declared_count))

        if flow_anomalies:
            flow.status = FlowStatus.ANOMALOUS
            flow.status_description = join_anomalies(flow_anomalies)
        else:
            flow.status = FlowStatus.ACCEPTED
            flow.status_description = None
        return flow

    def _reconcile_item(
        self,
        flow: ReconciledFlow,
        reported: ReportedPayment,
        domain: CreditorDomain | None,
        flow_anomalies: list[Anomaly],
    ) -> ReconciliationItem:
        item = ReconciliationItem(
            iuv=reported.iuv,
            iur=reported.iur,
            item_index=reported.item_index,
            amount=reported.amount,
            outcome_code=reported.outcome,
            paid_at=reported.paid_at,
        )
        anomalies: list[Anomaly] = []

        matches = self.payments.find_all(
            flow.domain_code,
            reported.iuv,
            iur=reported.iur,
            item_index=reported.item_index,
        )
        if len(matches) == 1:
            match = matches[0]
            item.payment = match
            item.position_item = match.position_item
            anomaly = _check_amount(flow.domain_code, item, match)
            if anomaly is not None:
                anomalies.append(anomaly)
        elif not matches:
            if is_internal(domain, reported.iuv):
                anomalies.extend(self._explain_unmatched(flow.domain_code, item))
            else:
                log.info(
                    "IUV %s of domain %s belongs to another intermediary",
                    item.iuv,
                    flow.domain_code,
                )
                item.status = ItemStatus.OTHER_INTERMEDIARY
        else:
            log.info(
                "Report [%s] matches %s payments",
                _describe(flow.domain_code, item),
                len(matches),
            )
            anomaly = ambiguous_payment()
            anomalies.append(anomaly)
            flow_anomalies.append(anomaly)

        duplicate = any(prior.same_report_as(item) for prior in flow.items)
        if duplicate:
            log.info("Report [%s] is duplicated inside the flow", _describe(flow.domain_code, item))
            anomalies.append(
                duplicate_in_flow(flow.domain_code, item.iuv, item.iur, item.item_index)
            )

        item.anomalies = join_anomalies(anomalies, max_length=ITEM_ANOMALY_MAX_LENGTH)
        if duplicate or (anomalies and item.status is not ItemStatus.OTHER_INTERMEDIARY):
            item.status = ItemStatus.ANOMALOUS
        elif item.status is not ItemStatus.OTHER_INTERMEDIARY:
            item.status = ItemStatus.OK
        return item

    def _explain_unmatched(self, domain_code: str, item: ReconciliationItem) -> list[Anomaly]:
        log.info("Report [%s] has no local payment", _describe(domain_code, item))
        position = self.positions.find_by_iuv(domain_code, item.iuv)
        if position is not None:
            index = item.item_index if item.item_index is not None else DEFAULT_ITEM_INDEX
            position_item = position.item_at(index)
            if position_item is not None:
                item.position_item = position_item

        if item.outcome_code in NO_RECEIPT_OUTCOMES:
            if position is None:
                return [unknown_position()]
            if len(position.items) != 1:
                return [multi_item_position()]
            return []
        return [payment_not_found()]


def _check_amount(
    domain_code: str,
    item: ReconciliationItem,
    match: Payment,
) -> Anomaly | None:
    if item.outcome_code == PaymentOutcome.REVOKED:
        if match.revoked_amount is None:
            log.warning("Revocation [%s]: no revoked amount recorded", _describe(domain_code, item))
            return None
        if abs(item.amount) != match.revoked_amount:
            return revoked_amount_mismatch(item.amount, match.revoked_amount)
        return None

    if match.paid_amount is None:
        log.warning("Payment [%s]: no paid amount recorded", _describe(domain_code, item))
        return None
    if item.amount != match.paid_amount:
        return paid_amount_mismatch(item.amount, match.paid_amount)
    return None


def _describe(domain_code: str, item: ReconciliationItem) -> str:
    return f"Domain:{domain_code} Iuv:{item.iuv} Iur:{item.iur} Index:{item.item_index}"
