"""Settlement flows: upstream value objects, staging rows and reconciled records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from .enums import FlowStatus, ItemStatus

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal

    from .reference import Payment, PaymentPositionItem


class FlowKey(NamedTuple):
    """Natural key of a flow inside one creditor domain."""

    domain_code: str
    flow_code: str
    psp_id: str
    revision: int


@dataclass(slots=True, frozen=True)
class FlowHeader:
    """Minimal description of a published flow, as listed upstream."""

    flow_code: str
    psp_id: str
    revision: int
    published_at: datetime


@dataclass(slots=True, frozen=True)
class FlowMetadata:
    """Full flow header returned by the single-flow lookup."""

    flow_code: str
    revision: int
    psp_id: str
    settlement_id: str | None = None
    flow_date: datetime | None = None
    settlement_date: datetime | None = None
    declared_count: int | None = None
    declared_total: Decimal | None = None
    bic_code: str | None = None
    psp_name: str | None = None
    psp_broker_id: str | None = None
    channel_id: str | None = None
    domain_name: str | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None
    status: str | None = None


@dataclass(slots=True, frozen=True)
class ReportedPayment:
    """One payment as reported inside a flow."""

    iuv: str
    amount: Decimal
    iur: str | None = None
    item_index: int | None = None
    outcome: int | None = None
    paid_at: datetime | None = None


@dataclass(eq=False, kw_only=True)
class StagingFlow:
    """A discovered flow waiting to be enriched and reconciled.

    Rows are created from a :class:`FlowHeader` and filled in place by
    :meth:`apply_metadata`.
    """

    domain_code: str
    flow_code: str
    psp_id: str
    revision: int
    published_at: datetime
    settlement_id: str | None = None
    flow_date: datetime | None = None
    settlement_date: datetime | None = None
    declared_count: int | None = None
    declared_total: Decimal | None = None
    bic_code: str | None = None
    psp_name: str | None = None
    psp_broker_id: str | None = None
    channel_id: str | None = None
    domain_name: str | None = None
    updated_at: datetime | None = None
    upstream_status: str | None = None
    enriched: bool = False
    id: int | None = None

    @classmethod
    def from_header(cls, domain_code: str, header: FlowHeader) -> StagingFlow:
        return cls(
            domain_code=domain_code,
            flow_code=header.flow_code,
            psp_id=header.psp_id,
            revision=header.revision,
            published_at=header.published_at,
        )

    @property
    def key(self) -> FlowKey:
        return FlowKey(self.domain_code, self.flow_code, self.psp_id, self.revision)

    def apply_metadata(self, metadata: FlowMetadata) -> None:
        self.settlement_id = metadata.settlement_id
        self.flow_date = metadata.flow_date
        self.settlement_date = metadata.settlement_date
        self.declared_count = metadata.declared_count
        self.declared_total = metadata.declared_total
        self.bic_code = metadata.bic_code
        self.psp_name = metadata.psp_name
        self.psp_broker_id = metadata.psp_broker_id
        self.channel_id = metadata.channel_id
        self.domain_name = metadata.domain_name
        self.updated_at = metadata.updated_at
        self.upstream_status = metadata.status
        if metadata.published_at is not None:
            self.published_at = metadata.published_at
        self.enriched = True


@dataclass(eq=False, kw_only=True)
class ReconciliationItem:
    """A reported payment after matching against local records."""

    iuv: str
    amount: Decimal
    iur: str | None = None
    item_index: int | None = None
    outcome_code: int | None = None
    paid_at: datetime | None = None
    status: ItemStatus = ItemStatus.OK
    anomalies: str | None = None
    flow: ReconciledFlow | None = field(default=None, repr=False)
    payment: Payment | None = field(default=None, repr=False)
    position_item: PaymentPositionItem | None = field(default=None, repr=False)
    id: int | None = None

    def same_report_as(self, other: ReconciliationItem) -> bool:
        """Whether both items report the same ``(iuv, iur, item_index)`` tuple."""

        return (
            self.iuv == other.iuv
            and self.iur == other.iur
            and self.item_index == other.item_index
        )


@dataclass(eq=False, kw_only=True)
class ReconciledFlow:
    """Final, immutable record of an acquired flow and its items."""

    domain_code: str
    flow_code: str
    psp_id: str
    revision: int
    status: FlowStatus = FlowStatus.ACCEPTED
    status_description: str | None = None
    settlement_id: str | None = None
    flow_date: datetime | None = None
    settlement_date: datetime | None = None
    declared_count: int | None = None
    declared_total: Decimal | None = None
    bic_code: str | None = None
    psp_name: str | None = None
    psp_broker_id: str | None = None
    channel_id: str | None = None
    domain_name: str | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None
    acquired_at: datetime | None = None
    upstream_status: str | None = None
    items: list[ReconciliationItem] = field(default_factory=list[ReconciliationItem])
    id: int | None = None

    @classmethod
    def from_staging(cls, staged: StagingFlow, *, acquired_at: datetime) -> ReconciledFlow:
        return cls(
            domain_code=staged.domain_code,
            flow_code=staged.flow_code,
            psp_id=staged.psp_id,
            revision=staged.revision,
            settlement_id=staged.settlement_id,
            flow_date=staged.flow_date,
            settlement_date=staged.settlement_date,
            declared_count=staged.declared_count,
            declared_total=staged.declared_total,
            bic_code=staged.bic_code,
            psp_name=staged.psp_name,
            psp_broker_id=staged.psp_broker_id,
            channel_id=staged.channel_id,
            domain_name=staged.domain_name,
            published_at=staged.published_at,
            updated_at=staged.updated_at,
            acquired_at=acquired_at,
            upstream_status=staged.upstream_status,
        )

    @property
    def key(self) -> FlowKey:
        return FlowKey(self.domain_code, self.flow_code, self.psp_id, self.revision)

    def add_item(self, item: ReconciliationItem) -> ReconciliationItem:
        item.flow = self
        if item not in self.items:
            self.items.append(item)
        return item
