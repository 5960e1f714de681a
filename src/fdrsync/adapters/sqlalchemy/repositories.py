"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, delete, func, or_, select

from fdrsync.adapters.sqlalchemy.mappings import (
    creditor_domain_table,
    execution_record_table,
    payment_position_table,
    payment_table,
    reconciled_flow_table,
    staging_flow_table,
)
from fdrsync.domain.model import (
    CreditorDomain,
    ExecutionRecord,
    ExecutionStatus,
    ManualTriggerMarker,
    Payment,
    PaymentPosition,
    ReconciledFlow,
    StagingFlow,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy import CursorResult
    from sqlalchemy.orm import Session

    from fdrsync.domain.model import FlowKey

_TERMINAL_STATUSES = (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class SqlAlchemyCreditorDomainRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CreditorDomain) -> None:
        self.session.add(entity)

    def get(self, domain_code: str) -> CreditorDomain | None:
        stmt = select(CreditorDomain).where(creditor_domain_table.c.domain_code == domain_code)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_enabled_with_last_publication(
        self,
    ) -> Sequence[tuple[CreditorDomain, datetime | None]]:
        last_publication = (
            select(
                reconciled_flow_table.c.domain_code,
                func.max(reconciled_flow_table.c.published_at).label("last_published"),
            )
            .group_by(reconciled_flow_table.c.domain_code)
            .subquery()
        )
        stmt = (
            select(CreditorDomain, last_publication.c.last_published)
            .outerjoin(
                last_publication,
                last_publication.c.domain_code == creditor_domain_table.c.domain_code,
            )
            .where(creditor_domain_table.c.downloads_flows.is_(True))
            .order_by(creditor_domain_table.c.domain_code)
        )
        return [(domain, last_published) for domain, last_published in self.session.execute(stmt)]


class SqlAlchemyStagingFlowRepository:
    """Staging rows, paged per domain in publication order."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: StagingFlow) -> None:
        self.session.add(entity)

    def get(self, staging_id: int) -> StagingFlow | None:
        return self.session.get(StagingFlow, staging_id)

    def exists(self, key: FlowKey) -> bool:
        stmt = (
            select(staging_flow_table.c.id)
            .where(staging_flow_table.c.domain_code == key.domain_code)
            .where(staging_flow_table.c.flow_code == key.flow_code)
            .where(staging_flow_table.c.psp_id == key.psp_id)
            .where(staging_flow_table.c.revision == key.revision)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def count(self) -> int:
        stmt = select(func.count()).select_from(staging_flow_table)
        return self.session.execute(stmt).scalar_one()

    def delete(self, flow: StagingFlow) -> None:
        self.session.delete(flow)

    def delete_all(self) -> int:
        result = cast("CursorResult[Any]", self.session.execute(delete(StagingFlow)))
        return result.rowcount

    def list_domain_codes(self) -> Sequence[str]:
        stmt = (
            select(staging_flow_table.c.domain_code)
            .distinct()
            .order_by(staging_flow_table.c.domain_code)
        )
        return list(self.session.execute(stmt).scalars())

    def list_for_domain(
        self,
        domain_code: str,
        *,
        after: tuple[datetime, int] | None = None,
        limit: int = 100,
    ) -> Sequence[StagingFlow]:
        published_at = staging_flow_table.c.published_at
        row_id = staging_flow_table.c.id
        stmt = select(StagingFlow).where(staging_flow_table.c.domain_code == domain_code)
        if after is not None:
            last_published, last_id = after
            stmt = stmt.where(
                or_(
                    published_at > last_published,
                    and_(published_at == last_published, row_id > last_id),
                )
            )
        stmt = stmt.order_by(published_at, row_id).limit(limit)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyReconciledFlowRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ReconciledFlow) -> None:
        self.session.add(entity)

    def exists(self, flow_code: str, psp_id: str, revision: int) -> bool:
        stmt = (
            select(reconciled_flow_table.c.id)
            .where(reconciled_flow_table.c.flow_code == flow_code)
            .where(reconciled_flow_table.c.psp_id == psp_id)
            .where(reconciled_flow_table.c.revision == revision)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def get(self, flow_code: str, psp_id: str, revision: int) -> ReconciledFlow | None:
        stmt = (
            select(ReconciledFlow)
            .where(reconciled_flow_table.c.flow_code == flow_code)
            .where(reconciled_flow_table.c.psp_id == psp_id)
            .where(reconciled_flow_table.c.revision == revision)
        )
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyPaymentRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Payment) -> None:
        self.session.add(entity)

    def find_all(
        self,
        domain_code: str,
        iuv: str,
        *,
        iur: str | None = None,
        item_index: int | None = None,
    ) -> Sequence[Payment]:
        stmt = (
            select(Payment)
            .where(payment_table.c.domain_code == domain_code)
            .where(payment_table.c.iuv == iuv)
        )
        if iur is not None:
            stmt = stmt.where(payment_table.c.iur == iur)
        if item_index is not None:
            stmt = stmt.where(payment_table.c.item_index == item_index)
        return list(self.session.execute(stmt.order_by(payment_table.c.id)).scalars())


class SqlAlchemyPaymentPositionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: PaymentPosition) -> None:
        self.session.add(entity)

    def find_by_iuv(self, domain_code: str, iuv: str) -> PaymentPosition | None:
        stmt = (
            select(PaymentPosition)
            .where(payment_position_table.c.domain_code == domain_code)
            .where(payment_position_table.c.iuv == iuv)
        )
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyExecutionRepository:
    """Execution records; a live record has no end time and a non-terminal status."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ExecutionRecord) -> None:
        self.session.add(entity)

    def get(self, execution_id: int) -> ExecutionRecord | None:
        return self.session.get(ExecutionRecord, execution_id)

    def find_live(self, job_name: str) -> ExecutionRecord | None:
        stmt = (
            select(ExecutionRecord)
            .where(execution_record_table.c.job_name == job_name)
            .where(execution_record_table.c.end_time.is_(None))
            .where(execution_record_table.c.status.not_in(_TERMINAL_STATUSES))
            .order_by(
                execution_record_table.c.start_time.desc(),
                execution_record_table.c.id.desc(),
            )
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def latest(self, job_name: str) -> ExecutionRecord | None:
        stmt = (
            select(ExecutionRecord)
            .where(execution_record_table.c.job_name == job_name)
            .order_by(
                execution_record_table.c.start_time.desc(),
                execution_record_table.c.id.desc(),
            )
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyTriggerMarkerRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ManualTriggerMarker) -> None:
        self.session.add(entity)

    def get(self, job_key: str) -> ManualTriggerMarker | None:
        return self.session.get(ManualTriggerMarker, job_key)


if TYPE_CHECKING:
    from fdrsync.domain.ports.persistence import (
        CreditorDomainRepository,
        ExecutionRepository,
        PaymentPositionRepository,
        PaymentRepository,
        ReconciledFlowRepository,
        StagingFlowRepository,
        TriggerMarkerRepository,
    )

    def _check_protocols(session: Session) -> None:
        _domains: CreditorDomainRepository = SqlAlchemyCreditorDomainRepository(session)
        _staging: StagingFlowRepository = SqlAlchemyStagingFlowRepository(session)
        _reconciled: ReconciledFlowRepository = SqlAlchemyReconciledFlowRepository(session)
        _payments: PaymentRepository = SqlAlchemyPaymentRepository(session)
        _positions: PaymentPositionRepository = SqlAlchemyPaymentPositionRepository(session)
        _executions: ExecutionRepository = SqlAlchemyExecutionRepository(session)
        _markers: TriggerMarkerRepository = SqlAlchemyTriggerMarkerRepository(session)
