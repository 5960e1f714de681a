"""SQLAlchemy mapping metadata for the acquisition domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import relationship

from fdrsync.domain.model import (
    ActivationKind,
    CreditorDomain,
    ExecutionRecord,
    ExecutionStatus,
    FlowStatus,
    ItemStatus,
    ManualTriggerMarker,
    Payment,
    PaymentPosition,
    PaymentPositionItem,
    ReconciledFlow,
    ReconciliationItem,
    StagingFlow,
    StepRecord,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def Amount() -> Numeric:  # noqa: N802
    return Numeric(19, 2, asdecimal=True)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Reference data --------------------------------------------------------------

creditor_domain_table = Table(
    "creditor_domain",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_code", String(35), nullable=False, unique=True),
    Column("business_name", String(255), nullable=True),
    Column("downloads_flows", Boolean, nullable=False, default=True),
    Column("aux_digit", Integer, nullable=False, default=0),
    Column("segregation_code", Integer, nullable=True),
    Column("last_acquisition", UTCDateTime(), nullable=True),
)

payment_position_table = Table(
    "payment_position",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_code", String(35), nullable=False),
    Column("iuv", String(35), nullable=False),
    Column("position_code", String(35), nullable=True),
    Column("application_code", String(35), nullable=True),
    Column("status", String(35), nullable=True),
    UniqueConstraint("domain_code", "iuv"),
)

payment_position_item_table = Table(
    "payment_position_item",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "position_id",
        Integer,
        ForeignKey("payment_position.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("item_index", Integer, nullable=False),
    Column("amount_due", Amount(), nullable=True),
    UniqueConstraint("position_id", "item_index"),
)

payment_table = Table(
    "payment",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_code", String(35), nullable=False),
    Column("iuv", String(35), nullable=False),
    Column("iur", String(35), nullable=True),
    Column("item_index", Integer, nullable=True),
    Column("paid_amount", Amount(), nullable=True),
    Column("revoked_amount", Amount(), nullable=True),
    Column("paid_at", UTCDateTime(), nullable=True),
    Column("position_item_id", Integer, ForeignKey("payment_position_item.id"), nullable=True),
    Index("ix_payment_domain_iuv", "domain_code", "iuv"),
)

# Flows -----------------------------------------------------------------------

staging_flow_table = Table(
    "staging_flow",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_code", String(35), nullable=False),
    Column("flow_code", String(35), nullable=False),
    Column("psp_id", String(35), nullable=False),
    Column("revision", Integer, nullable=False),
    Column("published_at", UTCDateTime(), nullable=False),
    Column("settlement_id", String(35), nullable=True),
    Column("flow_date", UTCDateTime(), nullable=True),
    Column("settlement_date", UTCDateTime(), nullable=True),
    Column("declared_count", Integer, nullable=True),
    Column("declared_total", Amount(), nullable=True),
    Column("bic_code", String(35), nullable=True),
    Column("psp_name", String(255), nullable=True),
    Column("psp_broker_id", String(35), nullable=True),
    Column("channel_id", String(35), nullable=True),
    Column("domain_name", String(255), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("upstream_status", String(35), nullable=True),
    Column("enriched", Boolean, nullable=False, default=False),
    UniqueConstraint("domain_code", "flow_code", "psp_id", "revision"),
    Index("ix_staging_flow_domain_published", "domain_code", "published_at", "id"),
)

reconciled_flow_table = Table(
    "reconciled_flow",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("domain_code", String(35), nullable=False),
    Column("flow_code", String(35), nullable=False),
    Column("psp_id", String(35), nullable=False),
    Column("revision", Integer, nullable=False),
    Column("status", Enum(FlowStatus, native_enum=False), nullable=False),
    Column("status_description", Text, nullable=True),
    Column("settlement_id", String(35), nullable=True),
    Column("flow_date", UTCDateTime(), nullable=True),
    Column("settlement_date", UTCDateTime(), nullable=True),
    Column("declared_count", Integer, nullable=True),
    Column("declared_total", Amount(), nullable=True),
    Column("bic_code", String(35), nullable=True),
    Column("psp_name", String(255), nullable=True),
    Column("psp_broker_id", String(35), nullable=True),
    Column("channel_id", String(35), nullable=True),
    Column("domain_name", String(255), nullable=True),
    Column("published_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("acquired_at", UTCDateTime(), nullable=True),
    Column("upstream_status", String(35), nullable=True),
    UniqueConstraint("flow_code", "psp_id", "revision"),
    Index("ix_reconciled_flow_domain_published", "domain_code", "published_at"),
)

reconciliation_item_table = Table(
    "reconciliation_item",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "flow_id",
        Integer,
        ForeignKey("reconciled_flow.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("payment_id", Integer, ForeignKey("payment.id"), nullable=True),
    Column("position_item_id", Integer, ForeignKey("payment_position_item.id"), nullable=True),
    Column("iuv", String(35), nullable=False),
    Column("iur", String(35), nullable=True),
    Column("item_index", Integer, nullable=True),
    Column("amount", Amount(), nullable=False),
    Column("outcome_code", Integer, nullable=True),
    Column("paid_at", UTCDateTime(), nullable=True),
    Column("status", Enum(ItemStatus, native_enum=False), nullable=False),
    Column("anomalies", String(512), nullable=True),
)

# Coordination ----------------------------------------------------------------

execution_record_table = Table(
    "execution_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("job_name", String(100), nullable=False),
    Column("owner_node", String(255), nullable=False),
    Column("status", Enum(ExecutionStatus, native_enum=False), nullable=False),
    Column("activation", Enum(ActivationKind, native_enum=False), nullable=False),
    Column("start_time", UTCDateTime(), nullable=True),
    Column("end_time", UTCDateTime(), nullable=True),
    Column("last_updated", UTCDateTime(), nullable=True),
    Column("exit_description", Text, nullable=True),
    Column("parameters", JSON, nullable=False, default=dict),
    Column("lock_token", String(100), nullable=True, unique=True),
    Index("ix_execution_record_job_start", "job_name", "start_time"),
)

step_record_table = Table(
    "step_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "execution_id",
        Integer,
        ForeignKey("execution_record.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("step_name", String(100), nullable=False),
    Column("status", Enum(ExecutionStatus, native_enum=False), nullable=False),
    Column("start_time", UTCDateTime(), nullable=True),
    Column("end_time", UTCDateTime(), nullable=True),
    Column("read_count", Integer, nullable=False, default=0),
    Column("write_count", Integer, nullable=False, default=0),
    Column("skip_count", Integer, nullable=False, default=0),
    Column("error_count", Integer, nullable=False, default=0),
    Column("exit_description", Text, nullable=True),
)

manual_trigger_marker_table = Table(
    "manual_trigger_marker",
    mapper_registry.metadata,
    Column("job_key", String(50), primary_key=True),
    Column("last_updated", UTCDateTime(), nullable=True),
    Column("started_at", UTCDateTime(), nullable=True),
    Column("owner_node", String(255), nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(CreditorDomain, creditor_domain_table)

    mapper_registry.map_imperatively(
        PaymentPosition,
        payment_position_table,
        properties={
            "items": relationship(
                PaymentPositionItem,
                back_populates="position",
                cascade="all, delete-orphan",
                order_by=payment_position_item_table.c.item_index,
            ),
        },
    )

    mapper_registry.map_imperatively(
        PaymentPositionItem,
        payment_position_item_table,
        properties={
            "position": relationship(PaymentPosition, back_populates="items"),
        },
    )

    mapper_registry.map_imperatively(
        Payment,
        payment_table,
        properties={
            "position_item": relationship(PaymentPositionItem),
        },
    )

    mapper_registry.map_imperatively(StagingFlow, staging_flow_table)

    mapper_registry.map_imperatively(
        ReconciledFlow,
        reconciled_flow_table,
        properties={
            "items": relationship(
                ReconciliationItem,
                back_populates="flow",
                cascade="all, delete-orphan",
                order_by=reconciliation_item_table.c.id,
            ),
        },
    )

    mapper_registry.map_imperatively(
        ReconciliationItem,
        reconciliation_item_table,
        properties={
            "flow": relationship(ReconciledFlow, back_populates="items"),
            "payment": relationship(Payment),
            "position_item": relationship(PaymentPositionItem),
        },
    )

    mapper_registry.map_imperatively(
        ExecutionRecord,
        execution_record_table,
        properties={
            "steps": relationship(
                StepRecord,
                back_populates="execution",
                cascade="all, delete-orphan",
                order_by=step_record_table.c.id,
            ),
        },
    )

    mapper_registry.map_imperatively(
        StepRecord,
        step_record_table,
        properties={
            "execution": relationship(ExecutionRecord, back_populates="steps"),
        },
    )

    mapper_registry.map_imperatively(ManualTriggerMarker, manual_trigger_marker_table)

    orm.configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
