"""Initial acquisition schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _timestamp() -> sa.DateTime:
    return sa.DateTime(timezone=True)


def _amount() -> sa.Numeric:
    return sa.Numeric(19, 2)


def _enum(*values: str) -> sa.Enum:
    return sa.Enum(*values, native_enum=False, create_constraint=False)


_EXECUTION_STATUSES = ("RUNNING", "COMPLETED", "FAILED", "ABANDONED", "UNKNOWN")


def upgrade() -> None:
    op.create_table(
        "creditor_domain",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("domain_code", sa.String(35), nullable=False),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("downloads_flows", sa.Boolean(), nullable=False),
        sa.Column("aux_digit", sa.Integer(), nullable=False),
        sa.Column("segregation_code", sa.Integer(), nullable=True),
        sa.Column("last_acquisition", _timestamp(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_creditor_domain"),
        sa.UniqueConstraint("domain_code", name="uq_creditor_domain_domain_code"),
    )
    op.create_table(
        "payment_position",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("domain_code", sa.String(35), nullable=False),
        sa.Column("iuv", sa.String(35), nullable=False),
        sa.Column("position_code", sa.String(35), nullable=True),
        sa.Column("application_code", sa.String(35), nullable=True),
        sa.Column("status", sa.String(35), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_payment_position"),
        sa.UniqueConstraint("domain_code", "iuv", name="uq_payment_position_domain_code"),
    )
    op.create_table(
        "payment_position_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("position_id", sa.Integer(), nullable=False),
        sa.Column("item_index", sa.Integer(), nullable=False),
        sa.Column("amount_due", _amount(), nullable=True),
        sa.ForeignKeyConstraint(
            ["position_id"],
            ["payment_position.id"],
            name="fk_payment_position_item_position_id_payment_position",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_payment_position_item"),
        sa.UniqueConstraint(
            "position_id", "item_index", name="uq_payment_position_item_position_id"
        ),
    )
    op.create_table(
        "payment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("domain_code", sa.String(35), nullable=False),
        sa.Column("iuv", sa.String(35), nullable=False),
        sa.Column("iur", sa.String(35), nullable=True),
        sa.Column("item_index", sa.Integer(), nullable=True),
        sa.Column("paid_amount", _amount(), nullable=True),
        sa.Column("revoked_amount", _amount(), nullable=True),
        sa.Column("paid_at", _timestamp(), nullable=True),
        sa.Column("position_item_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["position_item_id"],
            ["payment_position_item.id"],
            name="fk_payment_position_item_id_payment_position_item",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_payment"),
    )
    op.create_index("ix_payment_domain_iuv", "payment", ["domain_code", "iuv"])

    op.create_table(
        "staging_flow",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("domain_code", sa.String(35), nullable=False),
        sa.Column("flow_code", sa.String(35), nullable=False),
        sa.Column("psp_id", sa.String(35), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("published_at", _timestamp(), nullable=False),
        sa.Column("settlement_id", sa.String(35), nullable=True),
        sa.Column("flow_date", _timestamp(), nullable=True),
        sa.Column("settlement_date", _timestamp(), nullable=True),
        sa.Column("declared_count", sa.Integer(), nullable=True),
        sa.Column("declared_total", _amount(), nullable=True),
        sa.Column("bic_code", sa.String(35), nullable=True),
        sa.Column("psp_name", sa.String(255), nullable=True),
        sa.Column("psp_broker_id", sa.String(35), nullable=True),
        sa.Column("channel_id", sa.String(35), nullable=True),
        sa.Column("domain_name", sa.String(255), nullable=True),
        sa.Column("updated_at", _timestamp(), nullable=True),
        sa.Column("upstream_status", sa.String(35), nullable=True),
        sa.Column("enriched", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_staging_flow"),
        sa.UniqueConstraint(
            "domain_code",
            "flow_code",
            "psp_id",
            "revision",
            name="uq_staging_flow_domain_code",
        ),
    )
    op.create_index(
        "ix_staging_flow_domain_published",
        "staging_flow",
        ["domain_code", "published_at", "id"],
    )

    op.create_table(
        "reconciled_flow",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("domain_code", sa.String(35), nullable=False),
        sa.Column("flow_code", sa.String(35), nullable=False),
        sa.Column("psp_id", sa.String(35), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("status", _enum("ACCEPTED", "ANOMALOUS"), nullable=False),
        sa.Column("status_description", sa.Text(), nullable=True),
        sa.Column("settlement_id", sa.String(35), nullable=True),
        sa.Column("flow_date", _timestamp(), nullable=True),
        sa.Column("settlement_date", _timestamp(), nullable=True),
        sa.Column("declared_count", sa.Integer(), nullable=True),
        sa.Column("declared_total", _amount(), nullable=True),
        sa.Column("bic_code", sa.String(35), nullable=True),
        sa.Column("psp_name", sa.String(255), nullable=True),
        sa.Column("psp_broker_id", sa.String(35), nullable=True),
        sa.Column("channel_id", sa.String(35), nullable=True),
        sa.Column("domain_name", sa.String(255), nullable=True),
        sa.Column("published_at", _timestamp(), nullable=True),
        sa.Column("updated_at", _timestamp(), nullable=True),
        sa.Column("acquired_at", _timestamp(), nullable=True),
        sa.Column("upstream_status", sa.String(35), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_reconciled_flow"),
        sa.UniqueConstraint(
            "flow_code", "psp_id", "revision", name="uq_reconciled_flow_flow_code"
        ),
    )
    op.create_index(
        "ix_reconciled_flow_domain_published",
        "reconciled_flow",
        ["domain_code", "published_at"],
    )

    op.create_table(
        "reconciliation_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("flow_id", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        sa.Column("position_item_id", sa.Integer(), nullable=True),
        sa.Column("iuv", sa.String(35), nullable=False),
        sa.Column("iur", sa.String(35), nullable=True),
        sa.Column("item_index", sa.Integer(), nullable=True),
        sa.Column("amount", _amount(), nullable=False),
        sa.Column("outcome_code", sa.Integer(), nullable=True),
        sa.Column("paid_at", _timestamp(), nullable=True),
        sa.Column(
            "status", _enum("OK", "ANOMALOUS", "OTHER_INTERMEDIARY"), nullable=False
        ),
        sa.Column("anomalies", sa.String(512), nullable=True),
        sa.ForeignKeyConstraint(
            ["flow_id"],
            ["reconciled_flow.id"],
            name="fk_reconciliation_item_flow_id_reconciled_flow",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["payment_id"],
            ["payment.id"],
            name="fk_reconciliation_item_payment_id_payment",
        ),
        sa.ForeignKeyConstraint(
            ["position_item_id"],
            ["payment_position_item.id"],
            name="fk_reconciliation_item_position_item_id_payment_position_item",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_reconciliation_item"),
    )

    op.create_table(
        "execution_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_name", sa.String(100), nullable=False),
        sa.Column("owner_node", sa.String(255), nullable=False),
        sa.Column("status", _enum(*_EXECUTION_STATUSES), nullable=False),
        sa.Column("activation", _enum("scheduled", "manual"), nullable=False),
        sa.Column("start_time", _timestamp(), nullable=True),
        sa.Column("end_time", _timestamp(), nullable=True),
        sa.Column("last_updated", _timestamp(), nullable=True),
        sa.Column("exit_description", sa.Text(), nullable=True),
        sa.Column("parameters", sa.JSON(), nullable=False),
        sa.Column("lock_token", sa.String(100), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_execution_record"),
        sa.UniqueConstraint("lock_token", name="uq_execution_record_lock_token"),
    )
    op.create_index(
        "ix_execution_record_job_start",
        "execution_record",
        ["job_name", "start_time"],
    )

    op.create_table(
        "step_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("execution_id", sa.Integer(), nullable=False),
        sa.Column("step_name", sa.String(100), nullable=False),
        sa.Column("status", _enum(*_EXECUTION_STATUSES), nullable=False),
        sa.Column("start_time", _timestamp(), nullable=True),
        sa.Column("end_time", _timestamp(), nullable=True),
        sa.Column("read_count", sa.Integer(), nullable=False),
        sa.Column("write_count", sa.Integer(), nullable=False),
        sa.Column("skip_count", sa.Integer(), nullable=False),
        sa.Column("error_count", sa.Integer(), nullable=False),
        sa.Column("exit_description", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["execution_id"],
            ["execution_record.id"],
            name="fk_step_record_execution_id_execution_record",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_step_record"),
    )

    op.create_table(
        "manual_trigger_marker",
        sa.Column("job_key", sa.String(50), nullable=False),
        sa.Column("last_updated", _timestamp(), nullable=True),
        sa.Column("started_at", _timestamp(), nullable=True),
        sa.Column("owner_node", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("job_key", name="pk_manual_trigger_marker"),
    )


def downgrade() -> None:
    op.drop_table("manual_trigger_marker")
    op.drop_table("step_record")
    op.drop_index("ix_execution_record_job_start", table_name="execution_record")
    op.drop_table("execution_record")
    op.drop_table("reconciliation_item")
    op.drop_index("ix_reconciled_flow_domain_published", table_name="reconciled_flow")
    op.drop_table("reconciled_flow")
    op.drop_index("ix_staging_flow_domain_published", table_name="staging_flow")
    op.drop_table("staging_flow")
    op.drop_index("ix_payment_domain_iuv", table_name="payment")
    op.drop_table("payment")
    op.drop_table("payment_position_item")
    op.drop_table("payment_position")
    op.drop_table("creditor_domain")
