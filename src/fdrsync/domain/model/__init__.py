"""Domain model for settlement-flow acquisition and reconciliation."""

from __future__ import annotations

from .enums import (
    NO_RECEIPT_OUTCOMES,
    ActivationKind,
    ExecutionStatus,
    FlowStatus,
    ItemStatus,
    PaymentOutcome,
)
from .execution import (
    JOB_NAME,
    PARAM_ACTIVATION,
    PARAM_CLUSTER_ID,
    PARAM_JOB_ID,
    PARAM_WHEN,
    TRIGGER_MARKER_KEY,
    ExecutionRecord,
    ManualTriggerMarker,
    StepRecord,
)
from .flows import (
    FlowHeader,
    FlowKey,
    FlowMetadata,
    ReconciledFlow,
    ReconciliationItem,
    ReportedPayment,
    StagingFlow,
)
from .reference import CreditorDomain, Payment, PaymentPosition, PaymentPositionItem

__all__ = [
    "JOB_NAME",
    "NO_RECEIPT_OUTCOMES",
    "PARAM_ACTIVATION",
    "PARAM_CLUSTER_ID",
    "PARAM_JOB_ID",
    "PARAM_WHEN",
    "TRIGGER_MARKER_KEY",
    "ActivationKind",
    "CreditorDomain",
    "ExecutionRecord",
    "ExecutionStatus",
    "FlowHeader",
    "FlowKey",
    "FlowMetadata",
    "FlowStatus",
    "ItemStatus",
    "ManualTriggerMarker",
    "Payment",
    "PaymentOutcome",
    "PaymentPosition",
    "PaymentPositionItem",
    "ReconciledFlow",
    "ReconciliationItem",
    "ReportedPayment",
    "StagingFlow",
    "StepRecord",
]
