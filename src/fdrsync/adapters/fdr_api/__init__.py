"""Public interface for the FDR organization API adapter."""

from __future__ import annotations

from .client import FdrApiClient
from .schema import PaymentPayload, PaymentsPage, PayStatus, PublishedFlowsPage, SingleFlow
from .translator import outcome_for, to_flow_header, to_flow_metadata, to_reported_payment

__all__ = [
    "FdrApiClient",
    "PayStatus",
    "PaymentPayload",
    "PaymentsPage",
    "PublishedFlowsPage",
    "SingleFlow",
    "outcome_for",
    "to_flow_header",
    "to_flow_metadata",
    "to_reported_payment",
]
