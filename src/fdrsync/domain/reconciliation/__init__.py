"""Reconciliation of reported payments against the local ledger."""

from __future__ import annotations

from .anomalies import Anomaly, AnomalyCode, join_anomalies
from .engine import FlowReconciler

__all__ = ["Anomaly", "AnomalyCode", "FlowReconciler", "join_anomalies"]
