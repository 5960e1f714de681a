"""Ports for fetching settlement flows from the upstream platform."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from fdrsync.domain.model import FlowHeader, FlowMetadata, ReportedPayment


class FlowSourceError(RuntimeError):
    """Raised by flow sources; ``transient`` tells callers whether a retry may help."""

    def __init__(
        self,
        message: str,
        *,
        transient: bool,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


@runtime_checkable
class FlowSource(Protocol):
    """Read access to the flows published for creditor domains."""

    def list_flows(self, domain_code: str, since: datetime | None) -> Sequence[FlowHeader]:
        """Return every flow published after ``since`` (all flows when ``None``)."""
        ...

    def get_flow_details(
        self,
        domain_code: str,
        flow_code: str,
        revision: int,
        psp_id: str,
    ) -> FlowMetadata: ...

    def get_payments(
        self,
        domain_code: str,
        flow_code: str,
        revision: int,
        psp_id: str,
    ) -> Sequence[ReportedPayment]: ...


__all__ = ["FlowSource", "FlowSourceError"]
