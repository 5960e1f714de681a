"""HTTP client for the FDR organization API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from fdrsync.adapters.http_resilience import ResilientClient
from fdrsync.domain.ports.events import (
    AcquisitionEvent,
    EventOperation,
    EventOutcome,
    EventSink,
    NullEventSink,
)
from fdrsync.domain.ports.fetching import FlowSourceError

from .schema import ErrorPayload, PaymentsPage, PublishedFlowsPage, SingleFlow
from .translator import to_flow_header, to_flow_metadata, to_reported_payment

if TYPE_CHECKING:
    from collections.abc import Callable

    from fdrsync.config.fdr_api import FdrApiConfig
    from fdrsync.config.http_resilience import ResilienceConfig
    from fdrsync.domain.model import FlowHeader, FlowMetadata, ReportedPayment

log = getLogger(__name__)

PATH_PUBLISHED_FLOWS = "/organizations/{organization_id}/fdrs"
PATH_SINGLE_FLOW = "/organizations/{organization_id}/fdrs/{fdr}/revisions/{revision}/psps/{psp_id}"
PATH_PAYMENTS = PATH_SINGLE_FLOW + "/payments"

_TRANSIENT_STATUSES = frozenset({HTTPStatus.TOO_MANY_REQUESTS})


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _is_transient_status(status_code: int) -> bool:
    return status_code >= HTTPStatus.INTERNAL_SERVER_ERROR or status_code in _TRANSIENT_STATUSES


def _is_closed_connection(exc: httpx.TransportError) -> bool:
    return "closed" in str(exc).lower()


def _app_error_code(response: httpx.Response) -> str | None:
    try:
        return ErrorPayload.model_validate_json(response.content).app_error_code
    except ValidationError:
        return None


def _as_flow_source_error(message: str, exc: Exception) -> FlowSourceError:
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        app_error_code = _app_error_code(exc.response)
        suffix = f" ({app_error_code})" if app_error_code else ""
        return FlowSourceError(
            f"{message}: HTTP {status_code}{suffix}",
            transient=_is_transient_status(status_code),
            status_code=status_code,
        )
    if isinstance(exc, httpx.TransportError):
        return FlowSourceError(f"{message}: {exc}", transient=True)
    return FlowSourceError(f"{message}: {exc}", transient=False)


@dataclass(slots=True)
class FdrApiClient:
    """Flow source backed by the settlement platform API.

    Each public call runs its own event loop so the client can be shared by
    the worker threads of the acquisition stages.
    """

    config: FdrApiConfig
    event_sink: EventSink = field(default_factory=NullEventSink)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = ResilientClient
    clock: Callable[[], datetime] = _utcnow

    @property
    def _resilience(self) -> ResilienceConfig:
        return self.config.resilience

    def list_flows(self, domain_code: str, since: datetime | None) -> list[FlowHeader]:
        return asyncio.run(self._list_flows_async(domain_code, since))

    def get_flow_details(
        self,
        domain_code: str,
        flow_code: str,
        revision: int,
        psp_id: str,
    ) -> FlowMetadata:
        return asyncio.run(self._get_flow_details_async(domain_code, flow_code, revision, psp_id))

    def get_payments(
        self,
        domain_code: str,
        flow_code: str,
        revision: int,
        psp_id: str,
    ) -> list[ReportedPayment]:
        return asyncio.run(self._get_payments_async(domain_code, flow_code, revision, psp_id))

    async def _list_flows_async(
        self, domain_code: str, since: datetime | None
    ) -> list[FlowHeader]:
        path = PATH_PUBLISHED_FLOWS.format(organization_id=domain_code)
        started_at = self.clock()
        headers: list[FlowHeader] = []
        page = 1
        try:
            async with self.client_factory(self._resilience) as client:
                while True:
                    params: dict[str, str | int] = {"page": page, "size": self.config.page_size}
                    if since is not None:
                        params["publishedGt"] = since.astimezone(UTC).isoformat()
                    try:
                        response = await client.get(path, params=params)
                    except httpx.TransportError as exc:
                        if not _is_closed_connection(exc):
                            raise
                        log.info("No flows available for domain %s (empty response)", domain_code)
                        break
                    response.raise_for_status()
                    if not response.content:
                        log.info("No flows available for domain %s (empty response)", domain_code)
                        break

                    payload = PublishedFlowsPage.model_validate(response.json())
                    headers.extend(to_flow_header(flow) for flow in payload.data)
                    log.debug(
                        "Page %s of domain %s returned %s flows",
                        page,
                        domain_code,
                        len(payload.data),
                    )
                    if payload.metadata is None or not payload.metadata.has_more:
                        break
                    page += 1
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            error = _as_flow_source_error(f"Listing flows of domain {domain_code} failed", exc)
            self._emit(
                EventOperation.GET_PUBLISHED_FLOWS,
                EventOutcome.KO,
                domain_code=domain_code,
                path=path,
                started_at=started_at,
                detail=str(error),
                status_code=error.status_code,
            )
            raise error from exc

        log.info("Retrieved %s flows for domain %s", len(headers), domain_code)
        self._emit(
            EventOperation.GET_PUBLISHED_FLOWS,
            EventOutcome.OK,
            domain_code=domain_code,
            path=path,
            started_at=started_at,
            detail=f"Retrieved {len(headers)} flows",
        )
        return headers

    async def _get_flow_details_async(
        self,
        domain_code: str,
        flow_code: str,
        revision: int,
        psp_id: str,
    ) -> FlowMetadata:
        path = PATH_SINGLE_FLOW.format(
            organization_id=domain_code, fdr=flow_code, revision=revision, psp_id=psp_id
        )
        started_at = self.clock()
        try:
            async with self.client_factory(self._resilience) as client:
                response = await client.get(path)
                response.raise_for_status()
                metadata = to_flow_metadata(
                    SingleFlow.model_validate(response.json()), psp_id=psp_id
                )
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            error = _as_flow_source_error(f"Fetching details of flow {flow_code} failed", exc)
            self._emit(
                EventOperation.GET_FLOW_DETAILS,
                EventOutcome.KO,
                domain_code=domain_code,
                path=path,
                started_at=started_at,
                flow_code=flow_code,
                psp_id=psp_id,
                detail=str(error),
                status_code=error.status_code,
            )
            raise error from exc

        self._emit(
            EventOperation.GET_FLOW_DETAILS,
            EventOutcome.OK,
            domain_code=domain_code,
            path=path,
            started_at=started_at,
            flow_code=flow_code,
            psp_id=psp_id,
            detail=f"Declared {metadata.declared_count or 0} payments",
        )
        return metadata

    async def _get_payments_async(
        self,
        domain_code: str,
        flow_code: str,
        revision: int,
        psp_id: str,
    ) -> list[ReportedPayment]:
        path = PATH_PAYMENTS.format(
            organization_id=domain_code, fdr=flow_code, revision=revision, psp_id=psp_id
        )
        started_at = self.clock()
        payments: list[ReportedPayment] = []
        page = 1
        try:
            async with self.client_factory(self._resilience) as client:
                while True:
                    response = await client.get(
                        path, params={"page": page, "size": self.config.page_size}
                    )
                    response.raise_for_status()
                    payload = PaymentsPage.model_validate(response.json())
                    payments.extend(to_reported_payment(item) for item in payload.data)
                    if payload.metadata is None or not payload.metadata.has_more:
                        break
                    page += 1
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            error = _as_flow_source_error(f"Fetching payments of flow {flow_code} failed", exc)
            self._emit(
                EventOperation.GET_PAYMENTS,
                EventOutcome.KO,
                domain_code=domain_code,
                path=path,
                started_at=started_at,
                flow_code=flow_code,
                psp_id=psp_id,
                detail=str(error),
                status_code=error.status_code,
            )
            raise error from exc

        log.info("Retrieved %s payments for flow %s", len(payments), flow_code)
        self._emit(
            EventOperation.GET_PAYMENTS,
            EventOutcome.OK,
            domain_code=domain_code,
            path=path,
            started_at=started_at,
            flow_code=flow_code,
            psp_id=psp_id,
            detail=f"Retrieved {len(payments)} payments",
        )
        return payments

    def _emit(
        self,
        operation: EventOperation,
        outcome: EventOutcome,
        *,
        domain_code: str,
        path: str,
        started_at: datetime,
        flow_code: str | None = None,
        psp_id: str | None = None,
        detail: str | None = None,
        status_code: int | None = None,
    ) -> None:
        base_url = (self._resilience.base_url or "").rstrip("/")
        self.event_sink.emit(
            AcquisitionEvent(
                operation=operation,
                outcome=outcome,
                domain_code=domain_code,
                url=f"{base_url}{path}",
                started_at=started_at,
                finished_at=self.clock(),
                flow_code=flow_code,
                psp_id=psp_id,
                detail=detail,
                status_code=status_code,
            )
        )
