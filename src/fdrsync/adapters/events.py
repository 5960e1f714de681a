"""Event sink posting upstream call outcomes to the monitoring service."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from fdrsync.adapters.http_resilience import ResilientClient
from fdrsync.config.http_resilience import ResilienceConfig
from fdrsync.domain.ports.events import EventOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from fdrsync.domain.ports.events import AcquisitionEvent

log = getLogger(__name__)

EVENTS_PATH = "/eventi"
EVENT_CATEGORY = "INTERFACCIA"
EVENT_COMPONENT = "API_PAGOPA"
EVENT_ROLE = "CLIENT"


def event_payload(event: AcquisitionEvent, *, cluster_id: str) -> dict[str, object]:
    """JSON body describing one upstream call."""

    payload: dict[str, object] = {
        "idDominio": event.domain_code,
        "categoriaEvento": EVENT_CATEGORY,
        "componente": EVENT_COMPONENT,
        "ruolo": EVENT_ROLE,
        "tipoEvento": event.operation.value,
        "clusterId": cluster_id,
        "dataEvento": event.started_at.isoformat(timespec="milliseconds"),
        "durataEvento": event.elapsed_ms,
        "esito": event.outcome.value,
        "parametriRichiesta": {
            "url": event.url,
            "method": "GET",
            "dataOraRichiesta": event.started_at.isoformat(timespec="milliseconds"),
        },
        "parametriRisposta": {
            "dataOraRisposta": event.finished_at.isoformat(timespec="milliseconds"),
            "status": event.status_code or (200 if event.outcome is EventOutcome.OK else 500),
        },
    }
    if event.flow_code is not None or event.psp_id is not None:
        payload["datiPagoPA"] = {
            "idDominio": event.domain_code,
            "idFlusso": event.flow_code,
            "idPsp": event.psp_id,
        }
    if event.detail is not None:
        payload["dettaglioEsito"] = event.detail
    if event.status_code is not None:
        payload["sottotipoEsito"] = str(event.status_code)
    return payload


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpEventSink:
    """Post events on a single background thread; delivery errors are only logged."""

    base_url: str
    cluster_id: str
    client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory
    _executor: ThreadPoolExecutor = field(
        default_factory=lambda: ThreadPoolExecutor(max_workers=1, thread_name_prefix="fdr-events"),
        init=False,
        repr=False,
    )

    @property
    def resilience(self) -> ResilienceConfig:
        return ResilienceConfig(
            name="fdr-events",
            base_url=self.base_url,
            timeout_seconds=10.0,
        )

    def emit(self, event: AcquisitionEvent) -> None:
        payload = event_payload(event, cluster_id=self.cluster_id)
        try:
            self._executor.submit(self._deliver, payload)
        except RuntimeError:
            log.warning("Event sink closed, dropping %s event", event.operation)

    def close(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _deliver(self, payload: dict[str, object]) -> None:
        try:
            asyncio.run(self._post(payload))
        except (httpx.HTTPError, OSError) as exc:
            log.warning("Could not deliver %s event: %s", payload.get("tipoEvento"), exc)

    async def _post(self, payload: dict[str, object]) -> None:
        async with self.client_factory(self.resilience) as client:
            response = await client.post(EVENTS_PATH, json=payload)
            response.raise_for_status()
