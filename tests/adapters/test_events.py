from __future__ import annotations

import json
import logging
from datetime import timedelta

import httpx
import pytest

from fdrsync.adapters.events import EVENTS_PATH, HttpEventSink, event_payload
from fdrsync.domain.ports.events import AcquisitionEvent, EventOperation, EventOutcome
from tests.helpers.fdr import BASE_TIME
from tests.helpers.http import make_client_factory


def _event(outcome: EventOutcome = EventOutcome.OK, **extra: object) -> AcquisitionEvent:
    return AcquisitionEvent(
        operation=EventOperation.GET_FLOW_DETAILS,
        outcome=outcome,
        domain_code="77777777777",
        url="https://fdr.test/v1/organizations/77777777777/fdrs/FLOW-1",
        started_at=BASE_TIME,
        finished_at=BASE_TIME + timedelta(milliseconds=250),
        **extra,  # type: ignore[arg-type]
    )


def test_event_payload_describes_the_call() -> None:
    payload = event_payload(
        _event(flow_code="FLOW-1", psp_id="PSP1", detail="Declared 2 payments"),
        cluster_id="node-a",
    )

    assert payload["idDominio"] == "77777777777"
    assert payload["tipoEvento"] == "GET_FLOW_DETAILS"
    assert payload["esito"] == "OK"
    assert payload["clusterId"] == "node-a"
    assert payload["durataEvento"] == 250
    assert payload["dataEvento"] == "2025-03-01T08:00:00.000+00:00"
    assert payload["datiPagoPA"] == {
        "idDominio": "77777777777",
        "idFlusso": "FLOW-1",
        "idPsp": "PSP1",
    }
    assert payload["parametriRisposta"] == {
        "dataOraRisposta": "2025-03-01T08:00:00.250+00:00",
        "status": 200,
    }
    assert payload["dettaglioEsito"] == "Declared 2 payments"
    assert "sottotipoEsito" not in payload


def test_failed_event_payload_carries_status() -> None:
    payload = event_payload(_event(EventOutcome.KO, status_code=503), cluster_id="node-a")

    assert payload["esito"] == "KO"
    assert payload["sottotipoEsito"] == "503"
    assert "datiPagoPA" not in payload
    assert payload["parametriRisposta"]["status"] == 503  # type: ignore[index]


def test_http_sink_posts_events() -> None:
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(201)

    sink = HttpEventSink(
        "https://events.test/api", "node-a", client_factory=make_client_factory(handler)
    )

    sink.emit(_event())
    sink.close()

    [request] = received
    assert request.method == "POST"
    assert request.url.path == f"/api{EVENTS_PATH}"
    assert json.loads(request.content)["clusterId"] == "node-a"


def test_http_sink_only_logs_delivery_failures(caplog: pytest.LogCaptureFixture) -> None:
    sink = HttpEventSink(
        "https://events.test/api",
        "node-a",
        client_factory=make_client_factory(lambda _: httpx.Response(500)),
    )

    with caplog.at_level(logging.WARNING, logger="fdrsync.adapters.events"):
        sink.emit(_event())
        sink.close()

    assert "Could not deliver GET_FLOW_DETAILS event" in caplog.text


def test_http_sink_drops_events_after_close(caplog: pytest.LogCaptureFixture) -> None:
    sink = HttpEventSink(
        "https://events.test/api",
        "node-a",
        client_factory=make_client_factory(lambda _: httpx.Response(201)),
    )
    sink.close()

    with caplog.at_level(logging.WARNING, logger="fdrsync.adapters.events"):
        sink.emit(_event())

    assert "dropping" in caplog.text
