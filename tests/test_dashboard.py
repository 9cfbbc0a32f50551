from __future__ import annotations

import asyncio
import json
from typing import List

import pytest
from fastapi.testclient import TestClient

from datascope import dashboard
from datascope.config import Settings
from datascope.dashboard import MISSING_KEY_MESSAGE, NO_INPUT_MESSAGE, DashboardSession
from datascope.errors import UpstreamError
from datascope.key_resolver import KeyResolver
from datascope.main import create_app
from datascope.request_service import DataRequestService
from datascope.schemas import ProcessingOptions, Record


class ScriptedService:
    """Request service double whose parse() can be held open until released."""

    def __init__(self, resolver: KeyResolver) -> None:
        self.resolver = resolver
        self.gates = {}
        self.options_seen: List[ProcessingOptions] = []

    async def parse(self, raw_input: str, options=None) -> List[Record]:
        self.options_seen.append(options)
        if raw_input in self.gates:
            await self.gates[raw_input].wait()
        if raw_input == "fail":
            raise UpstreamError("model returned garbage")
        return [{"label": raw_input, "value": len(raw_input)}]

    async def generate_example(self) -> List[Record]:
        return [{"Day": "Mon", "Kind": "A", "Sales": 1}]


def test_load_example_sets_records_mapping_and_text(resolver: KeyResolver, server_settings: Settings) -> None:
    session = DashboardSession(DataRequestService(server_settings, resolver), resolver)

    assert asyncio.run(session.load_example()) is True

    assert len(session.records) == 15
    assert session.mapping.axis_key == "Transaction_Date"
    assert json.loads(session.raw_data) == session.records
    state = session.snapshot()
    assert len(state.charts) == 4
    assert state.table.headers[0] == "Transaction_Date"
    assert state.is_processing is False
    assert state.key_mode == "server"


def test_failure_keeps_previous_result(resolver: KeyResolver) -> None:
    session = DashboardSession(ScriptedService(resolver), resolver)
    asyncio.run(session.process("good"))
    previous_records, previous_mapping = session.records, session.mapping

    assert asyncio.run(session.process("fail")) is False

    assert session.records is previous_records
    assert session.mapping is previous_mapping
    assert "Failed to process data" in session.message
    assert "model returned garbage" in session.message
    assert session.is_processing is False


def test_missing_credential_message(resolver: KeyResolver, bare_settings: Settings) -> None:
    session = DashboardSession(DataRequestService(bare_settings, resolver), resolver)

    assert asyncio.run(session.process("a,b\n1,2")) is False
    assert session.message == MISSING_KEY_MESSAGE
    assert asyncio.run(session.load_example()) is False
    assert session.records == []


def test_blank_text_is_not_sent(resolver: KeyResolver) -> None:
    service = ScriptedService(resolver)
    session = DashboardSession(service, resolver)
    assert asyncio.run(session.process("   ")) is False
    assert service.options_seen == []
    assert session.message == NO_INPUT_MESSAGE


def test_options_are_passed_through(resolver: KeyResolver) -> None:
    service = ScriptedService(resolver)
    session = DashboardSession(service, resolver)
    options = ProcessingOptions(sort_data=False)
    asyncio.run(session.process("abc", options))
    assert service.options_seen == [options]
    assert session.options is options


def test_stale_result_is_discarded(resolver: KeyResolver) -> None:
    service = ScriptedService(resolver)
    session = DashboardSession(service, resolver)

    async def scenario():
        service.gates["slow"] = asyncio.Event()
        first = asyncio.create_task(session.process("slow"))
        await asyncio.sleep(0)
        assert session.is_processing is True

        second_applied = await session.process("fast")
        service.gates["slow"].set()
        first_applied = await first
        return first_applied, second_applied

    first_applied, second_applied = asyncio.run(scenario())

    assert second_applied is True
    assert first_applied is False
    assert session.records == [{"label": "fast", "value": 4}]
    assert session.is_processing is False


def test_processing_flag_tracks_latest_request(resolver: KeyResolver) -> None:
    service = ScriptedService(resolver)
    session = DashboardSession(service, resolver)

    async def scenario():
        service.gates["one"] = asyncio.Event()
        service.gates["two"] = asyncio.Event()
        first = asyncio.create_task(session.process("one"))
        second = asyncio.create_task(session.process("two"))
        await asyncio.sleep(0)
        service.gates["one"].set()
        await first
        still_busy = session.is_processing
        service.gates["two"].set()
        await second
        return still_busy

    assert asyncio.run(scenario()) is True
    assert session.is_processing is False
    assert session.records == [{"label": "two", "value": 3}]


def test_mapping_inferred_once_per_result_set(resolver: KeyResolver, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    real = dashboard.infer_mapping

    def counting(records):
        calls.append(len(records))
        return real(records)

    monkeypatch.setattr(dashboard, "infer_mapping", counting)
    session = DashboardSession(ScriptedService(resolver), resolver)

    asyncio.run(session.process("abc"))
    session.set_raw_data("edited text")
    session.set_raw_data("edited again")
    session.snapshot()
    assert calls == [1]

    asyncio.run(session.load_example())
    assert calls == [1, 1]


def test_dashboard_routes(resolver: KeyResolver, server_settings: Settings) -> None:
    service = DataRequestService(server_settings, resolver)
    client = TestClient(create_app(server_settings, service=service))

    state = client.get("/dashboard/state").json()
    assert state["records"] == []
    assert state["table"]["placeholder"]
    assert state["keyMode"] == "server"

    state = client.post("/dashboard/example").json()
    assert state["mapping"] == {
        "axisKey": "Transaction_Date",
        "metricKey": "Gross_Revenue",
        "categoryKey": "Product_Line",
    }
    assert state["isProcessing"] is False

    csv_response = client.get("/dashboard/export/csv")
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert "datascope_export.csv" in csv_response.headers["content-disposition"]
    assert csv_response.text.splitlines()[0] == "Transaction_Date,Product_Line,Sales_Channel,Units_Moved,Gross_Revenue"

    assert len(client.get("/dashboard/export/json").json()) == 15
    png = client.get("/dashboard/export/png")
    assert png.headers["content-type"] == "image/png"
    assert png.content.startswith(b"\x89PNG")
    assert client.get("/dashboard/export/xlsx").status_code == 404


def test_upload_replaces_raw_text_only(resolver: KeyResolver, server_settings: Settings) -> None:
    client = TestClient(create_app(server_settings, service=DataRequestService(server_settings, resolver)))
    client.post("/dashboard/example")

    response = client.post("/dashboard/upload", files={"file": ("data.csv", b"a,b\n1,2\n", "text/csv")})
    state = response.json()
    assert state["rawData"] == "a,b\n1,2\n"
    assert len(state["records"]) == 15

    bad = client.post("/dashboard/upload", files={"file": ("image.gif", b"GIF89a", "image/gif")})
    assert bad.status_code == 400
    assert "error" in bad.json()

    assert client.post("/dashboard/clear").json()["rawData"] == ""


def test_key_routes(resolver: KeyResolver, server_settings: Settings) -> None:
    client = TestClient(create_app(server_settings, service=DataRequestService(server_settings, resolver)))

    assert client.put("/dashboard/key", json={"key": "user-key"}).json()["keyMode"] == "local"
    assert resolver.resolve().key == "user-key"
    assert client.put("/dashboard/key", json={"key": " "}).status_code == 400
    assert client.delete("/dashboard/key").json()["keyMode"] == "server"


def test_png_export_without_data(resolver: KeyResolver, server_settings: Settings) -> None:
    client = TestClient(create_app(server_settings, service=DataRequestService(server_settings, resolver)))
    response = client.get("/dashboard/export/png")
    assert response.status_code == 400
    assert response.json() == {"error": "Not enough data to render charts"}


def test_invalid_dashboard_body_uses_error_shape(resolver: KeyResolver, server_settings: Settings) -> None:
    client = TestClient(create_app(server_settings, service=DataRequestService(server_settings, resolver)))

    response = client.put("/dashboard/key", json={})
    assert response.status_code == 422
    body = response.json()
    assert set(body) == {"error"}
    assert "key" in body["error"]

    response = client.post("/dashboard/process", json={"options": {"sortData": "not a bool"}})
    assert response.status_code == 422
    assert "sortData" in response.json()["error"]


def test_blank_process_route_reports_message(resolver: KeyResolver, server_settings: Settings) -> None:
    client = TestClient(create_app(server_settings, service=DataRequestService(server_settings, resolver)))
    state = client.post("/dashboard/process", json={"rawData": "  "}).json()
    assert state["message"] == NO_INPUT_MESSAGE
    assert state["records"] == []
