"""
Tests for the HTTP service
"""
import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from case_tracker import main
from case_tracker.agents import RecorderAgent
from case_tracker.models import DriverResult

from .conftest import ScriptedDriver


LOGIN_STEPS = {
    "case_id": "TC-API",
    "title": "Log in",
    "priority": "High",
    "steps": ["Navigate to https://example.com", "Click #login => Form opens"],
}


@pytest.fixture
def service(monkeypatch, records_dir):
    monkeypatch.setattr(main, "recorder", RecorderAgent(records_dir=records_dir))
    monkeypatch.setattr(main, "driver_factory", ScriptedDriver)
    main.cases.clear()
    main.running.clear()
    yield main
    main.cases.clear()


@pytest.fixture
def client(service):
    return TestClient(service.app)


def test_load_steps_persists_record(client, records_dir):
    response = client.post("/api/cases", json=LOGIN_STEPS)

    assert response.status_code == 201
    body = response.json()
    assert body["loaded"] == 1
    assert body["test_cases"][0]["status"] == "Pending"
    assert (records_dir / "TC-API.md").exists()


def test_load_xml(client):
    xml = '<testcases><testcase id="A"><step>Click #a</step></testcase>' \
          '<testcase id="B"><step>Click #b</step></testcase></testcases>'

    response = client.post("/api/cases", json={"xml": xml})

    assert response.status_code == 201
    assert [c["id"] for c in response.json()["test_cases"]] == ["A", "B"]
    listed = client.get("/api/cases").json()["test_cases"]
    assert {c["id"] for c in listed} == {"A", "B"}


@pytest.mark.parametrize("payload", [
    {"case_id": "TC-EMPTY", "steps": []},
    {"xml": "<testcase id='X'/>"},
    {"title": "nothing to load"},
])
def test_malformed_sources_rejected(client, payload):
    response = client.post("/api/cases", json=payload)
    assert response.status_code == 422
    assert main.cases == {}


def test_execute_and_read_document(client):
    client.post("/api/cases", json=LOGIN_STEPS)

    response = client.post("/api/cases/TC-API/execute")

    assert response.status_code == 200
    body = response.json()
    assert body["test_case"]["status"] == "Completed"
    assert body["record"]["success_rate"] == 1.0
    assert body["record_path"].endswith("TC-API.md")

    document = client.get("/api/cases/TC-API/document")
    assert document.status_code == 200
    assert document.headers["content-type"].startswith("text/markdown")
    assert "- **Success rate:** 2/2 (100%)" in document.text


def test_execute_reports_failed_step(client, monkeypatch):
    monkeypatch.setattr(
        main, "driver_factory",
        lambda: ScriptedDriver({("click", "#login"): DriverResult.fail("No such element")})
    )
    client.post("/api/cases", json=LOGIN_STEPS)

    body = client.post("/api/cases/TC-API/execute").json()

    assert body["test_case"]["status"] == "Failed"
    assert body["record"]["findings"] == ["Step 2 failed: No such element"]


def test_execute_driver_failure_is_500(client, monkeypatch):
    class BrokenDriver(ScriptedDriver):
        async def start(self):
            raise RuntimeError("no browser installed")

    monkeypatch.setattr(main, "driver_factory", BrokenDriver)
    client.post("/api/cases", json=LOGIN_STEPS)

    response = client.post("/api/cases/TC-API/execute")

    assert response.status_code == 500
    assert main.running == {}
    case = client.get("/api/cases/TC-API").json()
    assert case["record"]["findings"] == ["Driver session failed: no browser installed"]


def test_unknown_case_is_404(client):
    assert client.get("/api/cases/NOPE").status_code == 404
    assert client.post("/api/cases/NOPE/execute").status_code == 404
    assert client.get("/api/cases/NOPE/document").status_code == 404


def test_cancel_requires_running_case(client):
    client.post("/api/cases", json=LOGIN_STEPS)
    assert client.post("/api/cases/TC-API/cancel").status_code == 409


@pytest.mark.asyncio
async def test_cancel_while_browser_starts(service, monkeypatch):
    class SlowStartDriver(ScriptedDriver):
        async def start(self):
            await asyncio.sleep(0.1)
            await super().start()

    monkeypatch.setattr(service, "driver_factory", SlowStartDriver)
    transport = httpx.ASGITransport(app=service.app)

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as api:
        assert (await api.post("/api/cases", json=LOGIN_STEPS)).status_code == 201

        async def cancel_soon():
            await asyncio.sleep(0.02)
            return await api.post("/api/cases/TC-API/cancel")

        executed, cancelled = await asyncio.gather(
            api.post("/api/cases/TC-API/execute"), cancel_soon()
        )

    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelling"
    case = executed.json()["test_case"]
    assert case["status"] == "InProgress"
    assert case["cancelled"] is True
    assert [s["status"] for s in case["steps"]] == ["Pending", "Pending"]
    assert service.running == {}


def test_add_note(client):
    client.post("/api/cases", json=LOGIN_STEPS)

    response = client.post("/api/cases/TC-API/notes", json={"note": "Captcha shown on login"})

    assert response.status_code == 200
    assert response.json()["record"]["findings"] == ["Captcha shown on login"]
    assert client.post("/api/cases/TC-API/notes", json={"note": "  "}).status_code == 422


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
