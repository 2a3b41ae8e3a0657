"""
Tests for rendering and persisting test case records
"""
import json

import pytest

from case_tracker.agents import RecorderAgent, TrackerAgent
from case_tracker.exceptions import PersistenceError
from case_tracker.models import CaseStatus, DriverResult

from .conftest import ScriptedDriver


async def run_case(case, outcomes=None):
    tracker = TrackerAgent(
        ScriptedDriver(outcomes or {}),
        continue_past_independent=False,
        retry_policy="fresh_pass",
        capture_artifacts=False
    )
    return await tracker.run(case)


def test_pending_case_document(recorder, login_case):
    document = recorder.render(login_case)

    assert document.startswith("# Test Case TC-LOGIN: Log in with email\n")
    assert "| Priority | High |" in document
    assert "| Status | Pending |" in document
    assert "| Source | login.txt |" in document
    assert "| Started | - |" in document
    assert "### Step 2: Click the login button \"#login\"" in document
    assert "- **Expected:** Login form opens" in document
    assert "- **Success rate:** 0/3 (0%)" in document
    assert document.endswith("None.\n")


@pytest.mark.asyncio
async def test_completed_case_shows_100_percent(recorder, loader):
    case = loader.load_steps("TC-2", ["Navigate to https://example.com", "Click #go"])
    await run_case(case)

    document = recorder.render(case)

    assert case.status == CaseStatus.COMPLETED
    assert "| Status | Completed |" in document
    assert "- **Success rate:** 2/2 (100%)" in document


@pytest.mark.asyncio
async def test_failed_case_document(recorder, login_case):
    await run_case(login_case, {("type", "#email"): DriverResult.fail("Field is disabled")})

    document = recorder.render(login_case)

    assert "| Status | Failed |" in document
    assert "- **Success rate:** 2/3 (66.7%)" in document
    assert "- **Observed:** Field is disabled" in document
    assert "  - `login_button`: `#login`" in document
    assert "1. Step 3 failed: Field is disabled" in document


@pytest.mark.asyncio
async def test_persist_is_idempotent(recorder, login_case):
    await run_case(login_case)

    first = recorder.persist(login_case).read_bytes()
    second = recorder.persist(login_case).read_bytes()

    assert first == second
    assert recorder.render(login_case) == recorder.render(login_case)


@pytest.mark.asyncio
async def test_persist_overwrites_previous_record(recorder, login_case):
    path = recorder.persist(login_case)
    assert "| Status | Pending |" in path.read_text(encoding="utf-8")

    await run_case(login_case)
    assert recorder.persist(login_case) == path
    assert "| Status | Completed |" in path.read_text(encoding="utf-8")
    assert recorder.list_records() == ["TC-LOGIN"]


@pytest.mark.asyncio
async def test_unwritable_target_raises_and_keeps_case(tmp_path, login_case):
    await run_case(login_case, {("click", "#login"): DriverResult.fail("Missing")})
    before = login_case.model_dump()

    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    recorder = RecorderAgent(records_dir=blocker)

    with pytest.raises(PersistenceError) as excinfo:
        recorder.persist(login_case)

    assert excinfo.value.path.endswith("TC-LOGIN.md")
    assert login_case.status == CaseStatus.FAILED
    assert login_case.model_dump() == before


def test_json_format(records_dir, login_case):
    recorder = RecorderAgent(records_dir=records_dir, record_format="json")

    path = recorder.persist(login_case)
    data = json.loads(path.read_text(encoding="utf-8"))

    assert path.name == "TC-LOGIN.json"
    assert data["test_case"]["id"] == "TC-LOGIN"
    assert data["test_case"]["priority"] == "High"
    assert data["summary"]["success_ratio"] == "0/3"
    assert recorder.render(login_case) == recorder.render(login_case)


def test_unknown_format_rejected(records_dir):
    with pytest.raises(ValueError):
        RecorderAgent(records_dir=records_dir, record_format="yaml")


def test_load_and_delete_record(recorder, login_case):
    assert recorder.load_record("TC-LOGIN") is None
    recorder.persist(login_case)

    assert recorder.load_record("TC-LOGIN") == recorder.render(login_case)
    assert recorder.delete_record("TC-LOGIN") is True
    assert recorder.delete_record("TC-LOGIN") is False
    assert recorder.list_records() == []


def test_record_name_is_encoded(recorder, loader):
    case = loader.load_steps("suite/TC 7", ["Click #a"])
    recorder.persist(case)

    assert recorder.record_path(case.id).name == "suite%2FTC%207.md"
    assert recorder.list_records() == ["suite/TC 7"]


def test_similar_ids_get_separate_records(recorder, loader):
    colon = loader.load_steps("TC:1", ["Click #a"])
    plain = loader.load_steps("TC1", ["Click #b"])

    assert recorder.persist(colon) != recorder.persist(plain)
    assert "### Step 1: Click #a" in recorder.load_record("TC:1")
    assert "### Step 1: Click #b" in recorder.load_record("TC1")
    assert recorder.list_records() == ["TC1", "TC:1"]

    assert recorder.delete_record("TC:1") is True
    assert recorder.load_record("TC1") is not None


def test_long_ids_sharing_a_prefix_get_separate_records(recorder, loader):
    prefix = "TC-" + "x" * 300
    first = loader.load_steps(prefix + "-1", ["Click #a"])
    second = loader.load_steps(prefix + "-2", ["Click #a"])

    assert recorder.persist(first) != recorder.persist(second)
    assert len(recorder.record_path(first.id).name) <= 210


def test_failed_write_leaves_no_temp_file(recorder, records_dir, login_case):
    # A directory in the way makes the final rename fail after the temp file is written
    (records_dir / "TC-LOGIN.md").mkdir(parents=True)

    with pytest.raises(PersistenceError):
        recorder.persist(login_case)

    assert list(records_dir.glob("*.tmp")) == []


def test_notes_appear_as_findings(recorder, login_case):
    login_case.add_note("Login button moves on hover")
    document = recorder.render(login_case)
    assert "1. Login button moves on hover" in document


@pytest.mark.asyncio
async def test_execute_persists(recorder, login_case):
    result = await recorder.execute({"test_case": login_case})
    assert result["record_path"].endswith("TC-LOGIN.md")
