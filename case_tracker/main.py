"""
FastAPI Main Application - Case Tracker
"""
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from .config import settings
from .agents.loader_agent import LoaderAgent
from .agents.recorder_agent import RecorderAgent
from .agents.tracker_agent import TrackerAgent
from .browser.controller import BrowserController
from .browser.driver import AutomationDriver
from .exceptions import CaseTrackerError, MalformedSourceError, PersistenceError
from .models import ExecutionRecord, TestCase
from .utils.helpers import configure_logging, timestamp_now


configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    description="Loads browser test cases, executes them step by step and keeps a record per case",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Case storage (in-memory, records on disk)
cases: Dict[str, TestCase] = {}
running: Dict[str, TrackerAgent] = {}

loader = LoaderAgent()
recorder = RecorderAgent()
driver_factory: Callable[[], AutomationDriver] = BrowserController


# Request Models
class CaseLoadRequest(BaseModel):
    xml: Optional[str] = None
    case_id: Optional[str] = None
    steps: Optional[List[str]] = None
    priority: Optional[str] = None
    title: str = ""
    source: str = "api"


class NoteRequest(BaseModel):
    note: str


def _get_case(case_id: str) -> TestCase:
    if case_id not in cases:
        raise HTTPException(status_code=404, detail="Test case not found")
    return cases[case_id]


def _persist(case: TestCase) -> str:
    try:
        return str(recorder.persist(case))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))


def _case_view(case: TestCase) -> Dict:
    return {
        "test_case": case.model_dump(mode="json"),
        "record": ExecutionRecord.from_case(case).model_dump(mode="json")
    }


# API Endpoints
@app.post("/api/cases", status_code=201)
async def load_cases(request: CaseLoadRequest):
    """
    Load test cases from an XML export or a list of steps.
    Loaded cases replace earlier cases with the same id and are persisted.
    """
    try:
        if request.xml:
            loaded = loader.load_xml_many(request.xml, source=request.source)
        elif request.steps is not None:
            loaded = [loader.load_steps(
                request.case_id or "",
                request.steps,
                priority=request.priority,
                title=request.title,
                source=request.source
            )]
        else:
            raise HTTPException(status_code=422, detail="Provide either xml or steps")
    except MalformedSourceError as e:
        raise HTTPException(status_code=422, detail=str(e))

    busy = [case.id for case in loaded if case.id in running]
    if busy:
        raise HTTPException(status_code=409, detail=f"Test cases are running: {', '.join(busy)}")

    paths = []
    for case in loaded:
        cases[case.id] = case
        paths.append(_persist(case))

    return {
        "loaded": len(loaded),
        "record_paths": paths,
        "test_cases": [case.model_dump(mode="json") for case in loaded]
    }


@app.get("/api/cases")
async def list_cases():
    """List loaded test cases."""
    return {
        "test_cases": [
            {
                "id": case.id,
                "title": case.title,
                "priority": case.priority.value,
                "status": case.status.value
            }
            for case in cases.values()
        ]
    }


@app.get("/api/cases/{case_id}")
async def get_case(case_id: str):
    """Get a test case with its derived execution record."""
    return _case_view(_get_case(case_id))


@app.get("/api/cases/{case_id}/document")
async def get_document(case_id: str):
    """Get the rendered record document."""
    case = _get_case(case_id)
    media_type = "application/json" if recorder.record_format == "json" else "text/markdown"
    return PlainTextResponse(recorder.render(case), media_type=media_type)


@app.post("/api/cases/{case_id}/execute")
async def execute_case(case_id: str):
    """
    Execute a test case on a fresh driver session and persist the record.
    """
    case = _get_case(case_id)
    if case_id in running:
        raise HTTPException(status_code=409, detail="Test case is already running")

    driver = driver_factory()
    tracker = TrackerAgent(driver)
    running[case_id] = tracker
    try:
        try:
            await driver.start()
            await tracker.run(case)
        finally:
            await driver.stop()
    except CaseTrackerError as e:
        _persist(case)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        case.add_note(f"Driver session failed: {e}")
        _persist(case)
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        running.pop(case_id, None)

    view = _case_view(case)
    view["record_path"] = _persist(case)
    return view


@app.post("/api/cases/{case_id}/cancel")
async def cancel_case(case_id: str):
    """Stop a running test case before its next step."""
    _get_case(case_id)
    tracker = running.get(case_id)
    if tracker is None:
        raise HTTPException(status_code=409, detail="Test case is not running")
    tracker.cancel()
    return {"case_id": case_id, "status": "cancelling"}


@app.post("/api/cases/{case_id}/notes")
async def add_note(case_id: str, request: NoteRequest):
    """Append a finding to a test case and re-persist its record."""
    case = _get_case(case_id)
    if not request.note.strip():
        raise HTTPException(status_code=422, detail="Note is empty")
    case.add_note(request.note)
    case.updated_at = timestamp_now()
    view = _case_view(case)
    view["record_path"] = _persist(case)
    return view


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
