"""
Shared fixtures: a scripted automation driver and agents writing to tmp_path
"""
import asyncio
from pathlib import Path
from typing import Dict, Optional

import pytest

from case_tracker.agents import LoaderAgent, RecorderAgent
from case_tracker.browser import AutomationDriver
from case_tracker.models import DriverResult


DISCOVERED = {"login_button": "#login", "email": "#email"}


class ScriptedDriver(AutomationDriver):
    """
    Fake driver answering from a script.

    outcomes maps (method, target) to a DriverResult, an exception to raise,
    or a callable returning either. Unscripted calls succeed.
    """

    def __init__(self, outcomes: Optional[Dict] = None, delay: float = 0.0):
        super().__init__()
        self.outcomes = outcomes if outcomes is not None else {}
        self.delay = delay
        self.calls = []
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    async def _answer(self, method: str, target, default: DriverResult) -> DriverResult:
        self.calls.append((method, target))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.get((method, target), default)
        if callable(outcome):
            outcome = outcome()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def navigate(self, url):
        return await self._answer("navigate", url, DriverResult.ok(f"Loaded {url}"))

    async def click(self, selector):
        return await self._answer("click", selector, DriverResult.ok(f"Clicked {selector}"))

    async def type_text(self, selector, text):
        return await self._answer("type", selector, DriverResult.ok(f"Typed {text!r} into {selector}"))

    async def discover_elements(self, scope=None):
        return await self._answer(
            "discover", scope, DriverResult.ok("Found 2 interactive elements", dict(DISCOVERED))
        )

    async def screenshot(self, path):
        Path(path).write_bytes(b"\x89PNG")
        return path

    async def get_dom(self):
        return "<html><body><button id='login'>Log in</button></body></html>"


@pytest.fixture
def driver():
    return ScriptedDriver()


@pytest.fixture
def loader():
    return LoaderAgent()


@pytest.fixture
def records_dir(tmp_path):
    return tmp_path / "records"


@pytest.fixture
def recorder(records_dir):
    return RecorderAgent(records_dir=records_dir)


@pytest.fixture
def login_case(loader):
    """Three steps: navigate, click, type."""
    return loader.load_steps(
        "TC-LOGIN",
        [
            "Navigate to https://example.com/login",
            'Click the login button "#login" => Login form opens',
            'Type "bob@example.com" into "#email"',
        ],
        priority="High",
        title="Log in with email",
        source="login.txt"
    )
