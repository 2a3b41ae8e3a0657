"""
Orchestrator Agent - Runs many test cases, each on its own driver session
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional

from .base_agent import BaseAgent
from .recorder_agent import RecorderAgent
from .tracker_agent import TrackerAgent
from ..browser.controller import BrowserController
from ..browser.driver import AutomationDriver
from ..config import settings
from ..exceptions import CaseTrackerError, PersistenceError
from ..models import ExecutionRecord, TestCase


class OrchestratorAgent(BaseAgent):
    """
    Orchestrates execution of a batch of test cases:
    - One driver session and one tracker per case
    - Bounded concurrency across cases
    - Persists every case once its pass ends
    - Collects a per-case outcome
    """

    def __init__(
        self,
        max_concurrent: Optional[int] = None,
        recorder: Optional[RecorderAgent] = None,
        tracker_options: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            name="Orchestrator",
            description="Coordinates concurrent test case execution"
        )
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_CASES
        self.recorder = recorder or RecorderAgent()
        self.tracker_options = tracker_options or {}
        self.active: Dict[str, TrackerAgent] = {}
        self.cancelled = False

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Execute orchestration."""
        results = await self.run_cases(
            context.get("test_cases", []),
            context.get("driver_factory", BrowserController)
        )
        return {"results": results}

    def cancel_all(self):
        """
        Ask every running tracker to stop before its next step.
        Cases of the batch that have not started yet are skipped.
        """
        self.cancelled = True
        for case_id, tracker in list(self.active.items()):
            self.log_info(f"Cancelling {case_id}")
            tracker.cancel()

    async def run_cases(
        self,
        cases: List[TestCase],
        driver_factory: Callable[[], AutomationDriver]
    ) -> List[Dict]:
        """
        Execute all cases.

        Args:
            cases: Test cases to execute
            driver_factory: Builds a fresh driver session for each case

        Returns:
            Per-case outcomes, in the order of cases
        """
        ids = [case.id for case in cases]
        if len(set(ids)) != len(ids):
            raise ValueError("Each test case may appear only once per batch")

        self.log_info(
            f"Starting execution of {len(cases)} test cases, up to {self.max_concurrent} at a time"
        )
        self.cancelled = False
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run_one(case: TestCase) -> Dict:
            async with semaphore:
                if self.cancelled:
                    return self._skip_case(case)
                return await self._run_case(case, driver_factory)

        results = await asyncio.gather(*(run_one(case) for case in cases))
        self.log_info(f"Completed execution of {len(results)} test cases")
        return list(results)

    async def _run_case(
        self,
        case: TestCase,
        driver_factory: Callable[[], AutomationDriver]
    ) -> Dict:
        """
        Run one case on its own driver and persist it.

        Args:
            case: Test case to execute
            driver_factory: Builds the driver session

        Returns:
            Outcome dictionary
        """
        outcome = self._new_outcome(case)

        driver = driver_factory()
        tracker = TrackerAgent(driver, **self.tracker_options)
        self.active[case.id] = tracker
        try:
            try:
                await driver.start()
                await tracker.run(case)
            finally:
                await driver.stop()
        except CaseTrackerError as e:
            self.log_error(f"Test case {case.id} failed: {e}")
            outcome["error"] = str(e)
        except Exception as e:
            self.log_error(f"Driver session for {case.id} failed: {e}")
            case.add_note(f"Driver session failed: {e}")
            outcome["error"] = str(e)
        finally:
            self.active.pop(case.id, None)

        return self._finish(case, outcome)

    def _skip_case(self, case: TestCase) -> Dict:
        """Leave a case Pending because its batch was cancelled before it started."""
        self.log_warning(f"Skipping {case.id}, batch was cancelled")
        case.cancelled = True
        case.add_note("Execution cancelled before the test case started")
        return self._finish(case, self._new_outcome(case))

    def _finish(self, case: TestCase, outcome: Dict) -> Dict:
        """Persist the case and fill in its outcome."""
        try:
            outcome["record_path"] = str(self.recorder.persist(case))
        except PersistenceError as e:
            outcome["error"] = str(e)

        record = ExecutionRecord.from_case(case)
        outcome["status"] = case.status.value
        outcome["success_rate"] = record.success_rate
        return outcome

    @staticmethod
    def _new_outcome(case: TestCase) -> Dict:
        return {
            "case_id": case.id,
            "status": None,
            "success_rate": None,
            "record_path": None,
            "error": None
        }
