"""
Tracker Agent - Executes test case steps through an automation driver
"""
import asyncio
import re
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from .base_agent import BaseAgent
from ..browser.artifact_capture import ArtifactCapture
from ..browser.driver import AutomationDriver
from ..config import settings
from ..exceptions import RetryNotAllowedError, StepExecutionError
from ..models import (
    ActionType,
    DriverResult,
    Step,
    StepAction,
    StepStatus,
    TestCase,
)
from ..utils.helpers import slugify, timestamp_now, truncate_text


QUOTED = re.compile(r'"([^"]+)"|\'([^\']+)\'|`([^`]+)`')
URL = re.compile(r'https?://[^\s"\'`]+')
SCOPE = re.compile(r'\b(?:in|within|inside|under)\s+(\S+)\s*$', re.IGNORECASE)
TYPE_INTO = re.compile(
    r'^(?:type|enter|input|fill\s+in)\s+(?P<text>.+?)\s+(?:into|in)\s+(?:the\s+)?(?P<target>.+)$',
    re.IGNORECASE
)
FILL_WITH = re.compile(r'^fill\s+(?:in\s+)?(?P<target>.+?)\s+with\s+(?P<text>.+)$', re.IGNORECASE)
SELECTOR_LIKE = re.compile(r'^(?:[#.\[]|[a-z][\w-]*[#.\[:]|(?:text|css|xpath|role|id)=|//)', re.IGNORECASE)
FILLER = re.compile(r'^(?:on|at|the|a|an)\s+', re.IGNORECASE)

VERBS = {
    ActionType.NAVIGATE: ("navigate", "go", "open", "visit", "load"),
    ActionType.TYPE: ("type", "enter", "input", "fill"),
    ActionType.CLICK: ("click", "press", "tap", "select", "choose"),
    ActionType.DISCOVER: ("discover", "find", "locate", "list", "inspect"),
    ActionType.VERIFY: ("verify", "check", "assert", "confirm", "ensure", "expect"),
}


class RetryPolicy(str, Enum):
    """How a failed step may be run again."""

    FRESH_PASS = "fresh_pass"
    IN_PLACE = "in_place"


class TrackerAgent(BaseAgent):
    """
    Executes one test case at a time by:
    - Interpreting each step into a driver action
    - Dispatching steps strictly in order on an exclusively held driver session
    - Recording status, observed behaviour and discovered selectors per step
    - Halting after the first failure unless the failed step is independent
      and continuing past independent steps is enabled
    """

    def __init__(
        self,
        driver: AutomationDriver,
        step_timeout: Optional[float] = None,
        continue_past_independent: Optional[bool] = None,
        retry_policy: Optional[str] = None,
        capture_artifacts: Optional[bool] = None,
        artifacts_dir=None,
        raise_on_failure: bool = False
    ):
        super().__init__(
            name="Tracker",
            description="Executes test case steps through an automation driver"
        )
        self.driver = driver
        self.step_timeout = step_timeout if step_timeout is not None else settings.STEP_TIMEOUT
        self.continue_past_independent = (
            settings.CONTINUE_PAST_INDEPENDENT
            if continue_past_independent is None else continue_past_independent
        )
        self.retry_policy = RetryPolicy(retry_policy or settings.RETRY_POLICY)
        self.capture_artifacts = (
            settings.CAPTURE_ARTIFACTS if capture_artifacts is None else capture_artifacts
        )
        self.artifacts_dir = artifacts_dir
        self.raise_on_failure = raise_on_failure
        self._cancel_event = asyncio.Event()
        self._artifacts: Optional[ArtifactCapture] = None

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Run a pass over the case in the context."""
        case = await self.run(context["test_case"])
        return {"test_case": case}

    def cancel(self):
        """
        Stop before the next step is dispatched. The running step is not interrupted.

        A cancel requested before the pass starts stops it before the first step.
        """
        self.log_info("Cancellation requested")
        self._cancel_event.set()

    async def run(self, case: TestCase) -> TestCase:
        """
        Execute a pass over the case.

        A case that has been started before is reset first, so every pass
        starts from all steps Pending.

        Args:
            case: Test case to execute

        Returns:
            The same case, updated in place
        """
        async with self.driver.session(case.id):
            if case.started_at is not None:
                self.log_info(f"Starting fresh pass for {case.id}")
                case.reset_steps()

            case.started_at = timestamp_now()
            case.updated_at = case.started_at
            case.refresh_status()
            self.log_info(f"Executing test case {case.id}: {len(case.steps)} steps")

            await self._run_steps(case)
        return case

    async def retry_step(self, case: TestCase, index: int) -> TestCase:
        """
        Re-dispatch a failed step in place, then resume the remaining steps.

        Args:
            case: Test case holding the step
            index: 1-based step index

        Returns:
            The same case, updated in place

        Raises:
            RetryNotAllowedError: If the policy is not in_place or the step is not Failed
        """
        if self.retry_policy != RetryPolicy.IN_PLACE:
            raise RetryNotAllowedError(
                f"Retry policy is {self.retry_policy.value}; run a fresh pass instead"
            )
        step = case.step(index)
        if step.status != StepStatus.FAILED:
            raise RetryNotAllowedError(
                f"Step {index} of {case.id} is {step.status.value}; only failed steps can be retried"
            )

        async with self.driver.session(case.id):
            self.log_info(f"Retrying step {index} of {case.id} in place")
            step.reset()
            case.cancelled = False
            case.ended_at = None
            case.refresh_status()
            await self._run_steps(case)
        return case

    async def _run_steps(self, case: TestCase):
        """Dispatch every Pending step in order, applying the halt policy."""
        first_error: Optional[StepExecutionError] = None

        for step in case.steps:
            if step.status != StepStatus.PENDING:
                continue

            if self._cancel_event.is_set():
                case.cancelled = True
                case.add_note(f"Execution cancelled before step {step.index}")
                self.log_warning(f"Cancelled {case.id} before step {step.index}")
                break

            error = await self._execute_step(case, step)
            case.updated_at = timestamp_now()

            if error is None:
                continue
            first_error = first_error or error
            if step.independent and self.continue_past_independent:
                self.log_info(f"Step {step.index} is independent, continuing")
                continue

            remaining = len(case.pending_steps())
            if remaining:
                self.log_info(f"Halting {case.id} after step {step.index}; {remaining} steps left Pending")
            break

        # A cancel applies to one pass only
        self._cancel_event.clear()
        case.ended_at = timestamp_now()
        case.updated_at = case.ended_at
        status = case.refresh_status()
        self.log_info(f"Test case {case.id} is {status.value}")

        if first_error is not None and self.raise_on_failure:
            raise first_error

    async def _execute_step(self, case: TestCase, step: Step) -> Optional[StepExecutionError]:
        """
        Dispatch one step and record its outcome.

        Returns:
            The error describing the failure, None when the step succeeded
        """
        step.attempts += 1
        started = time.monotonic()
        action = step.action or self._interpret_step(step)
        self.log_debug(f"Step {step.index}: {truncate_text(step.command, 80)} -> {action}")

        error: Optional[StepExecutionError] = None
        result: Optional[DriverResult] = None
        try:
            if action is None:
                raise StepExecutionError(
                    f"Cannot map step to a driver action: {step.command!r}", case.id, step.index
                )
            result = await asyncio.wait_for(self._perform_action(action), timeout=self.step_timeout)
        except asyncio.TimeoutError:
            result = DriverResult.fail(
                f"Timed out after {self.step_timeout:g}s" if self.step_timeout else "Driver call timed out"
            )
        except StepExecutionError as e:
            error = e
        except Exception as e:
            error = StepExecutionError(
                f"Driver raised {type(e).__name__}: {e}", case.id, step.index
            )
            error.__cause__ = e

        step.duration_ms = int((time.monotonic() - started) * 1000)

        if result is not None and result.success:
            step.mark_success(result.observed, self._selectors_for(action, result))
        else:
            observed = result.observed if result is not None else ""
            if error is None:
                error = StepExecutionError(
                    f"Step {step.index} failed: {observed or 'driver reported failure'}",
                    case.id, step.index
                )
            step.mark_failed(observed, str(error))
            self.log_error(f"Step {step.index} of {case.id} failed: {error}")

        if self.capture_artifacts:
            await self._capture(case, step)

        return error

    async def _perform_action(self, action: StepAction) -> DriverResult:
        """
        Perform a driver call.

        Args:
            action: Resolved step action
        """
        if action.type == ActionType.NAVIGATE:
            return await self.driver.navigate(action.target or "")
        if action.type == ActionType.CLICK:
            return await self.driver.click(action.target or "")
        if action.type == ActionType.TYPE:
            return await self.driver.type_text(action.target or "", action.text or "")

        # Discover and verify both read the page
        result = await self.driver.discover_elements(action.target)
        if action.type == ActionType.VERIFY and result.success:
            return DriverResult.ok(f"Verified: {result.observed}", result.selectors)
        return result

    def _selectors_for(self, action: StepAction, result: DriverResult) -> Dict[str, str]:
        """Selectors to record on a successful step."""
        selectors = dict(result.selectors)
        if action.type in (ActionType.CLICK, ActionType.TYPE) and action.target:
            name = action.element_name or slugify(action.target) or "element"
            selectors[name] = action.target
        return selectors

    async def _capture(self, case: TestCase, step: Step):
        try:
            if self._artifacts is None or self._artifacts.case_id != case.id:
                self._artifacts = ArtifactCapture(case.id, self.artifacts_dir)
            step.artifacts = await self._artifacts.capture_step(self.driver, step.index)
        except Exception as e:
            case.add_note(f"Artifact capture failed for step {step.index}: {e}")
            self.log_error(f"Artifact capture failed for step {step.index}: {e}")

    def _interpret_step(self, step: Step) -> Optional[StepAction]:
        """
        Interpret a natural language step into a driver action.

        Args:
            step: Step whose command to interpret

        Returns:
            Action, or None when the command maps onto no driver capability
        """
        command = step.command.strip().rstrip(".")
        words = command.split(maxsplit=1)
        if not words:
            return None
        verb = words[0].lower()
        rest = words[1] if len(words) > 1 else ""
        quoted = self._quoted(command)

        if verb in VERBS[ActionType.NAVIGATE]:
            url = URL.search(command)
            target = url.group(0).rstrip(".,;)") if url else (quoted[0] if quoted else None)
            if not target:
                return None
            return StepAction(type=ActionType.NAVIGATE, target=target)

        if verb in VERBS[ActionType.TYPE]:
            if len(quoted) >= 2 and verb != "fill":
                text, target = quoted[0], quoted[1]
            else:
                match = TYPE_INTO.match(command) or FILL_WITH.match(command)
                if not match:
                    return None
                text = self._unquote(match.group("text"))
                target = self._unquote(match.group("target"))
            return StepAction(
                type=ActionType.TYPE,
                target=self._as_selector(target),
                text=text,
                element_name=slugify(target) or None
            )

        if verb in VERBS[ActionType.CLICK]:
            label = FILLER.sub("", QUOTED.sub("", rest)).strip()
            target = quoted[0] if quoted else label
            if not target:
                return None
            if quoted and not SELECTOR_LIKE.match(target):
                # 'Click the "Sign in" button' names the element by its text
                name = slugify(target)
            else:
                name = slugify(label) or slugify(target)
            return StepAction(
                type=ActionType.CLICK,
                target=self._as_selector(target),
                element_name=name or None
            )

        if verb in VERBS[ActionType.DISCOVER] or verb in VERBS[ActionType.VERIFY]:
            action_type = (
                ActionType.DISCOVER if verb in VERBS[ActionType.DISCOVER] else ActionType.VERIFY
            )
            # Quoted text in a verify step is expected content, not a scope
            scope = quoted[0] if quoted and action_type == ActionType.DISCOVER else None
            match = SCOPE.search(command)
            if scope is None and match:
                candidate = self._unquote(match.group(1))
                if SELECTOR_LIKE.match(candidate):
                    scope = candidate
            return StepAction(type=action_type, target=scope)

        return None

    @staticmethod
    def _quoted(command: str) -> List[str]:
        return [next(g for g in m.groups() if g) for m in QUOTED.finditer(command)]

    @staticmethod
    def _unquote(text: str) -> str:
        text = text.strip()
        if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'`":
            return text[1:-1]
        return text

    @staticmethod
    def _as_selector(target: str) -> str:
        """Use the target as-is when it looks like a selector, else match by visible text."""
        if SELECTOR_LIKE.match(target):
            return target
        return f"text={target}"
