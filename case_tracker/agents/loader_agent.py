"""
Loader Agent - Normalizes XML exports and step lists into test cases
"""
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from xml.etree import ElementTree as ET

from .base_agent import BaseAgent
from ..exceptions import MalformedSourceError
from ..models import ActionType, Priority, Step, StepAction, TestCase
from ..utils.helpers import strip_markup, timestamp_now


LIST_MARKER = re.compile(r'^\s*(?:step\s*\d+\s*[:.)-]|\d+[.)]|[-*+])\s*', re.IGNORECASE)
TRUE_VALUES = ("1", "true", "yes", "y")


class LoaderAgent(BaseAgent):
    """
    Builds TestCase records from source documents:
    - Native and TestLink-style XML exports (one or many cases)
    - Flat lists of natural-language step strings
    - Files holding either of the above

    Loading is a pure transformation: it either returns complete cases with
    every step Pending or raises MalformedSourceError and returns nothing.
    """

    # "Click #login => Login form opens"
    EXPECTED_SEPARATOR = " => "

    def __init__(self):
        super().__init__(
            name="Loader",
            description="Normalizes source documents into test cases"
        )

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Load test cases from whichever source the context carries."""
        source = context.get("source", "")
        if context.get("xml"):
            cases = self.load_xml_many(context["xml"], source=source)
        elif context.get("steps") is not None:
            cases = [self.load_steps(
                context.get("case_id", ""),
                context["steps"],
                priority=context.get("priority"),
                title=context.get("title", ""),
                source=source
            )]
        elif context.get("path"):
            cases = self.load_file(context["path"])
        else:
            raise MalformedSourceError("No source document given", source or None)
        return {"test_cases": cases}

    # ==========================================
    # XML
    # ==========================================

    def load_xml(self, text: str, source: str = "") -> TestCase:
        """
        Load a document holding exactly one test case.

        Args:
            text: XML document
            source: Reference to the originating file

        Returns:
            The loaded test case
        """
        cases = self.load_xml_many(text, source)
        if len(cases) != 1:
            raise MalformedSourceError(
                f"Expected exactly one test case, found {len(cases)}", source or None
            )
        return cases[0]

    def load_xml_many(self, text: str, source: str = "") -> List[TestCase]:
        """
        Load every test case in an XML export, in document order.

        Args:
            text: XML document with a <testcase> root or a container of them
            source: Reference to the originating file

        Returns:
            Loaded test cases
        """
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise MalformedSourceError(f"Invalid XML: {e}", source or None) from e

        cases = [self._build_case(el, source) for el in root.iter("testcase")]
        if not cases:
            raise MalformedSourceError("Source contains no test cases", source or None)

        seen = set()
        for case in cases:
            if case.id in seen:
                raise MalformedSourceError(f"Duplicate test case id {case.id!r}", source or None)
            seen.add(case.id)

        self.log_info(f"Loaded {len(cases)} test case(s) from {source or 'XML text'}")
        return cases

    def _build_case(self, element: ET.Element, source: str) -> TestCase:
        case_id = (
            element.get("id")
            or self._child_text(element, "externalid")
            or element.get("internalid")
            or ""
        ).strip()
        if not case_id:
            raise MalformedSourceError("Test case has no identifier", source or None)

        title = strip_markup(
            element.get("name")
            or element.get("title")
            or self._child_text(element, "title", "summary")
        )
        priority = self._parse_priority(
            element.get("priority") or self._child_text(element, "priority", "importance"),
            source
        )

        container = element.find("steps")
        step_elements = (container if container is not None else element).findall("step")
        steps = [
            self._build_step(index, step_el, case_id, source)
            for index, step_el in enumerate(step_elements, start=1)
        ]
        return self._new_case(case_id, title, priority, source, steps)

    def _build_step(self, index: int, element: ET.Element, case_id: str, source: str) -> Step:
        command = strip_markup(
            self._child_text(element, "command", "actions", "action") or element.text or ""
        )
        if not command:
            raise MalformedSourceError(
                f"Step {index} of case {case_id!r} has no description", source or None
            )

        action = None
        action_name = element.get("action")
        if action_name:
            try:
                action_type = ActionType(action_name.strip().lower())
            except ValueError:
                raise MalformedSourceError(
                    f"Step {index} of case {case_id!r} has unknown action {action_name!r}",
                    source or None
                ) from None
            action = StepAction(
                type=action_type,
                target=element.get("target"),
                text=element.get("text"),
                element_name=element.get("name")
            )

        return Step(
            index=index,
            command=command,
            expected_result=strip_markup(
                self._child_text(element, "expected", "expectedresults", "expected_result")
            ),
            independent=element.get("independent", "").strip().lower() in TRUE_VALUES,
            action=action
        )

    @staticmethod
    def _child_text(element: ET.Element, *tags: str) -> str:
        """Text of the first non-empty child among tags."""
        for tag in tags:
            child = element.find(tag)
            if child is not None and child.text and child.text.strip():
                return child.text
        return ""

    # ==========================================
    # Step lists and files
    # ==========================================

    def load_steps(
        self,
        case_id: str,
        steps: Sequence[str],
        priority: Union[Priority, str, None] = None,
        title: str = "",
        source: str = ""
    ) -> TestCase:
        """
        Load a case from an ordered list of natural-language steps.

        Args:
            case_id: Identifier for the new case
            steps: Step strings, optionally "command => expected result"
            priority: Priority name, defaults to Normal
            title: Human-readable name
            source: Reference to the originating document

        Returns:
            The loaded test case
        """
        case_id = (case_id or "").strip()
        if not case_id:
            raise MalformedSourceError("Test case has no identifier", source or None)
        if not steps:
            raise MalformedSourceError(f"Test case {case_id!r} has no steps", source or None)

        parsed = []
        for index, raw in enumerate(steps, start=1):
            if not isinstance(raw, str) or not raw.strip():
                raise MalformedSourceError(
                    f"Step {index} of case {case_id!r} has no description", source or None
                )
            command, _, expected = raw.partition(self.EXPECTED_SEPARATOR)
            if not command.strip():
                raise MalformedSourceError(
                    f"Step {index} of case {case_id!r} has no description", source or None
                )
            parsed.append(Step(index=index, command=command.strip(), expected_result=expected.strip()))

        case = self._new_case(
            case_id, title, self._parse_priority(priority, source), source, parsed
        )
        self.log_info(f"Loaded test case {case_id} with {len(parsed)} steps")
        return case

    def load_file(self, path: Union[str, Path]) -> List[TestCase]:
        """
        Load test cases from a file.

        XML files go through the export parser. Any other file is read as
        one step per line; a leading "# heading" line becomes the title and
        the file name becomes the case id.

        Args:
            path: File to read

        Returns:
            Loaded test cases
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise MalformedSourceError(f"Cannot read source: {e}", str(path)) from e

        if path.suffix.lower() == ".xml":
            return self.load_xml_many(text, source=str(path))

        title = ""
        steps = []
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped:
                continue
            if stripped.startswith("#"):
                title = title or stripped.lstrip("#").strip()
                continue
            steps.append(LIST_MARKER.sub("", stripped, count=1))
        return [self.load_steps(path.stem, steps, title=title, source=str(path))]

    # ==========================================
    # Helpers
    # ==========================================

    def _parse_priority(self, value: Union[Priority, str, None], source: str) -> Priority:
        try:
            return Priority.parse(value)
        except ValueError as e:
            raise MalformedSourceError(str(e), source or None) from e

    @staticmethod
    def _new_case(
        case_id: str,
        title: Optional[str],
        priority: Priority,
        source: str,
        steps: List[Step]
    ) -> TestCase:
        if not steps:
            raise MalformedSourceError(f"Test case {case_id!r} has no steps", source or None)
        return TestCase(
            id=case_id,
            title=title or case_id,
            priority=priority,
            source=source,
            steps=steps,
            created_at=timestamp_now()
        )
