"""
Recorder Agent - Renders test case records and writes them to disk
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base_agent import BaseAgent
from ..config import settings
from ..exceptions import PersistenceError
from ..models import ExecutionRecord, Step, TestCase
from ..utils.helpers import case_file_stem, case_id_from_stem, format_duration


class RecorderAgent(BaseAgent):
    """
    Persists one record document per test case, addressed by case id.

    Rendering depends only on the case state, so persisting an unchanged
    case reproduces the previous document byte for byte. Writing never
    mutates the case.
    """

    FORMATS = {"markdown": ".md", "json": ".json"}

    def __init__(self, records_dir: Optional[Path] = None, record_format: Optional[str] = None):
        super().__init__(
            name="Recorder",
            description="Renders and persists test case records"
        )
        self.records_dir = Path(records_dir or settings.RECORDS_DIR)
        self.record_format = (record_format or settings.RECORD_FORMAT).lower()
        if self.record_format not in self.FORMATS:
            raise ValueError(
                f"Unknown record format {self.record_format!r}, expected one of {sorted(self.FORMATS)}"
            )

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Persist the case in the context."""
        path = self.persist(context["test_case"])
        return {"record_path": str(path)}

    def record_path(self, case_id: str) -> Path:
        """Location of the record for a case id. Each id has its own file."""
        return self.records_dir / f"{case_file_stem(case_id)}{self.FORMATS[self.record_format]}"

    def persist(self, case: TestCase) -> Path:
        """
        Render the case and write it over any earlier record.

        Args:
            case: Test case to persist

        Returns:
            Path of the written record

        Raises:
            PersistenceError: If the record cannot be written
        """
        document = self.render(case)
        path = self.record_path(case.id)
        tmp_path = path.with_name(path.name + ".tmp")

        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(document, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            self.log_error(f"Cannot write record for {case.id}: {e}")
            raise PersistenceError(
                f"Cannot write record for {case.id} to {path}: {e}", str(path)
            ) from e

        self.log_info(f"Record written: {path}")
        return path

    def load_record(self, case_id: str) -> Optional[str]:
        """Read a persisted record, None if there is none."""
        path = self.record_path(case_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def list_records(self) -> List[str]:
        """Case ids of all persisted records in the current format."""
        if not self.records_dir.is_dir():
            return []
        suffix = self.FORMATS[self.record_format]
        return sorted(case_id_from_stem(p.stem) for p in self.records_dir.glob(f"*{suffix}"))

    def delete_record(self, case_id: str) -> bool:
        """Remove a persisted record. Returns False if there was none."""
        path = self.record_path(case_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Cannot delete record {path}: {e}", str(path)) from e
        self.log_info(f"Record deleted: {path}")
        return True

    # ==========================================
    # Rendering
    # ==========================================

    def render(self, case: TestCase) -> str:
        """
        Render the current case state in the configured format.

        Args:
            case: Test case to render

        Returns:
            Complete document text
        """
        record = ExecutionRecord.from_case(case)
        if self.record_format == "json":
            return self._render_json(case, record)
        return self._render_markdown(case, record)

    def _render_json(self, case: TestCase, record: ExecutionRecord) -> str:
        document = {
            "test_case": case.model_dump(mode="json"),
            "summary": {
                "success_rate": record.success_rate,
                "success_ratio": record.success_ratio,
                "success_percent": record.success_percent,
                "passed": record.passed,
                "failed": record.failed,
                "pending": record.pending,
                "total": record.total,
                "findings": record.findings,
            },
        }
        return json.dumps(document, indent=2, sort_keys=True) + "\n"

    def _render_markdown(self, case: TestCase, record: ExecutionRecord) -> str:
        heading = f"# Test Case {case.id}"
        if case.title and case.title != case.id:
            heading += f": {case.title}"
        lines = [heading, ""]

        lines += self._metadata_block(case)
        lines += ["## Steps", ""]
        for step in case.steps:
            lines += self._step_block(step)
        lines += self._summary_block(record)

        return "\n".join(lines).rstrip("\n") + "\n"

    def _metadata_block(self, case: TestCase) -> List[str]:
        rows = [
            ("Identifier", case.id),
            ("Title", case.title),
            ("Priority", case.priority.value),
            ("Status", case.status.value),
            ("Source", case.source),
            ("Created", case.created_at),
            ("Started", case.started_at),
            ("Finished", case.ended_at),
            ("Updated", case.updated_at),
        ]
        lines = ["## Metadata", "", "| Field | Value |", "| --- | --- |"]
        lines += [f"| {name} | {self._cell(value)} |" for name, value in rows]
        return lines + [""]

    def _step_block(self, step: Step) -> List[str]:
        lines = [f"### Step {step.index}: {self._inline(step.command)}", ""]
        lines.append(f"- **Status:** {step.status.value}")
        if step.expected_result:
            lines.append(f"- **Expected:** {self._inline(step.expected_result)}")
        lines.append(f"- **Observed:** {self._inline(step.observed_behavior) or '-'}")
        if step.error:
            lines.append(f"- **Error:** {self._inline(step.error)}")
        if step.independent:
            lines.append("- **Independent:** yes")
        if step.attempts:
            lines.append(f"- **Attempts:** {step.attempts}")
        if step.duration_ms is not None:
            lines.append(f"- **Duration:** {format_duration(step.duration_ms)}")
        if step.selectors:
            lines.append("- **Selectors:**")
            lines += [f"  - `{name}`: `{selector}`" for name, selector in sorted(step.selectors.items())]
        if step.artifacts:
            lines.append("- **Artifacts:**")
            lines += [f"  - {kind}: `{name}`" for kind, name in sorted(step.artifacts.items())]
        return lines + [""]

    def _summary_block(self, record: ExecutionRecord) -> List[str]:
        lines = [
            "## Summary",
            "",
            f"- **Success rate:** {record.success_ratio} ({record.success_percent})",
            f"- **Passed:** {record.passed}",
            f"- **Failed:** {record.failed}",
            f"- **Pending:** {record.pending}",
            "",
            "### Findings",
            "",
        ]
        if record.findings:
            lines += [f"{i}. {self._inline(note)}" for i, note in enumerate(record.findings, start=1)]
        else:
            lines.append("None.")
        return lines

    @staticmethod
    def _inline(text: Optional[str]) -> str:
        """Keep free text on a single line."""
        return " ".join((text or "").split())

    @classmethod
    def _cell(cls, value: Optional[str]) -> str:
        text = cls._inline(value)
        return text.replace("|", "\\|") if text else "-"
