"""
Execution Result Data Model
"""
from typing import Dict, List
from pydantic import BaseModel, Field

from .test_case import StepStatus, TestCase


class DriverResult(BaseModel):
    """Outcome of a single automation driver call."""

    success: bool
    observed: str = ""
    selectors: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def ok(cls, observed: str = "", selectors: Dict[str, str] = None) -> "DriverResult":
        return cls(success=True, observed=observed, selectors=selectors or {})

    @classmethod
    def fail(cls, observed: str) -> "DriverResult":
        return cls(success=False, observed=observed)


class ExecutionRecord(BaseModel):
    """Aggregate view of a test case, derived on every persistence write."""

    case_id: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    pending: int = 0
    success_rate: float = 0.0  # passed / total
    findings: List[str] = Field(default_factory=list)

    @classmethod
    def from_case(cls, case: TestCase) -> "ExecutionRecord":
        """
        Derive the record from the current case state.

        Args:
            case: Test case to summarize

        Returns:
            Execution record with counts, success rate and findings
        """
        total = len(case.steps)
        passed = sum(1 for s in case.steps if s.status == StepStatus.SUCCESS)
        failed = sum(1 for s in case.steps if s.status == StepStatus.FAILED)
        pending = total - passed - failed

        findings = list(case.notes)
        for step in case.steps:
            if step.status == StepStatus.FAILED:
                reason = step.observed_behavior or step.error or "no details reported"
                findings.append(f"Step {step.index} failed: {reason}")

        if pending and (failed or case.cancelled):
            findings.append(
                f"{pending} of {total} steps were not executed"
            )

        return cls(
            case_id=case.id,
            total=total,
            passed=passed,
            failed=failed,
            pending=pending,
            success_rate=passed / total if total else 0.0,
            findings=findings,
        )

    @property
    def success_ratio(self) -> str:
        """Success rate as "passed/total"."""
        return f"{self.passed}/{self.total}"

    @property
    def success_percent(self) -> str:
        """Success rate as a percentage, e.g. "66.7%" or "100%"."""
        return f"{round(self.success_rate * 100, 1):g}%"
