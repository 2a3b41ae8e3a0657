"""Models package"""
from .test_case import (
    ActionType,
    CaseStatus,
    Priority,
    Step,
    StepAction,
    StepStatus,
    TestCase,
)
from .execution_result import DriverResult, ExecutionRecord

__all__ = [
    "ActionType",
    "CaseStatus",
    "Priority",
    "Step",
    "StepAction",
    "StepStatus",
    "TestCase",
    "DriverResult",
    "ExecutionRecord",
]
