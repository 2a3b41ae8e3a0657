"""Agents package"""
from .base_agent import BaseAgent
from .loader_agent import LoaderAgent
from .tracker_agent import RetryPolicy, TrackerAgent
from .recorder_agent import RecorderAgent
from .orchestrator_agent import OrchestratorAgent

__all__ = [
    "BaseAgent",
    "LoaderAgent",
    "RetryPolicy",
    "TrackerAgent",
    "RecorderAgent",
    "OrchestratorAgent"
]
