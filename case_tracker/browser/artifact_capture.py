"""
Artifact Capture - Captures screenshots, DOM and console logs per step
"""
import json
from pathlib import Path
from typing import Dict

from ..config import settings
from ..utils.helpers import case_file_stem
from .driver import AutomationDriver


class ArtifactCapture:
    """
    Captures and stores step artifacts for one test case:
    - Screenshots (PNG)
    - DOM snapshots (HTML)
    - Console logs (JSON)

    File names depend only on the step index, so a fresh pass overwrites
    the artifacts of the previous one.
    """

    def __init__(self, case_id: str, base_dir: Path = None):
        """
        Initialize artifact capture for a test case.

        Args:
            case_id: Test case identifier
            base_dir: Root artifacts directory. Defaults to settings.ARTIFACTS_DIR
        """
        self.case_id = case_id
        self.artifacts_dir = Path(base_dir or settings.ARTIFACTS_DIR) / case_file_stem(case_id)
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        self.artifact_index: Dict[int, Dict[str, str]] = {}

    async def capture_step(self, driver: AutomationDriver, step_index: int) -> Dict[str, str]:
        """
        Capture all artifacts the driver supports for a step.

        Args:
            driver: Driver holding the page state
            step_index: 1-based index of the step

        Returns:
            Dictionary of artifact kind -> file name relative to the case directory
        """
        prefix = f"step_{step_index:03d}"
        artifacts = {}

        screenshot_path = self.artifacts_dir / f"{prefix}_screenshot.png"
        if await driver.screenshot(str(screenshot_path)):
            artifacts["screenshot"] = screenshot_path.name

        dom = await driver.get_dom()
        if dom is not None:
            dom_path = self.artifacts_dir / f"{prefix}_dom.html"
            dom_path.write_text(dom, encoding='utf-8')
            artifacts["dom"] = dom_path.name

        console = driver.get_console_logs()
        if console:
            console_path = self.artifacts_dir / f"{prefix}_console.json"
            console_path.write_text(json.dumps(console, indent=2), encoding='utf-8')
            artifacts["console_logs"] = console_path.name

        self.artifact_index[step_index] = artifacts
        self._save_index()
        return artifacts

    def _save_index(self):
        """Save the artifact index."""
        index_path = self.artifacts_dir / "index.json"
        index_path.write_text(
            json.dumps(
                {str(k): v for k, v in sorted(self.artifact_index.items())},
                indent=2
            ),
            encoding='utf-8'
        )
