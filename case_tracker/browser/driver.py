"""
Automation Driver - capability interface the tracker dispatches steps to
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
import logging

from ..exceptions import SessionBusyError
from ..models import DriverResult

logger = logging.getLogger(__name__)


class AutomationDriver(ABC):
    """
    Abstract browser automation session.

    A driver session serves at most one test case at a time; trackers claim
    it for the duration of a pass through session().
    """

    def __init__(self):
        self._owner: Optional[str] = None

    @property
    def owner(self) -> Optional[str]:
        """Identifier of the case currently holding the session."""
        return self._owner

    async def start(self):
        """Start the underlying session. No-op by default."""

    async def stop(self):
        """Stop the underlying session. No-op by default."""

    @abstractmethod
    async def navigate(self, url: str) -> DriverResult:
        """Load a URL."""

    @abstractmethod
    async def click(self, selector: str) -> DriverResult:
        """Click the element matching a selector."""

    @abstractmethod
    async def type_text(self, selector: str, text: str) -> DriverResult:
        """Type text into the element matching a selector."""

    @abstractmethod
    async def discover_elements(self, scope: Optional[str] = None) -> DriverResult:
        """
        List interactive elements.

        Args:
            scope: Selector of the container to search, whole page if None

        Returns:
            Result whose selectors map logical element names to selectors
        """

    async def screenshot(self, path: str) -> Optional[str]:
        """Save a screenshot to path. Returns None when unsupported."""
        return None

    async def get_dom(self) -> Optional[str]:
        """Current page HTML. Returns None when unsupported."""
        return None

    def get_console_logs(self) -> List[Dict]:
        """Console messages captured so far."""
        return []

    def claim(self, case_id: str):
        """
        Take exclusive ownership of the session.

        Raises:
            SessionBusyError: If another case already owns it
        """
        if self._owner is not None and self._owner != case_id:
            raise SessionBusyError(self._owner, case_id)
        self._owner = case_id
        logger.debug(f"Driver session claimed by {case_id}")

    def release(self, case_id: str):
        """Give up ownership if held by case_id."""
        if self._owner == case_id:
            self._owner = None
            logger.debug(f"Driver session released by {case_id}")

    @asynccontextmanager
    async def session(self, case_id: str):
        """Hold the session for one case while the block runs."""
        self.claim(case_id)
        try:
            yield self
        finally:
            self.release(case_id)

    def __repr__(self):
        return f"<{self.__class__.__name__}(owner={self._owner!r})>"
