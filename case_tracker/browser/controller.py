"""
Browser Controller - Playwright-based browser automation
"""
from pathlib import Path
from typing import Optional, List, Dict
from datetime import datetime

from playwright.async_api import async_playwright, Browser, Page, BrowserContext
from playwright.async_api import Error as PlaywrightError

from ..config import settings
from ..models import DriverResult
from ..utils.helpers import slugify
from .driver import AutomationDriver


DISCOVER_SCRIPT = r"""
(scope) => {
    const root = scope ? document.querySelector(scope) : document;
    if (!root) {
        return null;
    }
    const found = [];
    const nodes = root.querySelectorAll(
        'a, button, input, select, textarea, [role="button"], [role="link"], [data-testid], [onclick]'
    );
    nodes.forEach((el) => {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 && rect.height === 0) {
            return;
        }
        const tag = el.tagName.toLowerCase();
        const text = (el.textContent || '').trim().slice(0, 50);
        const testId = el.getAttribute('data-testid');
        const name = el.getAttribute('name');
        const label = el.getAttribute('aria-label') || el.getAttribute('placeholder')
            || text || name || el.id || testId || tag;

        let selector = null;
        if (el.id) {
            selector = '#' + CSS.escape(el.id);
        } else if (testId) {
            selector = `[data-testid="${testId}"]`;
        } else if (name) {
            selector = `${tag}[name="${name}"]`;
        } else if (text) {
            selector = `${tag}:has-text("${text.replace(/"/g, '\\"')}")`;
        }
        if (selector) {
            found.push({label: label.slice(0, 60), tag: tag, selector: selector});
        }
    });
    return found.slice(0, 200);
}
"""


class BrowserController(AutomationDriver):
    """
    Playwright-based automation driver.
    Handles navigation, interactions, selector discovery and state capture.
    """

    def __init__(self, headless: bool = None, timeout: int = None):
        super().__init__()
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.timeout = timeout or settings.BROWSER_TIMEOUT
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.console_logs: List[Dict] = []

    async def start(self):
        """Start the browser."""
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(headless=self.headless)
        self.context = await self.browser.new_context(
            viewport={'width': 1280, 'height': 720}
        )
        self.page = await self.context.new_page()

        # Set up console log capture
        self.page.on("console", self._handle_console)

        # Set timeout
        self.page.set_default_timeout(self.timeout)

    async def stop(self):
        """Stop the browser and clean up resources."""
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.page = None

    async def navigate(self, url: str) -> DriverResult:
        """
        Navigate to a URL.

        Args:
            url: The URL to navigate to

        Returns:
            Result describing the loaded page
        """
        page = self._require_page()
        try:
            response = await page.goto(url, wait_until="load")
        except PlaywrightError as e:
            return DriverResult.fail(f"Navigation to {url} failed: {e.message}")

        title = await page.title()
        if response is not None and not response.ok:
            return DriverResult.fail(
                f"{url} answered HTTP {response.status} (title: {title!r})"
            )
        return DriverResult.ok(f"Loaded {page.url} (title: {title!r})")

    async def click(self, selector: str) -> DriverResult:
        """
        Click an element.

        Args:
            selector: CSS selector or text selector for the element

        Returns:
            Result describing the page after the click
        """
        page = self._require_page()
        try:
            await page.click(selector)
        except PlaywrightError as e:
            return DriverResult.fail(f"Could not click {selector}: {e.message}")
        return DriverResult.ok(f"Clicked {selector}; page is {page.url}")

    async def type_text(self, selector: str, text: str) -> DriverResult:
        """
        Type text into an element.

        Args:
            selector: CSS selector for the input element
            text: Text to type

        Returns:
            Result describing the field after typing
        """
        page = self._require_page()
        try:
            await page.fill(selector, text)
            value = await page.input_value(selector)
        except PlaywrightError as e:
            return DriverResult.fail(f"Could not type into {selector}: {e.message}")
        if value != text:
            return DriverResult.fail(f"{selector} holds {value!r} after typing {text!r}")
        return DriverResult.ok(f"Typed {text!r} into {selector}")

    async def discover_elements(self, scope: Optional[str] = None) -> DriverResult:
        """
        Find interactive elements and derive a selector for each.

        Args:
            scope: Selector of the container to search, whole page if None

        Returns:
            Result with logical name -> selector mapping
        """
        page = self._require_page()
        try:
            found = await page.evaluate(DISCOVER_SCRIPT, scope)
        except PlaywrightError as e:
            return DriverResult.fail(f"Element discovery failed: {e.message}")

        if found is None:
            return DriverResult.fail(f"Scope {scope} not found on {page.url}")

        selectors: Dict[str, str] = {}
        for element in found:
            name = slugify(element["label"]) or element["tag"]
            key = name
            suffix = 2
            while key in selectors:
                key = f"{name}_{suffix}"
                suffix += 1
            selectors[key] = element["selector"]

        where = f"in {scope}" if scope else "on page"
        return DriverResult.ok(
            f"Found {len(selectors)} interactive elements {where} at {page.url}",
            selectors
        )

    async def screenshot(self, path: str) -> Optional[str]:
        """
        Take a screenshot.

        Args:
            path: Path to save the screenshot

        Returns:
            Path to the saved screenshot
        """
        page = self._require_page()
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=path)
        return path

    async def get_dom(self) -> Optional[str]:
        """
        Get the current DOM as HTML.

        Returns:
            Full page HTML
        """
        return await self._require_page().content()

    def get_console_logs(self) -> List[Dict]:
        """Get captured console logs."""
        return self.console_logs.copy()

    def _require_page(self) -> Page:
        if self.page is None:
            raise RuntimeError("Browser is not started")
        return self.page

    def _handle_console(self, message):
        """Handle console messages."""
        self.console_logs.append({
            "timestamp": datetime.now().isoformat(),
            "type": message.type,
            "text": message.text,
        })
