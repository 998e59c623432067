"""Thin wrapper around a single Playwright page.

Everything the scraper does to the browser goes through ``BrowserDriver``.
Queries return ``ElementSnapshot`` objects: a live handle plus the tag, text
and attributes captured at query time, so decisions about *which* element to
use can be made by plain functions (see ``locate``) and tested without a
browser.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from playwright.async_api import async_playwright

from sysco_scrape.config import ScraperConfig
from sysco_scrape.exceptions import DriverInitError
from sysco_scrape.logging_config import get_logger

__all__ = [
    "ElementSnapshot",
    "BrowserDriver",
    "locate",
    "SNAPSHOT_SCRIPT",
]

logger = get_logger("driver")

SNAPSHOT_SCRIPT = """
el => {
    const attributes = {};
    for (const attr of Array.from(el.attributes)) {
        attributes[attr.name] = attr.value;
    }
    if (el.disabled === true && !('disabled' in attributes)) {
        attributes['disabled'] = '';
    }
    const text = (el.textContent || '').trim() || (el.value || '').trim()
        || el.getAttribute('aria-label') || '';
    return {tag: el.tagName.toLowerCase(), text: text, attributes: attributes};
}
"""

ANCESTORS_SCRIPT = """
el => {
    const chain = [];
    let node = el;
    while (node && node !== document.body && node !== document.documentElement) {
        chain.push(node);
        node = node.parentElement;
    }
    return chain;
}
"""


@dataclass
class ElementSnapshot:
    """An element handle with the state captured when it was queried."""

    handle: Any
    tag: str
    text: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def classes(self) -> List[str]:
        return self.attributes.get("class", "").split()

    def get(self, name: str, default: str = "") -> str:
        return self.attributes.get(name, default)

    @property
    def is_disabled(self) -> bool:
        """Disabled attribute, aria-disabled="true" or a disabled/inactive class."""
        if "disabled" in self.attributes:
            return True
        if self.attributes.get("aria-disabled", "").lower() == "true":
            return True
        return "disabled" in self.classes or "inactive" in self.classes

    @property
    def is_interactive(self) -> bool:
        """Buttons, links and elements carrying a click handler or button role."""
        if self.tag in ("button", "a"):
            return True
        if "onclick" in self.attributes:
            return True
        return self.attributes.get("role", "") in ("button", "link")


def locate(
    candidates: Iterable[ElementSnapshot],
    predicate: Callable[[ElementSnapshot], bool],
) -> Optional[ElementSnapshot]:
    """Return the first candidate (in DOM order) matching ``predicate``."""
    for candidate in candidates:
        if predicate(candidate):
            return candidate
    return None


class BrowserDriver:
    """Owns the Playwright runtime, browser, context and the one page.

    Create with ``await BrowserDriver.launch(config)``; release with
    ``await driver.close()``.
    """

    def __init__(self, page, context=None, browser=None, playwright=None):
        self.page = page
        self._context = context
        self._browser = browser
        self._playwright = playwright
        self._closed = False

    @classmethod
    async def launch(cls, config: ScraperConfig) -> "BrowserDriver":
        """Start Chromium with the configured viewport, user agent and args."""
        playwright = None
        browser = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(
                headless=config.headless,
                args=config.browser_args,
            )
            context = await browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
                user_agent=config.user_agent,
            )
            page = await context.new_page()
        except Exception as e:
            if browser is not None:
                await browser.close()
            if playwright is not None:
                await playwright.stop()
            raise DriverInitError(f"Could not launch browser: {e}") from e

        logger.info(
            f"Browser initialized (headless={config.headless}, "
            f"viewport={config.viewport_width}x{config.viewport_height})"
        )
        return cls(page, context, browser, playwright)

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, wait_until: str = "networkidle", timeout: float = 30.0) -> None:
        await self.page.goto(url, wait_until=wait_until, timeout=timeout * 1000)

    async def wait_for_selector(self, selector: str, timeout: float = 10.0) -> None:
        """Wait until ``selector`` is attached; raises on timeout."""
        await self.page.wait_for_selector(selector, timeout=timeout * 1000)

    async def wait_for_navigation(self, from_url: str, timeout: float = 10.0) -> None:
        """Wait until the page has left ``from_url`` and the network is idle.

        Returns at once if the navigation already happened; raises on timeout.
        """
        await self.page.wait_for_url(
            lambda url: url != from_url,
            wait_until="networkidle",
            timeout=timeout * 1000,
        )

    async def content(self) -> str:
        return await self.page.content()

    async def scroll_to_top(self) -> None:
        await self.page.evaluate("() => window.scrollTo(0, 0)")

    async def _snapshot(self, handle) -> ElementSnapshot:
        data = await handle.evaluate(SNAPSHOT_SCRIPT)
        return ElementSnapshot(
            handle=handle,
            tag=data.get("tag", ""),
            text=data.get("text", ""),
            attributes=data.get("attributes", {}),
        )

    async def query_one(self, selector: str) -> Optional[ElementSnapshot]:
        handle = await self.page.query_selector(selector)
        if handle is None:
            return None
        return await self._snapshot(handle)

    async def query_all(self, selector: str) -> List[ElementSnapshot]:
        handles = await self.page.query_selector_all(selector)
        return [await self._snapshot(handle) for handle in handles]

    async def ancestors(self, element: ElementSnapshot) -> List[ElementSnapshot]:
        """The element followed by its parents, stopping before <body>."""
        array_handle = await element.handle.evaluate_handle(ANCESTORS_SCRIPT)
        try:
            properties = await array_handle.get_properties()
            chain = []
            for index in sorted(properties, key=int):
                node = properties[index].as_element()
                if node is not None:
                    chain.append(await self._snapshot(node))
            return chain
        finally:
            await array_handle.dispose()

    async def click(self, element: ElementSnapshot, dispatch_fallback: bool = False) -> None:
        """Scroll into view and click; optionally fall back to a synthetic click."""
        try:
            await element.handle.scroll_into_view_if_needed()
            await element.handle.click()
        except Exception as e:
            if not dispatch_fallback:
                raise
            logger.debug(f"Direct click failed ({e}), dispatching click event")
            await element.handle.dispatch_event("click")

    async def type_text(self, element: ElementSnapshot, text: str) -> None:
        await element.handle.click()
        await element.handle.type(text)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
        logger.info("Browser closed")
