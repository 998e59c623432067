"""High-level scraping workflows.

``run_scraper`` drives one complete run: launch the browser, enter the shop
as a guest, set the delivery ZIP, then walk every configured category in
order. The browser is always closed before the function returns or raises.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sysco_scrape.config import ScraperConfig, load_config
from sysco_scrape.csv_utils import export_to_csv
from sysco_scrape.db import init_db
from sysco_scrape.driver import BrowserDriver
from sysco_scrape.exceptions import DriverInitError, StructuralError
from sysco_scrape.html_utils import find_submit_button
from sysco_scrape.logging_config import get_logger, log_scrape_event
from sysco_scrape.scraper import scrape_category
from sysco_scrape.session import ScrapeSession, SessionState

__all__ = [
    "ScrapeSummary",
    "initialize_browser",
    "authenticate_as_guest",
    "handle_location_modal",
    "scrape_all_categories",
    "finalize_session",
    "run_scraper",
]

logger = get_logger("workflows")

DriverFactory = Callable[[ScraperConfig], Awaitable[object]]


@dataclass
class ScrapeSummary:
    """What one run produced."""

    session_id: str
    category_counts: Dict[str, int] = field(default_factory=dict)
    failed_categories: List[str] = field(default_factory=list)
    export_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def total_products(self) -> int:
        return sum(self.category_counts.values())


async def initialize_browser(session: ScrapeSession, driver_factory: DriverFactory) -> None:
    """Start the browser. Failure here ends the run."""
    logger.info("Initializing browser...")
    try:
        session.driver = await driver_factory(session.config)
    except DriverInitError:
        raise
    except Exception as e:
        raise DriverInitError(f"Could not launch browser: {e}") from e
    session.transition(SessionState.DRIVER_READY)


async def authenticate_as_guest(session: ScrapeSession) -> None:
    """Open the shop and continue as a guest.

    Raises:
        StructuralError: If the guest button is not on the page
    """
    config = session.config
    driver = session.require_driver()

    logger.info("Navigating to Sysco homepage...")
    await session.navigate(config.urls["home"])
    await session.pause("page_load")

    if logger.isEnabledFor(logging.DEBUG):
        buttons = await driver.query_all("button")
        logger.debug(f"Buttons on page: {[b.text for b in buttons if b.text]}")

    guest_button = await driver.query_one(config.auth_selectors["guest_button"])
    if guest_button is None:
        raise StructuralError("Guest login button not found")

    logger.info("Found guest button, clicking...")
    await driver.click(guest_button)
    await session.pause("modal_handling")

    session.transition(SessionState.AUTHENTICATED)
    logger.info("Guest authentication complete")


async def handle_location_modal(session: ScrapeSession) -> None:
    """Enter the configured ZIP code in the location modal and submit it.

    Raises:
        StructuralError: If the ZIP input never appears
    """
    config = session.config
    driver = session.require_driver()
    zip_selector = config.auth_selectors["zip_code_input"]

    logger.info("Handling location modal...")
    try:
        await driver.wait_for_selector(zip_selector, timeout=config.modal_timeout)
    except (PlaywrightTimeoutError, asyncio.TimeoutError) as e:
        raise StructuralError(f"Location modal did not appear within {config.modal_timeout}s") from e

    zip_input = await driver.query_one(zip_selector)
    if zip_input is None:
        raise StructuralError("ZIP code input not found")

    await driver.type_text(zip_input, config.location_zip)
    logger.info(f"Entered ZIP code: {config.location_zip}")

    submit_button = find_submit_button(await driver.query_all("button"), config.submit_keywords)
    if submit_button is not None:
        logger.info(f"Clicking submit button: {submit_button.text}")
        await driver.click(submit_button)
    else:
        logger.warning("Submit button not found in location modal, continuing...")

    await session.pause("page_load")

    session.transition(SessionState.LOCATION_SET)
    logger.info("Location set successfully")


def _export_progress(session: ScrapeSession, summary: ScrapeSummary, category: str) -> None:
    config = session.config
    try:
        result = export_to_csv(config.db_path, output_dir=config.output_dir)
    except ValueError as e:
        logger.warning(f"Nothing to export after {category}: {e}")
        return
    except Exception as e:
        logger.error(f"CSV export failed after {category}: {e}")
        log_scrape_event("export_error", {"category": category, "error": str(e)}, level=logging.ERROR)
        return

    summary.export_path = result["file_path"]
    log_scrape_event("export_complete", {"category": category, **result})


async def scrape_all_categories(
    session: ScrapeSession,
    summary: Optional[ScrapeSummary] = None,
) -> ScrapeSummary:
    """Scrape each configured category in order.

    A failing category is logged and recorded in the summary; the next one
    still runs. The CSV export is refreshed after every category.
    """
    config = session.config
    summary = summary or ScrapeSummary(session_id=session.session_id)
    session.transition(SessionState.TRAVERSING)

    total = len(config.categories)
    for i, category in enumerate(config.categories, start=1):
        logger.info(f"[{i}/{total}] Processing category: {category}")
        try:
            products = await scrape_category(session, category)
            summary.category_counts[category] = len(products)
            logger.info(f"Category {category}: {len(products)} products")
        except Exception as e:
            summary.failed_categories.append(category)
            logger.error(f"Error scraping category {category}: {e}", exc_info=True)
            log_scrape_event("category_error", {
                "category": category,
                "error": str(e),
                "error_type": type(e).__name__,
            }, level=logging.ERROR)

        _export_progress(session, summary, category)

    return summary


async def finalize_session(session: ScrapeSession) -> None:
    """Close the browser. Errors while closing are logged, not raised."""
    if session.driver is not None:
        try:
            await session.driver.close()
        except Exception as e:
            logger.error(f"Error closing browser: {e}")
        session.driver = None
    session.transition(SessionState.FINALIZED)


def _log_summary(summary: ScrapeSummary) -> None:
    logger.info("=== SCRAPING SUMMARY ===")
    for category, count in summary.category_counts.items():
        logger.info(f"  {category}: {count}")
    if summary.failed_categories:
        logger.warning(f"Failed categories: {', '.join(summary.failed_categories)}")

    if summary.total_products == 0:
        logger.warning("Scraping completed but no products were found")
    else:
        logger.info(f"Scraping completed. Total products: {summary.total_products}")

    log_scrape_event("session_complete", {
        "session_id": summary.session_id,
        "total_products": summary.total_products,
        "categories": summary.category_counts,
        "failed_categories": summary.failed_categories,
        "error": summary.error,
    })


async def run_scraper(
    config: Optional[ScraperConfig] = None,
    driver_factory: Optional[DriverFactory] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ScrapeSummary:
    """Run a complete scrape.

    Args:
        config: Run settings (default: from the environment)
        driver_factory: Coroutine function returning a started driver
            (default: ``BrowserDriver.launch``)
        sleep: Awaitable sleep used for every wait, replaceable in tests

    Returns:
        ScrapeSummary for the run

    Raises:
        DriverInitError, StructuralError or any other error that stopped the
        run, after the browser has been closed
    """
    config = config or load_config()
    factory = driver_factory or BrowserDriver.launch
    session = ScrapeSession(config=config, sleep=sleep)
    summary = ScrapeSummary(session_id=session.session_id)

    logger.info(f"Starting Sysco scraper (session {session.session_id})")
    log_scrape_event("session_start", {
        "session_id": session.session_id,
        "categories": config.categories,
        "location_zip": config.location_zip,
        "max_pages": config.max_pages_per_category,
        "max_products": config.max_products_per_category,
    })

    init_db(config.db_path)

    try:
        await initialize_browser(session, factory)
        await authenticate_as_guest(session)
        await handle_location_modal(session)
        await scrape_all_categories(session, summary)
    except Exception as e:
        summary.error = str(e)
        logger.error(f"Scraping failed: {e}", exc_info=True)
        raise
    finally:
        await finalize_session(session)
        _log_summary(summary)

    return summary
