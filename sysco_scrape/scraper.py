"""Core scraping logic: categories, listing pages and product pages.

Every function takes the run's ``ScrapeSession`` and borrows its driver for
the duration of the call.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sysco_scrape.db import batch_upsert_products
from sysco_scrape.exceptions import CategoryListError, ExtractionError, UnknownCategoryError
from sysco_scrape.html_utils import (
    current_page_from_buttons,
    extract_product_links,
    find_clickable_ancestor,
    find_page_button,
    parse_product_page,
)
from sysco_scrape.logging_config import get_logger, log_scrape_event
from sysco_scrape.models import Product
from sysco_scrape.retry import retry_async, should_retry_error
from sysco_scrape.session import ScrapeSession

__all__ = [
    "PaginationResult",
    "extract_product_details",
    "scrape_products_from_page",
    "navigate_to_next_page",
    "scrape_category",
    "return_to_category_list",
]

logger = get_logger("scraper")

_WAIT_TIMEOUTS = (PlaywrightTimeoutError, asyncio.TimeoutError)


@dataclass
class PaginationResult:
    """Outcome of one attempt to move to the next listing page.

    Truthy when a pagination control was clicked.
    """

    success: bool
    method: Optional[str] = None
    reason: Optional[str] = None
    page: Optional[int] = None

    def __bool__(self) -> bool:
        return self.success


# =============================================================================
# Product pages
# =============================================================================

async def extract_product_details(session: ScrapeSession, product_url: str) -> Product:
    """Open a product page and read it into a Product.

    Retried with the configured budget; a page without a SKU counts as a
    failed attempt.

    Raises:
        The last attempt's error once retries are exhausted
    """
    config = session.config
    driver = session.require_driver()

    async def _extract_once() -> Product:
        await driver.goto(product_url, wait_until="networkidle", timeout=config.product_timeout)
        await session.pause("product_details")

        # Descriptions are collapsed until "Read more" is clicked
        read_more_selector = config.product_selectors.get("read_more_button")
        if read_more_selector:
            read_more = await driver.query_one(read_more_selector)
            if read_more is not None:
                try:
                    await driver.click(read_more)
                    await session.pause("product_details")
                except Exception as e:
                    logger.warning(f"Could not expand description on {product_url}: {e}")

        html = await driver.content()
        product = parse_product_page(
            html,
            driver.url,
            config.product_selectors,
            config.field_placeholders,
            config.location_zip,
        )
        if not product.is_valid:
            raise ExtractionError(product_url)

        logger.info(
            f"Extracted product: {product.product_name} (SKU: {product.sku}) - "
            f"Pack: {product.packaging_size}, Weight: {product.weight}"
        )
        return product

    return await retry_async(
        _extract_once,
        max_retries=config.max_retries,
        base_delay=config.retry_base_delay,
        retry_condition=should_retry_error,
        description=f"extraction of {product_url}",
        sleep=session.sleep,
    )


# =============================================================================
# Listing pages
# =============================================================================

async def scrape_products_from_page(
    session: ScrapeSession,
    category: str,
    page_number: int,
    already_collected: int = 0,
) -> List[Product]:
    """Extract every product linked from the current listing page.

    Stops once the category reaches ``max_products_per_category``. Products
    that fail after retries are skipped. Whatever was collected is saved to
    the database before returning.
    """
    config = session.config
    driver = session.require_driver()

    logger.info(f"=== SCRAPING {category} - PAGE {page_number} ===")
    await session.pause("page_load")

    listing_url = driver.url
    html = await driver.content()
    product_links = extract_product_links(
        html,
        listing_url,
        config.product_listing["product_links"],
        config.product_listing.get("product_url_filter", ""),
    )
    logger.info(f"Found {len(product_links)} product links on page {page_number}")

    if not product_links:
        logger.warning(f"No products found on page {page_number} for {category}")
        return []

    budget = config.max_products_per_category - already_collected
    products: List[Product] = []

    for i, product_url in enumerate(product_links, start=1):
        if len(products) >= budget:
            logger.info(f"Reached max products limit ({config.max_products_per_category}) for {category}")
            break

        logger.info(f"[{i}/{len(product_links)}] {product_url}")
        try:
            products.append(await extract_product_details(session, product_url))
        except Exception as e:
            logger.error(f"Failed to extract product {i}/{len(product_links)} ({product_url}): {e}")
            log_scrape_event("product_error", {
                "url": product_url,
                "error": str(e),
                "category": category,
                "page": page_number,
            })

        await session.pause("between_products")

    logger.info(
        f"Page {page_number} complete: {len(products)} products. "
        f"Category total: {already_collected + len(products)}"
    )

    # Save after every page so a later crash keeps this page's work
    if products:
        try:
            batch_upsert_products(config.db_path, products, session_id=session.session_id)
        except Exception as e:
            logger.error(f"Database save error for {category} page {page_number}: {e}")

    log_scrape_event("page_complete", {
        "category": category,
        "page": page_number,
        "links": len(product_links),
        "products": len(products),
    })
    return products


async def navigate_to_next_page(session: ScrapeSession, listing_url: str) -> PaginationResult:
    """Reload the listing page and click through to the next one.

    The listing is reloaded first because visiting product pages loses the
    pagination widget. A disabled "next" button or no usable page button is
    the normal end of a category, reported as a falsy result.
    """
    config = session.config
    driver = session.require_driver()
    selectors = config.pagination_selectors

    logger.info(f"Navigating back to category listing page: {listing_url}")
    try:
        await session.navigate(listing_url)
    except Exception as e:
        logger.error(f"Could not reload listing page {listing_url}: {e}")
        return PaginationResult(False, reason="listing-reload-failed")

    await session.pause("modal_handling")
    await session.pause("pagination")

    result = await _click_next_control(session, selectors)
    if not result:
        logger.info(f"Pagination ended - Reason: {result.reason}")
        return result

    logger.info(f"Next page button clicked using method: {result.method}")
    if result.page:
        logger.info(f"Navigated to page: {result.page}")

    await session.pause("pagination")
    try:
        await driver.wait_for_selector(
            config.product_listing["product_links"],
            timeout=config.listing_reload_timeout,
        )
        logger.info("New products loaded after pagination")
    except _WAIT_TIMEOUTS:
        logger.info("Product loading timeout, checking if page content changed...")

    return result


async def _click_next_control(session: ScrapeSession, selectors) -> PaginationResult:
    driver = session.require_driver()

    next_button = await driver.query_one(selectors["next_button"])
    if next_button is not None:
        if next_button.is_disabled:
            return PaginationResult(False, reason="button-disabled")
        try:
            await driver.click(next_button, dispatch_fallback=True)
        except Exception as e:
            logger.warning(f"Clicking next page button failed: {e}")
            return PaginationResult(False, reason="click-failed")
        return PaginationResult(True, method="next-button")

    # Numbered buttons as fallback
    page_buttons = await driver.query_all(selectors["page_buttons"])
    if page_buttons:
        next_page = current_page_from_buttons(page_buttons) + 1
        target = find_page_button(page_buttons, next_page)
        if target is not None:
            try:
                await driver.click(target)
            except Exception as e:
                logger.warning(f"Clicking page {next_page} button failed: {e}")
                return PaginationResult(False, reason="click-failed")
            return PaginationResult(True, method="numbered-pagination", page=next_page)

    return PaginationResult(False, reason="no-buttons-found")


# =============================================================================
# Categories
# =============================================================================

async def scrape_category(session: ScrapeSession, category: str) -> List[Product]:
    """Scrape all pages of one category and return to the category list.

    The category list is restored whether the category succeeds or fails, so
    the next category starts from the same page.

    Returns:
        Products from every page in order. Unknown or missing categories
        return an empty list.

    Raises:
        CategoryListError: If the category list cannot be restored afterwards
    """
    config = session.config
    driver = session.require_driver()

    logger.info(f"=== SCRAPING CATEGORY: {category} ===")
    log_scrape_event("category_start", {
        "category": category,
        "max_pages": config.max_pages_per_category,
        "max_products": config.max_products_per_category,
    })
    await session.pause("between_categories")

    selector = config.selector_for_category(category)
    if not selector:
        logger.error(str(UnknownCategoryError(category)))
        return []

    logger.info(f"Looking for category: {category} with selector: {selector}")
    element = await driver.query_one(selector)
    if element is None:
        logger.error(f"Could not find category: {category}")
        await return_to_category_list(session)
        return []

    try:
        products = await _scrape_category_pages(session, category, element)
    except Exception as e:
        logger.warning(f"Category {category} failed, restoring category list: {e}")
        try:
            await return_to_category_list(session)
        except CategoryListError as restore_error:
            logger.error(f"Category list not restored after {category}: {restore_error}")
        raise

    await return_to_category_list(session)
    return products


async def _scrape_category_pages(session: ScrapeSession, category: str, element) -> List[Product]:
    """Open the category from its list element and walk its pages."""
    config = session.config
    driver = session.require_driver()

    # Labels are often plain spans inside the real link/button
    target = find_clickable_ancestor(await driver.ancestors(element)) or element
    from_url = driver.url
    await driver.click(target)
    logger.info(f"Clicked category {category} (<{target.tag}>)")
    await session.pause("after_category_click")

    try:
        await driver.wait_for_navigation(from_url, timeout=config.category_navigation_timeout)
    except _WAIT_TIMEOUTS:
        logger.info("Navigation timeout, continuing...")

    listing_url = driver.url
    logger.info(f"Current URL after category click: {listing_url}")

    products: List[Product] = []
    page_number = 1
    pages_scraped = 0

    while (
        page_number <= config.max_pages_per_category
        and len(products) < config.max_products_per_category
    ):
        logger.info(f"=== {category} - PAGE {page_number} ===")
        products.extend(
            await scrape_products_from_page(session, category, page_number, already_collected=len(products))
        )
        pages_scraped = page_number

        if page_number >= config.max_pages_per_category:
            logger.info(f"Reached max pages limit ({config.max_pages_per_category}) for {category}")
            break

        if not await navigate_to_next_page(session, listing_url):
            logger.info(f"No more pages for {category}")
            break

        page_number += 1
        listing_url = driver.url

    logger.info(f"Category {category} complete: {len(products)} products from {pages_scraped} pages")
    log_scrape_event("category_complete", {
        "category": category,
        "products_scraped": len(products),
        "pages_scraped": pages_scraped,
    })
    return products


async def _count_category_markers(session: ScrapeSession) -> int:
    driver = session.require_driver()
    return len(await driver.query_all(session.config.category_marker_selector))


async def _restore_category_list(session: ScrapeSession) -> bool:
    """Get back to a category list with visible categories. True on success."""
    config = session.config
    driver = session.require_driver()
    discover_url = config.urls["discover"]

    if urlparse(discover_url).path in driver.url:
        logger.info("Already on discover page, scrolling to top...")
        await driver.scroll_to_top()
        await session.pause("modal_handling")
        if await _count_category_markers(session) > 0:
            logger.info("Categories are visible, no navigation needed")
            return True

    logger.info("Navigating back to discover page...")
    await session.navigate(discover_url, wait_until="domcontentloaded")
    await session.pause("page_load")

    count = await _count_category_markers(session)
    if count == 0:
        logger.warning("Returned to discover page but categories not immediately visible")
        await driver.scroll_to_top()
        await session.pause("modal_handling")
        count = await _count_category_markers(session)

    if count == 0:
        return False

    logger.info(f"Successfully returned to category list page with {count} categories visible")
    return True


async def return_to_category_list(session: ScrapeSession) -> None:
    """Restore the category list page for the next category.

    Falls back to one forced reload of the discover page.

    Raises:
        CategoryListError: If the reload fails or still shows no categories
    """
    config = session.config
    driver = session.require_driver()
    discover_url = config.urls["discover"]

    logger.info("Returning to category list page...")
    try:
        if await _restore_category_list(session):
            return
        logger.warning("Categories still not visible after scrolling")
    except Exception as e:
        logger.error(f"Failed to return to category list page: {e}")

    logger.info("Last resort: refreshing discover page...")
    try:
        await driver.goto(discover_url, wait_until="networkidle", timeout=config.navigation_timeout)
        await session.pause("pagination")
        count = await _count_category_markers(session)
    except Exception as e:
        logger.error(f"Failed to refresh page: {e}")
        raise CategoryListError("Could not return to category list page") from e

    if count == 0:
        raise CategoryListError("Category list page shows no categories after reload")
    logger.info("Page refreshed successfully")
