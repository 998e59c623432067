"""Tests for extraction, pagination and category walking against a fake browser."""

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sysco_scrape.db import get_all_products, get_total_product_count
from sysco_scrape.exceptions import CategoryListError, ExtractionError
from sysco_scrape.scraper import (
    extract_product_details,
    navigate_to_next_page,
    return_to_category_list,
    scrape_category,
    scrape_products_from_page,
)

from fakes import (
    FakePage,
    build_site,
    listing_html,
    listing_page,
    listing_url,
    product_html,
    product_url,
    snap,
)


class TestExtractProductDetails:

    @pytest.mark.asyncio
    async def test_extracts_product(self, session, driver):
        url = product_url("7001")
        driver.pages[url] = FakePage(product_html("7001", name="Romaine Hearts"))

        product = await extract_product_details(session, url)

        assert product.sku == "7001"
        assert product.product_name == "Romaine Hearts"
        assert driver.visits == [url]

    @pytest.mark.asyncio
    async def test_clicks_read_more_when_present(self, session, driver, config):
        url = product_url("7001")
        read_more = snap("button", "Read more")
        driver.pages[url] = FakePage(
            product_html("7001", read_more=True),
            {config.product_selectors["read_more_button"]: [read_more]},
        )

        await extract_product_details(session, url)

        assert driver.clicks == [read_more]

    @pytest.mark.asyncio
    async def test_transient_navigation_failure_is_retried(self, session, driver, sleeps):
        url = product_url("7001")
        driver.pages[url] = FakePage(product_html("7001"))
        driver.goto_errors[url] = [PlaywrightTimeoutError("Timeout 25000ms exceeded")]

        product = await extract_product_details(session, url)

        assert product.sku == "7001"
        assert driver.visits == [url, url]
        assert sleeps == [0.5]

    @pytest.mark.asyncio
    async def test_missing_sku_fails_after_all_attempts(self, session, driver, config):
        url = product_url("broken")
        driver.pages[url] = FakePage(product_html(None))

        with pytest.raises(ExtractionError):
            await extract_product_details(session, url)

        assert len(driver.visits) == config.max_retries + 1


class TestScrapeProductsFromPage:

    @pytest.mark.asyncio
    async def test_failed_product_is_skipped_and_rest_saved(self, session, driver, config):
        listing = listing_url("produce", 1)
        driver.pages[listing] = FakePage(listing_html(["1", "bad", "3"]))
        driver.pages[product_url("1")] = FakePage(product_html("1"))
        driver.pages[product_url("bad")] = FakePage(product_html(None))
        driver.pages[product_url("3")] = FakePage(product_html("3"))
        driver.url = listing

        products = await scrape_products_from_page(session, "Produce", 1)

        assert [p.sku for p in products] == ["1", "3"]
        stored = get_all_products(config.db_path)
        assert {row["sku"] for row in stored} == {"1", "3"}
        assert {row["scrape_session_id"] for row in stored} == {session.session_id}

    @pytest.mark.asyncio
    async def test_stops_at_category_product_limit(self, session, driver, config):
        session.config = config.copy(max_products_per_category=5)
        listing = listing_url("produce", 2)
        skus = ["1", "2", "3", "4"]
        driver.pages[listing] = FakePage(listing_html(skus))
        for sku in skus:
            driver.pages[product_url(sku)] = FakePage(product_html(sku))
        driver.url = listing

        products = await scrape_products_from_page(session, "Produce", 2, already_collected=3)

        assert [p.sku for p in products] == ["1", "2"]
        assert product_url("3") not in driver.visits

    @pytest.mark.asyncio
    async def test_empty_listing(self, session, driver, config):
        driver.url = listing_url("produce", 1)
        driver.pages[driver.url] = FakePage("<html><body>No results</body></html>")

        assert await scrape_products_from_page(session, "Produce", 1) == []
        assert get_total_product_count(config.db_path) == 0


class TestNavigateToNextPage:

    @pytest.mark.asyncio
    async def test_clicks_enabled_next_button(self, session, driver, config):
        page_one, page_two = listing_url("produce", 1), listing_url("produce", 2)
        driver.pages[page_one] = listing_page(config, ["1"], next_url=page_two)
        driver.pages[page_two] = listing_page(config, ["2"])

        result = await navigate_to_next_page(session, page_one)

        assert result
        assert result.method == "next-button"
        assert driver.url == page_two
        assert driver.visits == [page_one]

    @pytest.mark.asyncio
    async def test_disabled_next_button_ends_pagination(self, session, driver, config):
        page_one = listing_url("produce", 1)
        driver.pages[page_one] = listing_page(config, ["1"], next_url=None)

        result = await navigate_to_next_page(session, page_one)

        assert not result
        assert result.reason == "button-disabled"
        assert driver.clicks == []

    @pytest.mark.asyncio
    async def test_falls_back_to_numbered_buttons(self, session, driver, config):
        page_one, page_two = listing_url("dairy", 1), listing_url("dairy", 2)
        buttons = [
            snap("button", "1", attrs={"data-id": "button_page_1", "class": "active"}),
            snap("button", "2", attrs={"data-id": "button_page_2"}, on_click=lambda d: d.land(page_two)),
        ]
        driver.pages[page_one] = FakePage(listing_html(["1"]), {config.pagination_selectors["page_buttons"]: buttons})
        driver.pages[page_two] = FakePage(listing_html(["2"]))

        result = await navigate_to_next_page(session, page_one)

        assert result
        assert result.method == "numbered-pagination"
        assert result.page == 2
        assert driver.url == page_two

    @pytest.mark.asyncio
    async def test_no_pagination_controls(self, session, driver):
        page_one = listing_url("dairy", 1)
        driver.pages[page_one] = FakePage(listing_html(["1"]))

        result = await navigate_to_next_page(session, page_one)

        assert not result
        assert result.reason == "no-buttons-found"

    @pytest.mark.asyncio
    async def test_next_button_click_falls_back_to_dispatch(self, session, driver, config):
        page_one, page_two = listing_url("produce", 1), listing_url("produce", 2)
        stubborn = snap(
            "button",
            "Next",
            attrs={"data-id": "button_page_next"},
            on_click=lambda d: d.land(page_two),
            fail_click=True,
        )
        driver.pages[page_one] = FakePage(listing_html(["1"]), {config.pagination_selectors["next_button"]: [stubborn]})

        assert await navigate_to_next_page(session, page_one)
        assert driver.url == page_two


class TestScrapeCategory:

    @pytest.mark.asyncio
    async def test_walks_all_pages_in_order(self, session, config):
        driver = build_site(config, {"Produce": [["1", "2"], ["3"]]})
        session.driver = driver
        driver.url = config.urls["discover"]

        products = await scrape_category(session, "Produce")

        assert [p.sku for p in products] == ["1", "2", "3"]
        assert get_total_product_count(config.db_path) == 3
        assert driver.url == config.urls["discover"]

    @pytest.mark.asyncio
    async def test_stops_at_max_pages(self, session, config):
        session.config = config.copy(max_pages_per_category=3)
        pages = [[str(n)] for n in range(1, 6)]
        driver = build_site(session.config, {"Produce": pages})
        session.driver = driver
        driver.url = config.urls["discover"]

        products = await scrape_category(session, "Produce")

        assert [p.sku for p in products] == ["1", "2", "3"]
        next_clicks = [el for el in driver.clicks if el.get("data-id") == "button_page_next"]
        assert len(next_clicks) == 2
        assert listing_url("category-0", 4) not in driver.visits
        assert product_url("4") not in driver.visits

    @pytest.mark.asyncio
    async def test_clicks_clickable_ancestor(self, session, config):
        driver = build_site(config, {"Produce": [["1"]]})
        session.driver = driver
        driver.url = config.urls["discover"]

        await scrape_category(session, "Produce")

        assert driver.clicks[0].tag == "a"

    @pytest.mark.asyncio
    async def test_navigation_timeout_is_not_fatal(self, session, config):
        driver = build_site(config, {"Produce": [["1"]]})
        driver.navigation_times_out = True
        session.driver = driver
        driver.url = config.urls["discover"]

        products = await scrape_category(session, "Produce")

        assert [p.sku for p in products] == ["1"]

    @pytest.mark.asyncio
    async def test_click_that_never_navigates_waits_then_continues(self, session, config):
        driver = build_site(config, {"Produce": [["1"]]})
        tile = driver.pages[config.urls["discover"]].elements[config.category_selectors["Produce"]][0]
        tile.handle.parents[-1].handle.on_click = None
        session.driver = driver
        driver.url = config.urls["discover"]

        assert await scrape_category(session, "Produce") == []
        assert driver.url == config.urls["discover"]

    @pytest.mark.asyncio
    async def test_unknown_category_returns_empty(self, session, driver):
        assert await scrape_category(session, "Office Supplies") == []
        assert driver.clicks == []

    @pytest.mark.asyncio
    async def test_category_not_on_page_returns_empty(self, session, driver, config):
        driver.url = config.urls["discover"]
        driver.pages[driver.url] = FakePage(
            "<html></html>",
            {config.category_marker_selector: [snap("span", "Bakery", attrs={"data-id": "lbl_category"})]},
        )

        assert await scrape_category(session, "Produce") == []
        assert driver.clicks == []
        assert driver.scrolls == 1

    @pytest.mark.asyncio
    async def test_category_not_on_page_restores_list_first(self, session, config):
        driver = build_site(config, {"Produce": [["1"]]})
        session.driver = driver
        driver.url = product_url("1")

        assert await scrape_category(session, "Beverages") == []
        assert driver.url == config.urls["discover"]

    @pytest.mark.asyncio
    async def test_failure_inside_category_restores_list(self, session, config):
        driver = build_site(config, {"Produce": [["1"], ["2"]]})
        driver.content_errors[listing_url("category-0", 1)] = RuntimeError("Target page crashed")
        session.driver = driver
        driver.url = config.urls["discover"]

        with pytest.raises(RuntimeError, match="Target page crashed"):
            await scrape_category(session, "Produce")

        assert driver.url == config.urls["discover"]
        assert driver.visits == [config.urls["discover"]]


class TestReturnToCategoryList:

    @pytest.mark.asyncio
    async def test_already_on_list_only_scrolls(self, session, config):
        driver = build_site(config, {"Produce": [["1"]]})
        session.driver = driver
        driver.url = config.urls["discover"]

        await return_to_category_list(session)

        assert driver.scrolls == 1
        assert driver.visits == []

    @pytest.mark.asyncio
    async def test_navigates_back_from_product_page(self, session, config):
        driver = build_site(config, {"Produce": [["1"]]})
        session.driver = driver
        driver.url = product_url("1")

        await return_to_category_list(session)

        assert driver.visits == [config.urls["discover"]]

    @pytest.mark.asyncio
    async def test_raises_when_list_never_shows_categories(self, session, driver, config):
        discover = config.urls["discover"]
        driver.pages[discover] = FakePage("<html><body>Loading...</body></html>")
        driver.url = product_url("1")

        with pytest.raises(CategoryListError):
            await return_to_category_list(session)

        # one regular navigation plus one forced reload
        assert driver.visits == [discover, discover]

    @pytest.mark.asyncio
    async def test_raises_when_reload_fails(self, session, driver, config):
        discover = config.urls["discover"]
        driver.goto_errors[discover] = [ValueError("page crashed")] * 2
        driver.url = product_url("1")

        with pytest.raises(CategoryListError):
            await return_to_category_list(session)
