"""A scripted stand-in for ``BrowserDriver`` and helpers to build fake sites.

Pages are keyed by URL. Each page has an HTML snapshot (what ``content()``
returns) and a map of selector -> ElementSnapshot list (what ``query_one`` /
``query_all`` return). Clicking an element runs its ``on_click`` callback,
which usually moves the fake browser to another URL.
"""

from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sysco_scrape.config import BASE_URL, ScraperConfig
from sysco_scrape.driver import ElementSnapshot


class FakeHandle:
    def __init__(self, on_click=None, parents=(), fail_click=False):
        self.on_click = on_click
        self.parents = list(parents)
        self.fail_click = fail_click


def snap(
    tag: str,
    text: str = "",
    attrs: Optional[Dict[str, str]] = None,
    on_click=None,
    parents: Sequence[ElementSnapshot] = (),
    fail_click: bool = False,
) -> ElementSnapshot:
    """Build an ElementSnapshot backed by a FakeHandle."""
    return ElementSnapshot(
        handle=FakeHandle(on_click, parents, fail_click),
        tag=tag,
        text=text,
        attributes=dict(attrs or {}),
    )


class FakePage:
    def __init__(self, html: str = "", elements: Optional[Dict[str, List[ElementSnapshot]]] = None):
        self.html = html
        self.elements = elements or {}


class FakeDriver:
    """Implements the BrowserDriver interface over in-memory pages."""

    def __init__(self, pages: Optional[Dict[str, FakePage]] = None):
        self.pages: Dict[str, FakePage] = dict(pages or {})
        self.url = "about:blank"
        self.visits: List[str] = []
        self.clicks: List[ElementSnapshot] = []
        self.typed: List[str] = []
        # url -> exceptions raised by successive goto() calls
        self.goto_errors: Dict[str, List[Exception]] = {}
        # url -> exception raised by content() while on that page
        self.content_errors: Dict[str, Exception] = {}
        self.navigation_times_out = False
        self.scrolls = 0
        self.closed = False

    @property
    def page(self) -> FakePage:
        return self.pages.get(self.url) or FakePage()

    def land(self, url: str) -> None:
        """Move to ``url`` as a result of a click."""
        self.url = url

    async def goto(self, url: str, wait_until: str = "networkidle", timeout: float = 30.0) -> None:
        self.visits.append(url)
        errors = self.goto_errors.get(url)
        if errors:
            raise errors.pop(0)
        self.url = url

    async def wait_for_selector(self, selector: str, timeout: float = 10.0) -> None:
        page = self.page
        if page.elements.get(selector):
            return
        if page.html and BeautifulSoup(page.html, "html.parser").select_one(selector) is not None:
            return
        raise PlaywrightTimeoutError(f"Timeout {timeout}s exceeded waiting for {selector}")

    async def wait_for_navigation(self, from_url: str, timeout: float = 10.0) -> None:
        if self.navigation_times_out or self.url == from_url:
            raise PlaywrightTimeoutError(f"Timeout {timeout}s exceeded waiting for navigation")

    async def content(self) -> str:
        if self.url in self.content_errors:
            raise self.content_errors[self.url]
        return self.page.html

    async def scroll_to_top(self) -> None:
        self.scrolls += 1

    async def query_one(self, selector: str) -> Optional[ElementSnapshot]:
        found = self.page.elements.get(selector) or []
        return found[0] if found else None

    async def query_all(self, selector: str) -> List[ElementSnapshot]:
        return list(self.page.elements.get(selector) or [])

    async def ancestors(self, element: ElementSnapshot) -> List[ElementSnapshot]:
        return [element] + list(element.handle.parents)

    async def click(self, element: ElementSnapshot, dispatch_fallback: bool = False) -> None:
        if element.handle.fail_click and not dispatch_fallback:
            raise RuntimeError("Element is not attached to the DOM")
        self.clicks.append(element)
        if element.handle.on_click is not None:
            element.handle.on_click(self)

    async def type_text(self, element: ElementSnapshot, text: str) -> None:
        self.typed.append(text)

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Site builders
# =============================================================================

def product_url(sku: str) -> str:
    return f"{BASE_URL}/app/product-details/opco-056/{sku}"


def listing_url(slug: str, page: int) -> str:
    return f"{BASE_URL}/app/catalog/{slug}?page={page}"


def product_html(
    sku: Optional[str],
    name: Optional[str] = "Widget",
    brand: Optional[str] = "Acme",
    category: str = "Produce",
    zip_text: Optional[str] = "Delivering to 97209",
    image: str = "https://images.sysco.com/img/12345.jpg",
    read_more: bool = False,
) -> str:
    """A product detail page; pass None to leave an element out."""
    parts = []
    if zip_text is not None:
        parts.append(f'<div class="zipcode">{zip_text}</div>')
    parts.append(f'<a data-id="breadcrumb_category_level1">{category}</a>')
    if name is not None:
        parts.append(f'<h1 data-testid="product-title">{name}</h1>')
    if brand is not None:
        parts.append(f'<a data-id="product_brand_link">{brand}</a>')
    if sku is not None:
        parts.append(f'<span data-id="product_id">{sku}</span>')
    parts.append('<span data-id="pack_size">6/5 LB</span>')
    parts.append('<span data-id="product_packaging_text">Case</span>')
    parts.append(f'<img data-id="main-product-img-v2" src="{image}">')
    parts.append('<div data-id="product_description_section">Fresh and <b>crisp</b>.</div>')
    if read_more:
        parts.append('<button data-id="ellipsis-read-more-button">Read more</button>')
    return "<html><body>" + "\n".join(parts) + "</body></html>"


def listing_html(skus: Sequence[str]) -> str:
    links = "".join(
        f'<div class="card"><a href="/app/product-details/opco-056/{sku}">{sku}</a></div>'
        for sku in skus
    )
    return f"<html><body>{links}</body></html>"


def next_button(next_url: Optional[str]) -> ElementSnapshot:
    """Enabled "next" button leading to ``next_url``, or a disabled one."""
    if next_url is None:
        return snap("button", "Next", attrs={"data-id": "button_page_next", "disabled": ""})
    return snap(
        "button",
        "Next",
        attrs={"data-id": "button_page_next"},
        on_click=lambda driver: driver.land(next_url),
    )


def listing_page(config: ScraperConfig, skus: Sequence[str], next_url: Optional[str] = None) -> FakePage:
    return FakePage(
        listing_html(skus),
        {config.pagination_selectors["next_button"]: [next_button(next_url)]},
    )


def build_site(
    config: ScraperConfig,
    catalog: Dict[str, List[List[str]]],
    failing_categories: Sequence[str] = (),
) -> FakeDriver:
    """A fake shop: home page with the guest/ZIP flow, a discover page with
    one tile per category, paginated listings and one page per SKU.

    ``catalog`` maps category name to a list of pages, each a list of SKUs.
    Clicking a category in ``failing_categories`` raises.
    """
    driver = FakeDriver()
    home = config.urls["home"]
    discover = config.urls["discover"]

    driver.pages[home] = FakePage(
        "<html><body>Welcome</body></html>",
        {
            config.auth_selectors["guest_button"]: [snap("button", "Continue as Guest")],
            config.auth_selectors["zip_code_input"]: [
                snap("input", attrs={"data-id": "initial_zipcode_modal_input"}),
            ],
            "button": [
                snap("button", "Cancel"),
                snap("button", "Start Shopping", on_click=lambda d: d.land(discover)),
            ],
        },
    )

    labels: Dict[str, ElementSnapshot] = {}
    for index, (category, pages) in enumerate(catalog.items()):
        slug = f"category-{index}"
        first_page = listing_url(slug, 1)
        tile_link = snap(
            "a",
            attrs={"href": first_page},
            on_click=lambda d, url=first_page: d.land(url),
            fail_click=category in failing_categories,
        )
        labels[category] = snap(
            "span",
            category,
            attrs={"data-id": "lbl_category"},
            parents=[snap("div", attrs={"class": "tile-body"}), tile_link],
        )

        for number, skus in enumerate(pages, start=1):
            next_url = listing_url(slug, number + 1) if number < len(pages) else None
            driver.pages[listing_url(slug, number)] = listing_page(config, skus, next_url)
            for sku in skus:
                driver.pages[product_url(sku)] = FakePage(product_html(sku, name=f"Item {sku}", category=category))

    elements = {config.category_selectors[name]: [label] for name, label in labels.items()}
    elements[config.category_marker_selector] = list(labels.values())
    driver.pages[discover] = FakePage("<html><body>Discover</body></html>", elements)
    return driver
