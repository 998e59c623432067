"""HTML parsing and element selection utilities.

Functions here work on HTML snapshots (``page.content()``) or on lists of
``ElementSnapshot`` objects and never touch the browser.
"""

import re
from typing import Dict, List, Optional, Sequence, Set
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from sysco_scrape.driver import ElementSnapshot, locate
from sysco_scrape.logging_config import get_logger
from sysco_scrape.models import Product
from sysco_scrape.url_validation import InvalidURLError, validate_image_url, validate_url

__all__ = [
    "extract_product_links",
    "parse_product_page",
    "extract_location_zip",
    "find_clickable_ancestor",
    "find_submit_button",
    "page_number_from_data_id",
    "current_page_from_buttons",
    "find_page_button",
]

logger = get_logger("html_utils")

PAGE_BUTTON_RE = re.compile(r"button_page_(\d+)")
ZIP_RE = re.compile(r"\b(\d{5})(?:-\d{4})?\b")

# Selector keys that are controls, not record fields
_CONTROL_SELECTORS = {"read_more_button"}


def extract_product_links(
    html: str,
    page_url: str,
    link_selector: str,
    url_filter: str = "",
    allowed_hosts: Optional[Set[str]] = None,
) -> List[str]:
    """Extract product detail URLs from a listing page.

    Links are resolved against ``page_url``, kept only if they contain
    ``url_filter``, validated, and de-duplicated in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    product_links: List[str] = []

    for a in soup.select(link_selector):
        href = a.get("href")
        if not href or not isinstance(href, str):
            continue
        full_url = urljoin(page_url, href.strip())
        if url_filter and url_filter not in full_url:
            continue
        try:
            product_links.append(validate_url(full_url, allowed_hosts))
        except InvalidURLError as e:
            logger.warning(f"Skipping invalid product URL: {full_url} - {e}")

    # de-duplicate while preserving order
    seen = set()
    unique_links: List[str] = []
    for link in product_links:
        if link not in seen:
            seen.add(link)
            unique_links.append(link)

    return unique_links


def _text(soup: BeautifulSoup, selector: Optional[str]) -> str:
    if not selector:
        return ""
    el = soup.select_one(selector)
    if el is None:
        return ""
    # textContent semantics: inline markup adds no separators
    return el.get_text().strip()


def extract_location_zip(soup: BeautifulSoup, selector: Optional[str], default_zip: str) -> str:
    """ZIP shown in the page header, or ``default_zip`` when absent."""
    text = _text(soup, selector)
    if not text:
        return default_zip
    match = ZIP_RE.search(text)
    return match.group(1) if match else text


def _image_src(soup: BeautifulSoup, selector: Optional[str], page_url: str) -> str:
    if not selector:
        return ""
    el = soup.select_one(selector)
    if el is None:
        return ""
    src = el.get("src") or el.get("data-src") or ""
    if not isinstance(src, str) or not src.strip():
        return ""
    try:
        return validate_image_url(urljoin(page_url, src.strip()))
    except InvalidURLError as e:
        logger.warning(f"Invalid image URL on {page_url}: {e}")
        return ""


def parse_product_page(
    html: str,
    page_url: str,
    selectors: Dict[str, str],
    placeholders: Dict[str, str],
    default_zip: str,
) -> Product:
    """Read every configured field from a product detail page.

    Missing fields become empty strings, except those in ``placeholders``
    (brand, name, description...) which get their placeholder text, and
    ``location_zip`` which falls back to ``default_zip``.
    """
    soup = BeautifulSoup(html, "html.parser")

    values: Dict[str, str] = {}
    for field_name, selector in selectors.items():
        if field_name in _CONTROL_SELECTORS or field_name in ("picture_url", "location_zip"):
            continue
        if field_name not in Product.__dataclass_fields__:
            logger.debug(f"Ignoring selector for unknown field: {field_name}")
            continue
        values[field_name] = _text(soup, selector)

    values["picture_url"] = _image_src(soup, selectors.get("picture_url"), page_url)

    for field_name, placeholder in placeholders.items():
        if not values.get(field_name):
            values[field_name] = placeholder

    return Product(
        location_zip=extract_location_zip(soup, selectors.get("location_zip"), default_zip),
        product_url=page_url,
        **values,
    )


def find_clickable_ancestor(chain: Sequence[ElementSnapshot]) -> Optional[ElementSnapshot]:
    """Pick what to click for a matched element.

    ``chain`` is the element followed by its ancestors. The nearest
    interactive one wins; otherwise the element itself.
    """
    if not chain:
        return None
    return locate(chain, lambda el: el.is_interactive) or chain[0]


def find_submit_button(
    buttons: Sequence[ElementSnapshot],
    keywords: Sequence[str],
) -> Optional[ElementSnapshot]:
    """First button whose text contains one of ``keywords`` (case-insensitive)."""
    lowered = [k.lower() for k in keywords]
    return locate(buttons, lambda b: any(k in b.text.lower() for k in lowered))


def page_number_from_data_id(data_id: str) -> Optional[int]:
    match = PAGE_BUTTON_RE.search(data_id or "")
    return int(match.group(1)) if match else None


def current_page_from_buttons(buttons: Sequence[ElementSnapshot]) -> int:
    """Page number of the active (or disabled) numbered button; 1 if none."""
    active = locate(
        buttons,
        lambda b: "active" in b.classes or "disabled" in b.attributes,
    )
    if active is None:
        return 1
    return page_number_from_data_id(active.get("data-id")) or 1


def find_page_button(buttons: Sequence[ElementSnapshot], page: int) -> Optional[ElementSnapshot]:
    """Enabled numbered button for ``page``."""
    return locate(
        buttons,
        lambda b: page_number_from_data_id(b.get("data-id")) == page and "disabled" not in b.attributes,
    )
