"""Configuration and constants for the scraper.

Values are read from the environment (after loading a project ``.env`` file)
with defaults suitable for a local run. Selector maps are module constants and
are copied into every ``ScraperConfig`` so a single instance can override them.
"""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

__all__ = [
    "BASE_URL",
    "URLS",
    "DB_PATH",
    "OUTPUT_DIR",
    "LOG_DIR",
    "DEFAULT_LOCATION_ZIP",
    "BROWSER_ARGS",
    "USER_AGENT",
    "CATEGORIES",
    "CATEGORY_SELECTORS",
    "CATEGORY_MARKER_SELECTOR",
    "AUTH_SELECTORS",
    "PRODUCT_DETAIL_SELECTORS",
    "PAGINATION_SELECTORS",
    "PRODUCT_LISTING",
    "SUBMIT_BUTTON_KEYWORDS",
    "FIELD_PLACEHOLDERS",
    "DelaySettings",
    "ScraperConfig",
    "load_config",
    "parse_size",
]

# Project root (parent of the package directory)
_PROJECT_ROOT = Path(__file__).parent.parent

load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from e


def parse_size(value: str) -> int:
    """Parse a human size like '20m' or '512k' into bytes."""
    text = str(value).strip().lower()
    multipliers = {"k": 1024, "m": 1024 ** 2, "g": 1024 ** 3}
    try:
        if text and text[-1] in multipliers:
            return int(float(text[:-1]) * multipliers[text[-1]])
        return int(text)
    except ValueError as e:
        raise ValueError(f"Invalid size value: {value!r}") from e


BASE_URL = "https://shop.sysco.com"

URLS: Dict[str, str] = {
    "home": "https://shop.sysco.com/",
    "discover": "https://shop.sysco.com/app/discover",
}

# Storage and output
DB_PATH = os.getenv("SYSCO_DB_PATH", "data/sysco.db")
OUTPUT_DIR = os.getenv("SYSCO_OUTPUT_DIR", "data")
LOG_DIR = os.getenv("LOG_DIR", str(_PROJECT_ROOT / "logs"))

DEFAULT_LOCATION_ZIP = os.getenv("SYSCO_LOCATION_ZIP", "97209")

# Chromium launch settings
BROWSER_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Categories are visited in this order
CATEGORIES: List[str] = [
    "Produce",
    "Meat & Seafood",
    "Bakery & Breads",
    "Dairy & Eggs",
    "Canned & Dry",
    "Frozen Foods",
    "Beverages",
]

CATEGORY_SELECTORS: Dict[str, str] = {
    "Produce": '[data-id="lbl_category_app.dashboard.produce.title"]',
    "Meat & Seafood": '[data-id="lbl_category_app.dashboard.meatseafood.title"]',
    "Bakery & Breads": '[data-id="lbl_category_app.dashboard.bakerybread.title"]',
    "Dairy & Eggs": '[data-id="lbl_category_app.dashboard.dairyeggs.title"]',
    "Canned & Dry": '[data-id="lbl_category_app.dashboard.canneddry.title"]',
    "Frozen Foods": '[data-id="lbl_category_app.dashboard.frozenfoods.title"]',
    "Beverages": '[data-id="lbl_category_app.dashboard.beverages.title"]',
}

# Any of these on the discover page means the category list rendered
CATEGORY_MARKER_SELECTOR = '[data-id*="lbl_category_app.dashboard"]'

AUTH_SELECTORS: Dict[str, str] = {
    "guest_button": 'button[data-id="btn_login_continue_as_guest"]',
    "zip_code_input": 'input[data-id="initial_zipcode_modal_input"]',
}

# Logical field name -> CSS selector on the product detail page
PRODUCT_DETAIL_SELECTORS: Dict[str, str] = {
    "brand_name": '[data-id="product_brand_link"]',
    "packaging_information": '[data-id="product_packaging_text"]',
    "packaging_size": '[data-id="pack_size"]',
    "sku": '[data-id="product_id"]',
    "picture_url": '[data-id="main-product-img-v2"]',
    "description": '[data-id="product_description_section"]',
    "category": '[data-id="breadcrumb_category_level1"]',
    "ingredients": '[data-id="ingredients_text"]',
    "gtin": '[data-id="gtin_text"]',
    "upc": '[data-id="manufacturer_upc_text"]',
    "case_size": '[data-id="case_dimensions_text"]',
    "weight": '[data-id="net_weight_text"]',
    "storage_instructions": '[data-id="storage_location_text"]',
    "location_zip": "div.zipcode",
    "read_more_button": '[data-id="ellipsis-read-more-button"]',
    "product_name": '[data-testid="product-title"]',
}

# Used when the page has no value for the field
FIELD_PLACEHOLDERS: Dict[str, str] = {
    "brand_name": "Sysco",
    "product_name": "Product",
    "packaging_information": "Standard packaging",
    "description": "Premium quality product from Sysco",
}

PAGINATION_SELECTORS: Dict[str, str] = {
    "next_button": 'button[data-id="button_page_next"]',
    "page_buttons": 'button[data-id^="button_page_"]',
}

PRODUCT_LISTING: Dict[str, str] = {
    "product_links": 'a[href*="/product-details/"]',
    "product_url_filter": "/product-details/",
}

# Location modal submit button text (case-insensitive substring match)
SUBMIT_BUTTON_KEYWORDS = ("start shopping", "continue", "submit")


@dataclass
class DelaySettings:
    """Named fixed waits, in seconds."""

    page_load: float = 3.0
    modal_handling: float = 2.0
    between_products: float = 0.5
    between_categories: float = 2.0
    after_category_click: float = 8.0
    pagination: float = 5.0
    product_details: float = 1.0

    @classmethod
    def from_env(cls) -> "DelaySettings":
        return cls(
            page_load=_env_float("DELAY_PAGE_LOAD", 3.0),
            modal_handling=_env_float("DELAY_MODAL_HANDLING", 2.0),
            between_products=_env_float("DELAY_BETWEEN_PRODUCTS", 0.5),
            between_categories=_env_float("DELAY_BETWEEN_CATEGORIES", 2.0),
            after_category_click=_env_float("DELAY_AFTER_CATEGORY_CLICK", 8.0),
            pagination=_env_float("DELAY_PAGINATION", 5.0),
            product_details=_env_float("DELAY_PRODUCT_DETAILS", 1.0),
        )

    @classmethod
    def none(cls) -> "DelaySettings":
        """All waits disabled (tests, dry runs against fakes)."""
        return cls(0, 0, 0, 0, 0, 0, 0)


@dataclass
class ScraperConfig:
    """Everything one scrape run needs to know."""

    db_path: str = DB_PATH
    output_dir: str = OUTPUT_DIR
    headless: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    browser_args: List[str] = field(default_factory=lambda: list(BROWSER_ARGS))
    user_agent: str = USER_AGENT
    location_zip: str = DEFAULT_LOCATION_ZIP

    max_pages_per_category: int = 10
    max_products_per_category: int = 500
    max_retries: int = 3
    retry_base_delay: float = 2.0

    # Page timeouts (seconds)
    navigation_timeout: float = 30.0
    product_timeout: float = 25.0
    modal_timeout: float = 10.0
    category_navigation_timeout: float = 10.0
    listing_reload_timeout: float = 15.0

    categories: List[str] = field(default_factory=lambda: list(CATEGORIES))
    category_selectors: Dict[str, str] = field(default_factory=lambda: dict(CATEGORY_SELECTORS))
    category_marker_selector: str = CATEGORY_MARKER_SELECTOR
    auth_selectors: Dict[str, str] = field(default_factory=lambda: dict(AUTH_SELECTORS))
    submit_keywords: List[str] = field(default_factory=lambda: list(SUBMIT_BUTTON_KEYWORDS))
    product_selectors: Dict[str, str] = field(default_factory=lambda: dict(PRODUCT_DETAIL_SELECTORS))
    field_placeholders: Dict[str, str] = field(default_factory=lambda: dict(FIELD_PLACEHOLDERS))
    pagination_selectors: Dict[str, str] = field(default_factory=lambda: dict(PAGINATION_SELECTORS))
    product_listing: Dict[str, str] = field(default_factory=lambda: dict(PRODUCT_LISTING))
    urls: Dict[str, str] = field(default_factory=lambda: dict(URLS))
    delays: DelaySettings = field(default_factory=DelaySettings)

    log_level: str = "info"
    log_dir: str = LOG_DIR
    log_max_size: str = "20m"
    log_max_files: int = 5

    def selector_for_category(self, category: str) -> Optional[str]:
        return self.category_selectors.get(category)

    def copy(self, **changes) -> "ScraperConfig":
        """Deep copy with some fields replaced."""
        clone = copy.deepcopy(self)
        for key, value in changes.items():
            if not hasattr(clone, key):
                raise AttributeError(f"Unknown config field: {key}")
            setattr(clone, key, value)
        return clone


def load_config() -> ScraperConfig:
    """Build a ScraperConfig from the environment."""
    return ScraperConfig(
        db_path=os.getenv("SYSCO_DB_PATH", DB_PATH),
        output_dir=os.getenv("SYSCO_OUTPUT_DIR", OUTPUT_DIR),
        headless=os.getenv("HEADLESS", "true").lower() != "false",
        viewport_width=_env_int("VIEWPORT_WIDTH", 1920),
        viewport_height=_env_int("VIEWPORT_HEIGHT", 1080),
        location_zip=os.getenv("SYSCO_LOCATION_ZIP", DEFAULT_LOCATION_ZIP),
        max_pages_per_category=_env_int("MAX_PAGES_PER_CATEGORY", 10),
        max_products_per_category=_env_int("MAX_PRODUCTS_PER_CATEGORY", 500),
        max_retries=_env_int("MAX_RETRIES", 3),
        retry_base_delay=_env_float("RETRY_BASE_DELAY", 2.0),
        delays=DelaySettings.from_env(),
        log_level=os.getenv("LOG_LEVEL", "info"),
        log_dir=os.getenv("LOG_DIR", LOG_DIR),
        log_max_size=os.getenv("LOG_MAX_SIZE", "20m"),
        log_max_files=_env_int("LOG_MAX_FILES", 5),
    )
