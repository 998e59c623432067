"""Sysco product scraper package."""

__version__ = "1.0.0"

# Re-export main components for convenient imports
from sysco_scrape.config import (
    BASE_URL,
    CATEGORIES,
    DB_PATH,
    ScraperConfig,
    load_config,
)
from sysco_scrape.csv_utils import export_to_csv
from sysco_scrape.db import batch_upsert_products, close_db, get_statistics, init_db
from sysco_scrape.models import Product
from sysco_scrape.scraper import scrape_category
from sysco_scrape.workflows import ScrapeSummary, run_scraper

__all__ = [
    # Version
    "__version__",
    # Config
    "BASE_URL",
    "CATEGORIES",
    "DB_PATH",
    "ScraperConfig",
    "load_config",
    # Models
    "Product",
    # Core functions
    "run_scraper",
    "ScrapeSummary",
    "scrape_category",
    "init_db",
    "close_db",
    "batch_upsert_products",
    "get_statistics",
    "export_to_csv",
]
