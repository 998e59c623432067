"""CSV export of stored products."""

import csv
import os
from datetime import date
from typing import Any, Dict, List, Optional

from sysco_scrape.logging_config import get_logger

__all__ = [
    "REQUIRED_COLUMNS",
    "ADDITIONAL_COLUMNS",
    "default_export_path",
    "product_to_row",
    "export_to_csv",
]

logger = get_logger("csv_utils")

# Always exported, in this order
REQUIRED_COLUMNS = [
    "brand_name",
    "product_name",
    "packaging_information",
    "sku",
    "picture_url",
    "description",
]

# Added with include_all=True
ADDITIONAL_COLUMNS = [
    "category",
    "product_url",
    "case_size",
    "upc",
    "gtin",
    "ingredients",
    "storage_instructions",
    "location_zip",
    "scraped_date",
]


def default_export_path(output_dir: str = "data", full: bool = False, today: Optional[date] = None) -> str:
    """Date-stamped export file name, e.g. data/sysco_products_2024-05-01.csv."""
    stamp = (today or date.today()).isoformat()
    prefix = "sysco_products_full" if full else "sysco_products"
    return os.path.join(output_dir, f"{prefix}_{stamp}.csv")


def product_to_row(product: Dict[str, Any], columns: List[str]) -> Dict[str, Any]:
    """Pick ``columns`` from a stored product, with empty strings for missing values."""
    row: Dict[str, Any] = {}
    for column in columns:
        value = product.get(column)
        row[column] = "" if value is None else value
    return row


def export_to_csv(
    db_path: str,
    output_path: Optional[str] = None,
    include_all: bool = False,
    output_dir: str = "data",
) -> Dict[str, Any]:
    """Export every stored product to CSV.

    Args:
        db_path: Path to the SQLite database
        output_path: CSV path (default: date-stamped file in ``output_dir``)
        include_all: Add the extended columns to the required ones
        output_dir: Directory for the default path

    Returns:
        Dict with file_path, total_products, columns, categories

    Raises:
        ValueError: If the database holds no products
    """
    from sysco_scrape.db import get_all_products

    products = get_all_products(db_path)
    if not products:
        raise ValueError("No products found to export")

    csv_path = output_path or default_export_path(output_dir)
    columns = REQUIRED_COLUMNS + ADDITIONAL_COLUMNS if include_all else list(REQUIRED_COLUMNS)

    os.makedirs(os.path.dirname(csv_path) or ".", exist_ok=True)
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for product in products:
            writer.writerow(product_to_row(product, columns))

    result = {
        "file_path": csv_path,
        "total_products": len(products),
        "columns": len(columns),
        "categories": len({p.get("category") for p in products}),
    }
    logger.info(f"Exported {len(products)} products to {csv_path}")
    return result
