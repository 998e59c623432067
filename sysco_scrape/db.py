"""SQLite database schema and helpers for the scraper.

One connection per database path is opened on first use, reused for the rest
of the process, and closed by ``close_db``.
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sysco_scrape.config import DB_PATH, DEFAULT_LOCATION_ZIP
from sysco_scrape.logging_config import get_logger, log_scrape_event
from sysco_scrape.models import Product

__all__ = [
    "DEFAULT_DB_PATH",
    "TABLE_NAME",
    "PRODUCT_COLUMNS",
    "get_connection",
    "close_db",
    "init_db",
    "upsert_product",
    "batch_upsert_products",
    "get_all_products",
    "get_products_by_category",
    "get_total_product_count",
    "get_product_count_by_category",
    "get_statistics",
]

logger = get_logger("db")

DEFAULT_DB_PATH = DB_PATH
TABLE_NAME = "sysco_products"

# Columns written on every upsert, in insert order
PRODUCT_COLUMNS = (
    "sku",
    "product_name",
    "brand_name",
    "packaging_information",
    "packaging_size",
    "picture_url",
    "description",
    "category",
    "product_url",
    "unit_size",
    "case_size",
    "weight",
    "upc",
    "gtin",
    "supplier",
    "manufacturer",
    "specifications",
    "nutrition_info",
    "ingredients",
    "allergens",
    "storage_instructions",
    "shelf_life",
    "location_zip",
    "scrape_session_id",
    "structured_data",
)

JSON_COLUMNS = ("specifications", "nutrition_info", "structured_data")

# Never overwritten once a row exists
_KEY_COLUMNS = ("sku", "location_zip")

_connections: Dict[str, sqlite3.Connection] = {}


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return the process-wide connection for ``db_path``, opening it if needed."""
    key = str(db_path)
    conn = _connections.get(key)
    if conn is not None:
        return conn

    if key != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(key)
    conn.row_factory = sqlite3.Row
    _connections[key] = conn
    logger.debug(f"Connected to database: {db_path}")
    return conn


def close_db(db_path: Optional[str] = None) -> None:
    """Close the connection for ``db_path``, or every open connection."""
    keys = [str(db_path)] if db_path is not None else list(_connections)
    for key in keys:
        conn = _connections.pop(key, None)
        if conn is not None:
            conn.close()
            logger.debug(f"Database connection closed: {key}")


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database schema."""
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sku TEXT,
            product_name TEXT NOT NULL,
            brand_name TEXT,
            packaging_information TEXT,
            packaging_size TEXT,
            picture_url TEXT,
            description TEXT,
            category TEXT,
            product_url TEXT,

            -- Additional product details
            unit_size TEXT,
            case_size TEXT,
            weight TEXT,
            upc TEXT,
            gtin TEXT,
            supplier TEXT,
            manufacturer TEXT,

            -- Product specifications
            specifications TEXT,       -- JSON
            nutrition_info TEXT,       -- JSON
            ingredients TEXT,
            allergens TEXT,
            storage_instructions TEXT,
            shelf_life TEXT,

            -- Scraping metadata
            location_zip TEXT DEFAULT '97209',
            scraped_date TEXT,
            updated_date TEXT,
            scrape_session_id TEXT,

            structured_data TEXT,      -- JSON

            UNIQUE(sku, location_zip)
        )
    """)

    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_sysco_sku ON {TABLE_NAME}(sku)")
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_sysco_category ON {TABLE_NAME}(category)")
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_sysco_brand ON {TABLE_NAME}(brand_name)")
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_sysco_scraped_date ON {TABLE_NAME}(scraped_date)")
    cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_sysco_location ON {TABLE_NAME}(location_zip)")

    conn.commit()
    logger.info(f"Database schema ready: {db_path}")


def _column_value(product: Product, column: str) -> Any:
    value = getattr(product, column)
    if column in JSON_COLUMNS and isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


def upsert_product(
    db_path: str,
    product: Product,
    session_id: Optional[str] = None,
    now: Optional[str] = None,
) -> int:
    """Insert a product or update the row with the same (sku, location_zip).

    On update every column is overwritten except ``scraped_date``, which keeps
    the first insert's value; ``updated_date`` is refreshed.

    Returns:
        The row ID
    """
    timestamp = now or datetime.now().isoformat()
    if product.sku is None:
        product.sku = ""
    if not product.location_zip:
        product.location_zip = DEFAULT_LOCATION_ZIP
    if session_id is not None:
        product.scrape_session_id = session_id

    values = [_column_value(product, column) for column in PRODUCT_COLUMNS]
    columns = ", ".join(PRODUCT_COLUMNS)
    placeholders = ", ".join("?" for _ in PRODUCT_COLUMNS)
    updates = ",\n            ".join(
        f"{column} = excluded.{column}" for column in PRODUCT_COLUMNS if column not in _KEY_COLUMNS
    )

    conn = get_connection(db_path)
    cursor = conn.cursor()
    try:
        cursor.execute(f"""
            INSERT INTO {TABLE_NAME} ({columns}, scraped_date, updated_date)
            VALUES ({placeholders}, ?, ?)
            ON CONFLICT(sku, location_zip) DO UPDATE SET
            {updates},
            updated_date = excluded.updated_date
        """, values + [timestamp, timestamp])

        cursor.execute(
            f"SELECT id, scraped_date, updated_date FROM {TABLE_NAME} WHERE sku = ? AND location_zip = ?",
            (product.sku, product.location_zip),
        )
        row = cursor.fetchone()
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise

    product.id = row["id"]
    product.scraped_date = row["scraped_date"]
    product.updated_date = row["updated_date"]
    return row["id"]


def batch_upsert_products(
    db_path: str,
    products: Iterable[Product],
    session_id: Optional[str] = None,
) -> Dict[str, int]:
    """Upsert each product independently.

    A failing record is logged and counted; the rest of the batch still runs.

    Returns:
        {"saved": n, "errors": n}
    """
    products = list(products)
    if not products:
        logger.info("No products to save")
        return {"saved": 0, "errors": 0}

    saved = 0
    errors = 0
    logger.info(f"Starting batch upsert of {len(products)} products...")

    for i, product in enumerate(products, start=1):
        try:
            upsert_product(db_path, product, session_id=session_id)
            saved += 1
        except Exception as e:
            errors += 1
            logger.error(f"Error saving product {i} (SKU: {product.sku or '?'}, URL: {product.product_url}): {e}")

        if i % 10 == 0:
            logger.info(f"Progress: {i}/{len(products)} products processed")

    logger.info(f"Batch upsert complete: {saved} saved, {errors} errors")
    log_scrape_event("batch_saved", {"saved": saved, "errors": errors, "session_id": session_id})
    return {"saved": saved, "errors": errors}


def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    product = dict(row)
    for column in JSON_COLUMNS:
        raw = product.get(column)
        if raw:
            try:
                product[column] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"Unreadable JSON in {column} for row {product.get('id')}")
    return product


def get_all_products(db_path: str = DEFAULT_DB_PATH) -> List[Dict[str, Any]]:
    """All stored products, ordered by category, brand and name."""
    cursor = get_connection(db_path).cursor()
    cursor.execute(f"SELECT * FROM {TABLE_NAME} ORDER BY category, brand_name, product_name")
    return [_row_to_dict(row) for row in cursor.fetchall()]


def get_products_by_category(
    db_path: str,
    category: str,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Products in ``category``, most recently updated first."""
    sql = f"SELECT * FROM {TABLE_NAME} WHERE category = ? ORDER BY updated_date DESC"
    params: List[Any] = [category]
    if limit:
        sql += " LIMIT ?"
        params.append(limit)

    cursor = get_connection(db_path).cursor()
    cursor.execute(sql, params)
    return [_row_to_dict(row) for row in cursor.fetchall()]


def get_total_product_count(db_path: str = DEFAULT_DB_PATH) -> int:
    cursor = get_connection(db_path).cursor()
    cursor.execute(f"SELECT COUNT(*) AS count FROM {TABLE_NAME}")
    return cursor.fetchone()["count"]


def get_product_count_by_category(db_path: str = DEFAULT_DB_PATH) -> List[Dict[str, Any]]:
    cursor = get_connection(db_path).cursor()
    cursor.execute(f"""
        SELECT category, COUNT(*) AS count FROM {TABLE_NAME}
        GROUP BY category ORDER BY count DESC
    """)
    return [dict(row) for row in cursor.fetchall()]


def get_statistics(db_path: str = DEFAULT_DB_PATH) -> Dict[str, Any]:
    """Summary numbers about the stored data.

    Keys: total, by_category, by_brand (top 10), with_images, recently_scraped.
    """
    cursor = get_connection(db_path).cursor()

    cursor.execute(f"""
        SELECT brand_name, COUNT(*) AS count FROM {TABLE_NAME}
        GROUP BY brand_name ORDER BY count DESC LIMIT 10
    """)
    by_brand = [dict(row) for row in cursor.fetchall()]

    cursor.execute(f"""
        SELECT COUNT(*) AS count FROM {TABLE_NAME}
        WHERE picture_url IS NOT NULL AND picture_url != ''
    """)
    with_images = cursor.fetchone()["count"]

    cursor.execute(f"""
        SELECT COUNT(*) AS count FROM {TABLE_NAME}
        WHERE date(scraped_date) = date('now', 'localtime')
    """)
    recently_scraped = cursor.fetchone()["count"]

    return {
        "total": get_total_product_count(db_path),
        "by_category": get_product_count_by_category(db_path),
        "by_brand": by_brand,
        "with_images": with_images,
        "recently_scraped": recently_scraped,
    }
