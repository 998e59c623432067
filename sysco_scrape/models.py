"""Data models for products."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

__all__ = ["Product"]


@dataclass
class Product:
    """One product as extracted from a Sysco product detail page.

    (sku, location_zip) identifies a stored row. Re-extracting the same pair
    updates that row instead of adding a new one.
    """

    sku: str = ""
    location_zip: str = ""

    product_name: Optional[str] = None
    brand_name: Optional[str] = None
    packaging_information: Optional[str] = None
    packaging_size: Optional[str] = None
    picture_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    ingredients: Optional[str] = None
    gtin: Optional[str] = None
    upc: Optional[str] = None
    case_size: Optional[str] = None
    weight: Optional[str] = None
    storage_instructions: Optional[str] = None
    product_url: Optional[str] = None

    # Less common details, kept when a page provides them
    unit_size: Optional[str] = None
    supplier: Optional[str] = None
    manufacturer: Optional[str] = None
    allergens: Optional[str] = None
    shelf_life: Optional[str] = None

    # Free-form JSON blobs
    specifications: Optional[Dict[str, Any]] = None
    nutrition_info: Optional[Dict[str, Any]] = None
    structured_data: Optional[Dict[str, Any]] = None

    # Set by the store, not by extraction
    scraped_date: Optional[str] = None
    updated_date: Optional[str] = None
    scrape_session_id: Optional[str] = None
    id: Optional[int] = field(default=None, compare=False)

    @property
    def is_valid(self) -> bool:
        """A record counts as extracted only if it carries a SKU."""
        return bool(self.sku)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
