"""Exception types raised by the scraper."""

__all__ = [
    "ScraperError",
    "DriverInitError",
    "StructuralError",
    "CategoryListError",
    "ExtractionError",
    "UnknownCategoryError",
]


class ScraperError(Exception):
    """Base class for scraper failures."""


class DriverInitError(ScraperError):
    """The browser could not be launched. Nothing else can run."""


class StructuralError(ScraperError):
    """A control the flow depends on is missing from the page.

    Usually means the site layout changed, so retrying will not help.
    """


class CategoryListError(StructuralError):
    """The category list page could not be restored after a category."""


class ExtractionError(ScraperError):
    """A product page did not yield an identifiable record (no SKU)."""

    def __init__(self, url: str, message: str = ""):
        self.url = url
        super().__init__(message or f"Failed to extract details from: {url}")


class UnknownCategoryError(ScraperError):
    """The category has no configured selector."""

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Unknown category: {category}")
