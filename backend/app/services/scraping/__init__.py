"""
Competitor page scraping used to enrich competitive analysis.

This package provides:
- A base scraper with a bounded-time page fetch
- Pluggable product listing extraction strategies
- A competitor scraper that never raises to its caller
"""

from .base_scraper import BaseScraper, ScrapingResult, ScrapingError
from .competitor_scraper import CompetitorProductScraper
from .product_strategies import (
    ProductExtractionStrategy, CssSelectorStrategy, JsonLdProductStrategy,
    DEFAULT_STRATEGIES, extract_products
)

__all__ = [
    "BaseScraper",
    "ScrapingResult",
    "ScrapingError",
    "CompetitorProductScraper",
    "ProductExtractionStrategy",
    "CssSelectorStrategy",
    "JsonLdProductStrategy",
    "DEFAULT_STRATEGIES",
    "extract_products",
]
