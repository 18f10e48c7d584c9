"""
Best-effort product discovery on competitor home pages.
"""

from typing import Any, Dict, List, Optional
import logging

from bs4 import BeautifulSoup

from app.core.config import settings
from .base_scraper import BaseScraper
from .product_strategies import ProductExtractionStrategy, extract_products

logger = logging.getLogger(__name__)


def competitor_home_url(domain: str) -> str:
    domain = (domain or "").strip()
    if domain.startswith(("http://", "https://")):
        return domain
    return f"https://{domain.rstrip('/')}"


class CompetitorProductScraper(BaseScraper):
    """Finds a handful of product listings on a competitor's public page"""

    def __init__(self,
                 timeout: float = None,
                 product_limit: int = None,
                 strategies: Optional[List[ProductExtractionStrategy]] = None,
                 **kwargs):
        super().__init__(timeout=timeout or settings.ENHANCEMENT_FETCH_TIMEOUT, **kwargs)
        self.product_limit = product_limit or settings.ENHANCEMENT_PRODUCTS_PER_COMPETITOR
        self.strategies = strategies

    async def parse_content(self, soup: BeautifulSoup, url: str) -> Dict[str, Any]:
        domain = self.extract_domain(url)
        return {
            "products": extract_products(soup, domain, self.product_limit, self.strategies),
        }

    async def scrape_products(self, domain: str) -> List[Dict[str, Any]]:
        """Return up to ``product_limit`` products; any failure yields an empty list"""
        if not domain:
            return []

        url = competitor_home_url(domain)
        if not self.is_valid_url(url):
            logger.warning(f"Skipping competitor with invalid domain: {domain}")
            return []

        logger.info(f"Scraping products from: {url}")
        try:
            result = await self.fetch_page(url)
        except Exception as e:
            # Unexpected parser/network errors stay contained to this competitor
            logger.warning(f"Error scraping {url}: {e}")
            return []

        if not result.success:
            return []

        products = result.data.get("products", [])
        logger.info(f"Found {len(products)} products from {url}")
        return products
