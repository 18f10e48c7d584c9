"""
Product listing extraction strategies.

Storefronts mark up product tiles in many ways. Each strategy knows one layout
and returns whatever listings it can find; the scraper tries them in order and
stops at the first one that yields anything. New layouts are supported by adding
a strategy to the list, without touching the scraper or the enhancement worker.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin
import logging

from bs4 import BeautifulSoup, Tag
from price_parser import Price

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
UNKNOWN_PRODUCT = "Unknown Product"
PRICE_UNAVAILABLE = "Price unavailable"

NAME_SELECTOR = 'h2, h3, .product-title, [itemprop="name"]'
PRICE_SELECTOR = '.price, [itemprop="price"], .product-price'


def absolute_url(url: str, domain: str) -> str:
    """Resolve a possibly relative URL against the competitor's home page"""
    if not url:
        return ""
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    return urljoin(f"https://{domain}/", url)


def build_product(name: str, price_text: str, image_url: str, product_url: str,
                  domain: str) -> Dict[str, Any]:
    product = {
        "name": name[:MAX_NAME_LENGTH],
        "price": price_text or PRICE_UNAVAILABLE,
        "imageUrl": absolute_url(image_url, domain),
        "productUrl": absolute_url(product_url, domain) or f"https://{domain}",
    }

    parsed = Price.fromstring(price_text or "")
    if parsed.amount is not None:
        product["priceAmount"] = float(parsed.amount)
        product["currency"] = parsed.currency

    return product


class ProductExtractionStrategy(ABC):
    """One way of finding product listings on a page"""

    name = "base"

    @abstractmethod
    def extract(self, soup: BeautifulSoup, domain: str, limit: int) -> List[Dict[str, Any]]:
        """Return up to ``limit`` product dicts, or an empty list"""


class CssSelectorStrategy(ProductExtractionStrategy):
    """Product tiles matched by a CSS selector"""

    def __init__(self, container_selector: str):
        self.container_selector = container_selector
        self.name = f"css:{container_selector}"

    def extract(self, soup: BeautifulSoup, domain: str, limit: int) -> List[Dict[str, Any]]:
        products = []
        # Like the listing itself, only the first few tiles are considered
        for element in soup.select(self.container_selector)[:limit]:
            product = self._parse_tile(element, domain)
            if product:
                products.append(product)
        return products

    def _parse_tile(self, element: Tag, domain: str) -> Optional[Dict[str, Any]]:
        name_el = element.select_one(NAME_SELECTOR)
        name = name_el.get_text(strip=True)[:MAX_NAME_LENGTH] if name_el else ""
        if not name or name == UNKNOWN_PRODUCT:
            return None

        price_el = element.select_one(PRICE_SELECTOR)
        price_text = re.sub(r"\s+", " ", price_el.get_text(strip=True)) if price_el else ""

        img = element.find("img")
        image_url = ""
        if img:
            image_url = img.get("src") or img.get("data-src") or ""

        link = element.find("a")
        product_url = link.get("href", "") if link else ""

        return build_product(name, price_text, image_url, product_url, domain)


class JsonLdProductStrategy(ProductExtractionStrategy):
    """schema.org Product / ItemList blocks in application/ld+json scripts"""

    name = "json-ld"

    def extract(self, soup: BeautifulSoup, domain: str, limit: int) -> List[Dict[str, Any]]:
        products = []
        for script in soup.find_all("script", type="application/ld+json"):
            try:
                payload = json.loads(script.string or "")
            except (TypeError, ValueError):
                continue

            for item in self._iter_products(payload):
                product = self._parse_item(item, domain)
                if product:
                    products.append(product)
                if len(products) >= limit:
                    return products
        return products

    def _iter_products(self, payload: Any) -> Iterable[Dict[str, Any]]:
        if isinstance(payload, list):
            for entry in payload:
                yield from self._iter_products(entry)
            return
        if not isinstance(payload, dict):
            return

        kind = payload.get("@type")
        kinds = kind if isinstance(kind, list) else [kind]
        if "Product" in kinds:
            yield payload
        elif "ItemList" in kinds:
            for element in payload.get("itemListElement") or []:
                if isinstance(element, dict):
                    yield from self._iter_products(element.get("item", element))
        elif "@graph" in payload:
            yield from self._iter_products(payload["@graph"])

    def _parse_item(self, item: Dict[str, Any], domain: str) -> Optional[Dict[str, Any]]:
        name = str(item.get("name") or "").strip()
        if not name:
            return None

        offers = item.get("offers") or {}
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        price_text = ""
        if isinstance(offers, dict) and offers.get("price") is not None:
            price_text = f"{offers.get('priceCurrency', '')} {offers['price']}".strip()

        image = item.get("image") or ""
        if isinstance(image, list):
            image = image[0] if image else ""
        if isinstance(image, dict):
            image = image.get("url", "")

        return build_product(name, price_text, str(image), str(item.get("url") or ""), domain)


DEFAULT_STRATEGIES: List[ProductExtractionStrategy] = [
    CssSelectorStrategy("article.product"),
    CssSelectorStrategy(".product-item"),
    CssSelectorStrategy('[itemtype*="Product"]'),
    CssSelectorStrategy(".product-card"),
    CssSelectorStrategy("[data-product]"),
    JsonLdProductStrategy(),
]


def extract_products(soup: BeautifulSoup, domain: str, limit: int,
                     strategies: List[ProductExtractionStrategy] = None) -> List[Dict[str, Any]]:
    """Run strategies in order; the first non-empty result wins"""
    for strategy in strategies or DEFAULT_STRATEGIES:
        products = strategy.extract(soup, domain, limit)
        if products:
            logger.debug(f"Strategy {strategy.name} found {len(products)} products on {domain}")
            return products[:limit]
    return []
