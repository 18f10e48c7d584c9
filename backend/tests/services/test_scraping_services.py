"""
Unit tests for competitor product scraping: extraction strategies, the
bounded-time page fetch and the never-raising competitor scraper.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, patch

import aiohttp
from bs4 import BeautifulSoup

from app.services.scraping.base_scraper import ScrapingError, ScrapingResult
from app.services.scraping.competitor_scraper import CompetitorProductScraper, competitor_home_url
from app.services.scraping.product_strategies import (
    CssSelectorStrategy, JsonLdProductStrategy, DEFAULT_STRATEGIES, absolute_url, build_product,
    extract_products
)


def _soup(html):
    return BeautifulSoup(html, "lxml")


PRODUCT_CARDS_HTML = """
<html><body>
  <div class="product-card">
    <a href="/products/trail-runner"><img data-src="/img/trail.jpg"></a>
    <h3>Trail Runner</h3>
    <span class="price">$129.00</span>
  </div>
  <div class="product-card">
    <a href="https://cdn.rival.com/p/road"><img src="//cdn.rival.com/road.jpg"></a>
    <h2>Road Racer</h2>
    <span class="price">
        &euro;89,99
    </span>
  </div>
  <div class="product-card">
    <h3>Recovery Sandal</h3>
  </div>
  <div class="product-card">
    <h3>Fourth Product</h3>
  </div>
</body></html>
"""


@pytest.mark.unit
class TestProductHelpers:

    def test_absolute_url(self):
        assert absolute_url("/p/1", "rival.com") == "https://rival.com/p/1"
        assert absolute_url("//cdn.rival.com/a.jpg", "rival.com") == "https://cdn.rival.com/a.jpg"
        assert absolute_url("http://rival.com/x", "rival.com") == "http://rival.com/x"
        assert absolute_url("", "rival.com") == ""

    def test_build_product_parses_price(self):
        product = build_product("Trail Runner", "$129.00", "/img.jpg", "/p/1", "rival.com")

        assert product == {
            "name": "Trail Runner",
            "price": "$129.00",
            "imageUrl": "https://rival.com/img.jpg",
            "productUrl": "https://rival.com/p/1",
            "priceAmount": 129.0,
            "currency": "$",
        }

    def test_build_product_defaults(self):
        product = build_product("x" * 150, "", "", "", "rival.com")

        assert len(product["name"]) == 100
        assert product["price"] == "Price unavailable"
        assert product["imageUrl"] == ""
        assert product["productUrl"] == "https://rival.com"
        assert "priceAmount" not in product


@pytest.mark.unit
class TestCssSelectorStrategy:

    def test_extracts_product_cards(self):
        products = CssSelectorStrategy(".product-card").extract(_soup(PRODUCT_CARDS_HTML), "rival.com", 3)

        assert [p["name"] for p in products] == ["Trail Runner", "Road Racer", "Recovery Sandal"]

        trail, road, sandal = products
        assert trail["imageUrl"] == "https://rival.com/img/trail.jpg"
        assert trail["productUrl"] == "https://rival.com/products/trail-runner"
        assert trail["priceAmount"] == 129.0
        assert road["imageUrl"] == "https://cdn.rival.com/road.jpg"
        assert road["productUrl"] == "https://cdn.rival.com/p/road"
        assert road["price"] == "€89,99"
        assert sandal["price"] == "Price unavailable"
        assert sandal["productUrl"] == "https://rival.com"

    def test_tiles_without_name_are_skipped(self):
        html = '<div class="product-item"><span class="price">$5</span></div>' \
               '<div class="product-item"><h3>Named</h3></div>'

        products = CssSelectorStrategy(".product-item").extract(_soup(html), "rival.com", 3)

        assert [p["name"] for p in products] == ["Named"]

    def test_no_match_returns_empty(self):
        assert CssSelectorStrategy("article.product").extract(_soup(PRODUCT_CARDS_HTML), "rival.com", 3) == []


@pytest.mark.unit
class TestJsonLdProductStrategy:

    def _page(self, *payloads):
        scripts = "".join(
            f'<script type="application/ld+json">{json.dumps(p)}</script>' for p in payloads
        )
        return _soup(f"<html><head>{scripts}</head><body></body></html>")

    def test_product_blocks(self):
        soup = self._page({
            "@context": "https://schema.org",
            "@type": "Product",
            "name": "Trail Runner",
            "image": ["/img/trail.jpg"],
            "url": "/p/trail",
            "offers": {"@type": "Offer", "price": "129.00", "priceCurrency": "USD"},
        })

        products = JsonLdProductStrategy().extract(soup, "rival.com", 3)

        assert products == [{
            "name": "Trail Runner",
            "price": "USD 129.00",
            "imageUrl": "https://rival.com/img/trail.jpg",
            "productUrl": "https://rival.com/p/trail",
            "priceAmount": 129.0,
            "currency": "USD",
        }]

    def test_item_list_and_graph(self):
        soup = self._page(
            {"@type": "ItemList", "itemListElement": [
                {"@type": "ListItem", "item": {"@type": "Product", "name": "One"}},
                {"@type": "ListItem", "item": {"@type": "Product", "name": "Two"}},
            ]},
            {"@graph": [{"@type": "Product", "name": "Three"}, {"@type": "WebPage"}]},
        )

        products = JsonLdProductStrategy().extract(soup, "rival.com", 5)

        assert [p["name"] for p in products] == ["One", "Two", "Three"]

    def test_respects_limit_and_skips_bad_json(self):
        soup = _soup(
            '<script type="application/ld+json">{not json</script>'
            '<script type="application/ld+json">'
            + json.dumps([{"@type": "Product", "name": f"P{i}"} for i in range(5)])
            + "</script>"
        )

        products = JsonLdProductStrategy().extract(soup, "rival.com", 2)

        assert [p["name"] for p in products] == ["P0", "P1"]


@pytest.mark.unit
class TestStrategyCascade:

    def test_default_order(self):
        names = [s.name for s in DEFAULT_STRATEGIES]
        assert names == [
            "css:article.product",
            "css:.product-item",
            'css:[itemtype*="Product"]',
            "css:.product-card",
            "css:[data-product]",
            "json-ld",
        ]

    def test_first_non_empty_strategy_wins(self):
        html = """
        <article class="product"><h2>From Article</h2></article>
        <div class="product-card"><h3>From Card</h3></div>
        """

        products = extract_products(_soup(html), "rival.com", 3)

        assert [p["name"] for p in products] == ["From Article"]

    def test_falls_through_to_json_ld(self):
        html = '<script type="application/ld+json">{"@type": "Product", "name": "Only LD"}</script>'

        products = extract_products(_soup(html), "rival.com", 3)

        assert [p["name"] for p in products] == ["Only LD"]

    def test_custom_strategies(self):
        html = '<li class="tile"><h3>Custom</h3></li><div class="product-card"><h3>Card</h3></div>'

        products = extract_products(_soup(html), "rival.com", 3, strategies=[CssSelectorStrategy("li.tile")])

        assert [p["name"] for p in products] == ["Custom"]

    def test_nothing_found(self):
        assert extract_products(_soup("<p>About us</p>"), "rival.com", 3) == []


@pytest.mark.unit
class TestCompetitorProductScraper:

    def test_home_url(self):
        assert competitor_home_url("rival.com") == "https://rival.com"
        assert competitor_home_url("rival.com/") == "https://rival.com"
        assert competitor_home_url("http://rival.com") == "http://rival.com"

    async def test_scrape_products_from_page(self):
        async with CompetitorProductScraper(product_limit=2) as scraper:
            with patch.object(scraper, "fetch_html", AsyncMock(return_value=PRODUCT_CARDS_HTML)):
                products = await scraper.scrape_products("rival.com")

        assert [p["name"] for p in products] == ["Trail Runner", "Road Racer"]

    async def test_missing_domain_yields_nothing(self):
        scraper = CompetitorProductScraper()
        with patch.object(scraper, "fetch_page", AsyncMock()) as fetch_page:
            assert await scraper.scrape_products("") == []
            assert await scraper.scrape_products(None) == []
        fetch_page.assert_not_called()

    async def test_http_error_yields_nothing(self):
        async with CompetitorProductScraper() as scraper:
            with patch.object(scraper, "fetch_html", AsyncMock(side_effect=ScrapingError("HTTP 503"))):
                assert await scraper.scrape_products("rival.com") == []

    async def test_client_error_yields_nothing(self):
        async with CompetitorProductScraper() as scraper:
            with patch.object(scraper, "fetch_html",
                              AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))):
                assert await scraper.scrape_products("rival.com") == []

    async def test_unexpected_error_yields_nothing(self):
        async with CompetitorProductScraper() as scraper:
            with patch.object(scraper, "fetch_page", AsyncMock(side_effect=UnicodeDecodeError(
                "utf-8", b"\xff", 0, 1, "invalid start byte"
            ))):
                assert await scraper.scrape_products("rival.com") == []

    async def test_slow_fetch_is_cancelled_at_timeout(self):
        cancelled = asyncio.Event()

        async def hang(url):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async with CompetitorProductScraper(timeout=0.05) as scraper:
            with patch.object(scraper, "fetch_html", side_effect=hang):
                result = await scraper.fetch_page("https://rival.com")
                products = await scraper.scrape_products("rival.com")

        assert isinstance(result, ScrapingResult)
        assert result.success is False
        assert "timeout" in result.error.lower()
        assert cancelled.is_set()
        assert products == []

    async def test_fetch_outside_context_fails_cleanly(self):
        scraper = CompetitorProductScraper()

        result = await scraper.fetch_page("https://rival.com")

        assert result.success is False
        assert "context" in result.error
