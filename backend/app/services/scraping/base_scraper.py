"""
Base scraper interface and common functionality for competitor page fetches.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlparse
import logging

import aiohttp
from bs4 import BeautifulSoup

from app.core.config import settings

logger = logging.getLogger(__name__)


class ScrapingError(Exception):
    """Raised when a page cannot be fetched or parsed"""


@dataclass
class ScrapingResult:
    """Standard result format for all scraping operations"""
    url: str
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)
    scraper_type: str = "base"
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "status_code": self.status_code,
            "timestamp": self.timestamp,
            "scraper_type": self.scraper_type,
            "processing_time": self.processing_time,
        }


class BaseScraper(ABC):
    """Base class for scrapers: one aiohttp session, a hard timeout per fetch"""

    def __init__(self,
                 timeout: float = 10.0,
                 custom_headers: Optional[Dict[str, str]] = None):

        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

        # Default headers
        self.headers = {
            "User-Agent": settings.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

        if custom_headers:
            self.headers.update(custom_headers)

    async def __aenter__(self):
        """Async context manager entry"""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers=self.headers,
            connector=aiohttp.TCPConnector(limit=10, limit_per_host=2)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.session:
            await self.session.close()
            self.session = None

    def is_valid_url(self, url: str) -> bool:
        """Check if URL is valid"""
        try:
            result = urlparse(url)
        except ValueError:
            return False
        return all([result.scheme in ("http", "https"), result.netloc])

    def normalize_url(self, url: str, base_url: str = None) -> str:
        """Normalize and clean URL"""
        if not url:
            return ""

        url = url.strip()

        # Handle relative URLs
        if url.startswith("//"):
            return f"https:{url}"
        elif url.startswith(("http://", "https://")):
            return url
        elif base_url:
            return urljoin(base_url if base_url.endswith("/") else f"{base_url}/", url)

        return url

    def extract_domain(self, url: str) -> str:
        """Extract domain from URL"""
        try:
            parsed = urlparse(url)
        except ValueError:
            return ""
        return parsed.netloc.lower()

    async def fetch_html(self, url: str) -> str:
        """Fetch a page body, raising ScrapingError on any non-200 response"""
        if self.session is None:
            raise ScrapingError("Scraper used outside of its async context")

        async with self.session.get(url) as response:
            if response.status != 200:
                raise ScrapingError(f"HTTP {response.status} for {url}")
            return await response.text()

    async def fetch_page(self, url: str) -> ScrapingResult:
        """Fetch and parse a single page within the scraper timeout"""
        start_time = time.time()

        try:
            # Explicit cap on top of the session timeout so slow reads are cancelled too
            content = await asyncio.wait_for(self.fetch_html(url), timeout=self.timeout)
            soup = BeautifulSoup(content, "lxml")
            data = await self.parse_content(soup, url)
        except asyncio.TimeoutError:
            return self._failure(url, f"Request timeout after {self.timeout}s", start_time)
        except (aiohttp.ClientError, ScrapingError) as e:
            return self._failure(url, str(e), start_time)

        return ScrapingResult(
            url=url,
            success=True,
            data=data,
            status_code=200,
            processing_time=time.time() - start_time,
            scraper_type=self.__class__.__name__,
        )

    def _failure(self, url: str, error: str, start_time: float) -> ScrapingResult:
        logger.warning(f"Fetching {url} failed: {error}")
        return ScrapingResult(
            url=url,
            success=False,
            error=error,
            processing_time=time.time() - start_time,
            scraper_type=self.__class__.__name__,
        )

    @abstractmethod
    async def parse_content(self, soup: BeautifulSoup, url: str) -> Dict[str, Any]:
        """Parse content from HTML - to be implemented by subclasses"""
        pass
