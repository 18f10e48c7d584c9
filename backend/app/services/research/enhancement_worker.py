"""
Background enhancement of the competitive analysis section.

Runs after the analysis session has already completed: re-opens the
competitive_analysis row, scrapes a few product listings per competitor and
writes the enriched competitor list back without losing recorded insights.
The worker never raises; failures come back as ``EnhancementResult(success=False)``.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.analysis import ProgressStatus, SectionName
from app.services.analysis.progress_ledger import ProgressLedger, utcnow
from app.services.scraping.competitor_scraper import CompetitorProductScraper

logger = logging.getLogger(__name__)

SECTION = SectionName.COMPETITIVE_ANALYSIS


@dataclass
class EnhancementResult:
    success: bool
    enriched_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "enrichedCount": self.enriched_count}
        return {"success": False, "error": self.error}


class EnhancementWorker:
    """Enriches competitors of one session with scraped product listings"""

    def __init__(self,
                 db: Session,
                 scraper_factory: Callable[[], CompetitorProductScraper] = None,
                 max_competitors: int = None,
                 max_concurrency: int = None,
                 progress_marker: int = None):
        self.ledger = ProgressLedger(db)
        self.scraper_factory = scraper_factory or CompetitorProductScraper
        self.max_competitors = max_competitors or settings.ENHANCEMENT_MAX_COMPETITORS
        self.max_concurrency = max_concurrency or settings.ENHANCEMENT_MAX_CONCURRENCY
        self.progress_marker = progress_marker or settings.ENHANCEMENT_PROGRESS_MARKER

    async def run(self, session_id: str, competitors: Sequence[Mapping[str, Any]]) -> EnhancementResult:
        logger.info(f"Starting background enhancement for session: {session_id}")

        try:
            self.ledger.update(
                session_id, SECTION,
                status=ProgressStatus.ENHANCING,
                progress_percentage=self.progress_marker,
            )

            descriptors = [dict(c) for c in competitors if isinstance(c, Mapping)]
            batch = descriptors[:self.max_competitors]
            # Competitors past the batch cap are kept as they are
            overflow = descriptors[self.max_competitors:]

            enriched = await self._enrich_batch(batch)
            logger.info(f"Product scraping completed for session {session_id}")

            existing = self.ledger.read(session_id, SECTION)
            insights = ((existing.data or {}).get("insights") if existing else None) or []

            self.ledger.update(
                session_id, SECTION,
                merge_data=True,
                status=ProgressStatus.COMPLETED,
                progress_percentage=100,
                data={"competitors": enriched + overflow, "insights": insights},
                completed_at=utcnow(),
            )
        except Exception as e:
            logger.exception(f"Research enhancement failed for session {session_id}")
            self._restore(session_id)
            return EnhancementResult(success=False, error=str(e) or "Research enhancement failed")

        enriched_count = sum(1 for c in enriched if c.get("products"))
        logger.info(f"Enhancement complete for session {session_id}: {enriched_count}/{len(batch)} enriched")
        return EnhancementResult(success=True, enriched_count=enriched_count)

    async def _enrich_batch(self, batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not batch:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async with self.scraper_factory() as scraper:
            async def enrich(competitor: Dict[str, Any]) -> Dict[str, Any]:
                async with semaphore:
                    products = await self._scrape(scraper, competitor)
                return {**competitor, "products": products}

            return list(await asyncio.gather(*(enrich(c) for c in batch)))

    async def _scrape(self, scraper: CompetitorProductScraper,
                      competitor: Dict[str, Any]) -> List[Dict[str, Any]]:
        domain = competitor.get("domain")
        try:
            return await scraper.scrape_products(domain) or []
        except Exception as e:
            logger.warning(f"Product scraping failed for {domain}: {e}")
            return []

    def _restore(self, session_id: str) -> None:
        """Put a row left in 'enhancing' back to completed with its prior data"""
        try:
            self.ledger.db.rollback()
            entry = self.ledger.read(session_id, SECTION)
            if entry is not None and ProgressStatus(entry.status) == ProgressStatus.ENHANCING:
                self.ledger.update(
                    session_id, SECTION,
                    status=ProgressStatus.COMPLETED,
                    progress_percentage=100,
                )
        except Exception as e:
            logger.error(f"Could not restore competitive analysis for session {session_id}: {e}")
