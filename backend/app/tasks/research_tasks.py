"""
Background tasks for competitor enhancement and progress housekeeping.
"""

import asyncio
from datetime import timedelta
from typing import Any, Dict, List
import logging

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import SessionLocal
from app.services.analysis.progress_ledger import ProgressLedger
from app.services.research.enhancement_worker import EnhancementWorker
from app.services.scraping.competitor_scraper import CompetitorProductScraper

logger = logging.getLogger(__name__)


@celery_app.task(name="enhance_competitive_analysis")
def enhance_competitive_analysis(session_id: str, competitors: List[Dict[str, Any]]):
    """
    Enrich a session's competitors with product listings, off the request path
    """
    db = SessionLocal()
    try:
        logger.info(f"Starting competitor enhancement task for session {session_id}")

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        try:
            worker = EnhancementWorker(db, scraper_factory=CompetitorProductScraper)
            result = loop.run_until_complete(worker.run(session_id, competitors))
        finally:
            loop.close()

        if result.success:
            logger.info(
                f"Competitor enhancement task finished for session {session_id} "
                f"({result.enriched_count} competitors enriched)"
            )
        else:
            logger.warning(f"Competitor enhancement task failed for session {session_id}: {result.error}")

        return result.to_dict()
    finally:
        db.close()


@celery_app.task(name="expire_stale_sections")
def expire_stale_sections():
    """
    Close out sections that will never progress on their own
    """
    db = SessionLocal()
    try:
        changed = ProgressLedger(db).expire_stale(
            timedelta(seconds=settings.SECTION_STALE_AFTER_SECONDS)
        )
        if changed:
            logger.info(f"Expired {changed} stale analysis sections")
        return {"expired": changed}
    except Exception as e:
        db.rollback()
        logger.error(f"Stale section sweep failed: {e}")
        raise
    finally:
        db.close()
