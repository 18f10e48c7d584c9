"""
Tests for the background competitor enhancement.
"""

import asyncio
import pytest
from sqlalchemy.orm import Session

from app.models.analysis import ProgressStatus, SectionName
from app.services.analysis.progress_ledger import ProgressLedger, utcnow
from app.services.analysis.session_service import AnalysisSessionService
from app.services.research.enhancement_worker import EnhancementWorker, EnhancementResult
from tests.factories import build_competitors
from tests.fakes import FakeCompetitorScraper

SECTION = SectionName.COMPETITIVE_ANALYSIS
INSIGHTS = ["Competitors undercut on price", "Nobody offers free returns"]


def _product(name):
    return {"name": name, "price": "$10.00", "imageUrl": "", "productUrl": "https://x.com"}


@pytest.fixture
def completed_session(db_session: Session):
    """A finished run whose competitive analysis completed with two competitors."""
    session = AnalysisSessionService(db_session).create("https://shop.example.com")
    ledger = ProgressLedger(db_session)
    ledger.seed_all(session.id)
    ledger.update(
        session.id, SECTION,
        status=ProgressStatus.COMPLETED,
        progress_percentage=100,
        data={"competitors": build_competitors(2), "insights": INSIGHTS, "summary": "crowded"},
        completed_at=utcnow(),
    )
    AnalysisSessionService(db_session).complete(session.id)
    return session


def _worker(db_session, scraper, **kwargs):
    return EnhancementWorker(db_session, scraper_factory=lambda: scraper, **kwargs)


@pytest.mark.unit
class TestEnhancementWorker:

    async def test_enriches_competitors_and_keeps_insights(self, db_session, completed_session,
                                                           fake_scraper):
        competitors = build_competitors(2)

        result = await _worker(db_session, fake_scraper).run(completed_session.id, competitors)

        assert result.success is True
        assert result.enriched_count == 2
        assert result.to_dict() == {"success": True, "enrichedCount": 2}

        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        assert entry.status == ProgressStatus.COMPLETED
        assert entry.progress_percentage == 100
        assert entry.data["insights"] == INSIGHTS
        # Keys outside competitors/insights survive the merge
        assert entry.data["summary"] == "crowded"
        enriched = {c["domain"]: c for c in entry.data["competitors"]}
        assert enriched["rival.com"]["products"][0]["name"] == "Rival Runner"
        assert enriched["rival.com"]["name"] == competitors[0]["name"]
        assert enriched["other.com"]["products"][0]["name"] == "Other Trail"

    async def test_row_is_enhancing_while_scraping(self, db_session, completed_session):
        gate = asyncio.Event()
        scraper = FakeCompetitorScraper(gate=gate)
        worker = _worker(db_session, scraper)

        task = asyncio.create_task(worker.run(completed_session.id, build_competitors(1)))
        while not scraper.calls:
            await asyncio.sleep(0.01)

        db_session.expire_all()
        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        assert entry.status == ProgressStatus.ENHANCING
        assert entry.progress_percentage == 50

        gate.set()
        result = await task
        assert result.success is True
        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        assert entry.status == ProgressStatus.COMPLETED
        assert entry.progress_percentage == 100

    async def test_timed_out_competitor_gets_empty_products(self, db_session, completed_session):
        scraper = FakeCompetitorScraper(
            products_by_domain={
                "rival.com": [_product("A")],
                "other.com": [_product("B")],
                "fourth.shop": [_product("D")],
            },
            failing={"third.io": asyncio.TimeoutError()},
        )
        competitors = build_competitors(4)

        result = await _worker(db_session, scraper).run(completed_session.id, competitors)

        assert result.success is True
        assert result.enriched_count == 3
        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        assert len(entry.data["competitors"]) == 4
        by_domain = {c["domain"]: c for c in entry.data["competitors"]}
        assert by_domain["third.io"]["products"] == []
        assert by_domain["rival.com"]["products"] == [_product("A")]

    async def test_competitor_errors_never_abort_batch(self, db_session, completed_session):
        scraper = FakeCompetitorScraper(
            products_by_domain={"other.com": [_product("B")]},
            failing={"rival.com": RuntimeError("connection reset")},
        )

        result = await _worker(db_session, scraper).run(completed_session.id, build_competitors(2))

        assert result.success is True
        assert result.enriched_count == 1

    async def test_no_products_anywhere_is_still_success(self, db_session, completed_session):
        scraper = FakeCompetitorScraper()

        result = await _worker(db_session, scraper).run(completed_session.id, build_competitors(2))

        assert result.success is True
        assert result.enriched_count == 0
        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        assert entry.status == ProgressStatus.COMPLETED
        assert all(c["products"] == [] for c in entry.data["competitors"])

    async def test_batch_is_capped_and_overflow_kept(self, db_session, completed_session, fake_scraper):
        competitors = build_competitors(7)

        result = await _worker(db_session, fake_scraper).run(completed_session.id, competitors)

        assert result.success is True
        assert len(fake_scraper.calls) == 5
        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        stored = entry.data["competitors"]
        assert len(stored) == 7
        assert all("products" in c for c in stored[:5])
        assert stored[5:] == competitors[5:]

    async def test_concurrency_is_bounded(self, db_session, completed_session):
        in_flight = 0
        peak = 0

        class CountingScraper(FakeCompetitorScraper):
            async def scrape_products(self, domain):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return []

        scraper = CountingScraper()
        await _worker(db_session, scraper, max_concurrency=2).run(
            completed_session.id, build_competitors(5)
        )

        assert peak == 2

    async def test_missing_insights_default_to_empty(self, db_session):
        session = AnalysisSessionService(db_session).create("https://shop.example.com")
        ledger = ProgressLedger(db_session)
        ledger.seed_all(session.id)
        ledger.update(session.id, SECTION, status=ProgressStatus.COMPLETED, progress_percentage=100,
                      data={"competitors": build_competitors(1)})

        result = await _worker(db_session, FakeCompetitorScraper()).run(session.id, build_competitors(1))

        assert result.success is True
        assert ledger.read(session.id, SECTION).data["insights"] == []

    async def test_unknown_session_reports_failure(self, db_session):
        result = await _worker(db_session, FakeCompetitorScraper()).run("missing", build_competitors(1))

        assert result.success is False
        assert "missing" in result.error
        assert result.to_dict() == {"success": False, "error": result.error}

    async def test_failure_after_reopen_restores_completed(self, db_session, completed_session, mocker):
        before = ProgressLedger(db_session).read(completed_session.id, SECTION).data
        worker = _worker(db_session, FakeCompetitorScraper())
        mocker.patch.object(worker, "_enrich_batch", side_effect=RuntimeError("event loop closed"))

        result = await worker.run(completed_session.id, build_competitors(2))

        assert result == EnhancementResult(success=False, error="event loop closed")
        entry = ProgressLedger(db_session).read(completed_session.id, SECTION)
        assert entry.status == ProgressStatus.COMPLETED
        assert entry.progress_percentage == 100
        assert entry.data == before

    async def test_session_status_is_untouched(self, db_session, completed_session, fake_scraper):
        await _worker(db_session, fake_scraper).run(completed_session.id, build_competitors(2))

        session = AnalysisSessionService(db_session).get(completed_session.id)
        db_session.refresh(session)
        assert session.status.value == "completed"
