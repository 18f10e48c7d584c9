from fastapi import Request

from app.db.session import SessionLocal, get_db  # noqa: F401 - shared dependency
from app.services.analysis.dispatch import EnhancementDispatcher, build_dispatcher
from app.services.analysis.stage_executor import HttpStageExecutor, StageExecutor
from app.services.scraping.competitor_scraper import CompetitorProductScraper


def get_stage_executor() -> StageExecutor:
    return HttpStageExecutor()


def get_enhancement_dispatcher(request: Request) -> EnhancementDispatcher:
    """The app-wide dispatcher; created lazily if the lifespan did not run"""
    dispatcher = getattr(request.app.state, "enhancement_dispatcher", None)
    if dispatcher is None:
        dispatcher = build_dispatcher()
        request.app.state.enhancement_dispatcher = dispatcher
    return dispatcher


def get_scraper_factory():
    return CompetitorProductScraper


def get_session_factory():
    """Session factory for work that outlives the request's own session"""
    return SessionLocal
