import os

# Must be set before the app (and its engine and limiter) are imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_campaign_assistant.db")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENHANCEMENT_BACKEND", "inprocess")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.api import deps
from app.models import Base
from app.services.analysis.dispatch import InProcessEnhancementDispatcher
from tests.factories import build_analysis_result
from tests.fakes import FakeCompetitorScraper, FakeStageExecutor


@pytest.fixture(scope="function")
def engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless asked
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def stage_executor():
    return FakeStageExecutor(result=build_analysis_result())


@pytest.fixture
def fake_scraper():
    return FakeCompetitorScraper(products_by_domain={
        "rival.com": [
            {"name": "Rival Runner", "price": "$89.00", "imageUrl": "https://rival.com/r.jpg",
             "productUrl": "https://rival.com/p/runner", "priceAmount": 89.0, "currency": "$"},
        ],
        "other.com": [
            {"name": "Other Trail", "price": "$120.00", "imageUrl": "",
             "productUrl": "https://other.com", "priceAmount": 120.0, "currency": "$"},
        ],
    })


@pytest.fixture
def scraper_factory(fake_scraper):
    return lambda: fake_scraper


@pytest_asyncio.fixture
async def dispatcher(session_factory, scraper_factory):
    """In-process dispatcher on the test database; drained after each test."""
    dispatcher = InProcessEnhancementDispatcher(
        session_factory=session_factory,
        worker_kwargs={"scraper_factory": scraper_factory},
    )
    yield dispatcher
    await dispatcher.drain(timeout=5)


@pytest.fixture(scope="function")
def override_dependencies(db_session, session_factory, stage_executor, dispatcher, scraper_factory):
    """Point the API at the test database and the fakes."""
    def _override_get_db():
        yield db_session

    app.dependency_overrides[deps.get_db] = _override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_stage_executor] = lambda: stage_executor
    app.dependency_overrides[deps.get_enhancement_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_scraper_factory] = lambda: scraper_factory
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(override_dependencies):
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
