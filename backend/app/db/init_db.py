import logging

from app.db.session import engine, Base
from app.models import AnalysisSession, AnalysisProgress  # noqa: F401 - register tables

logger = logging.getLogger(__name__)


def init_db():
    """Initialize database tables"""
    # Alembic owns the schema in deployed environments; this is for local setups
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

if __name__ == "__main__":
    from app.core.logging import setup_logging

    setup_logging()
    init_db()
