from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.core.exceptions import InvalidTransitionError, SessionNotFoundError
from app.models.analysis import AnalysisSession, SessionStatus
from app.services.analysis.progress_ledger import utcnow

logger = logging.getLogger(__name__)


class AnalysisSessionService:
    """Creates analysis sessions and performs their single terminal transition"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, url: str) -> AnalysisSession:
        session = AnalysisSession(url=url, status=SessionStatus.IN_PROGRESS)
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        return self.db.query(AnalysisSession).filter(AnalysisSession.id == session_id).first()

    def get_or_404(self, session_id: str) -> AnalysisSession:
        session = self.get(session_id)
        if not session:
            raise SessionNotFoundError(f"Analysis session {session_id} not found")
        return session

    def list_recent(self, limit: int = 20) -> List[AnalysisSession]:
        return (
            self.db.query(AnalysisSession)
            .order_by(AnalysisSession.created_at.desc())
            .limit(limit)
            .all()
        )

    def complete(self, session_id: str) -> AnalysisSession:
        return self._finalize(session_id, SessionStatus.COMPLETED)

    def fail(self, session_id: str, error: str) -> AnalysisSession:
        return self._finalize(session_id, SessionStatus.FAILED, error=error)

    def _finalize(self, session_id: str, status: SessionStatus,
                  error: Optional[str] = None) -> AnalysisSession:
        session = self.get_or_404(session_id)
        if session.is_terminal:
            raise InvalidTransitionError(
                f"Session {session_id} already finished as {SessionStatus(session.status).value}"
            )

        session.status = status
        session.completed_at = utcnow()
        if status == SessionStatus.FAILED:
            session.error = error or "Analysis failed"

        self.db.commit()
        self.db.refresh(session)
        logger.info(f"Session {session_id} marked {status.value}")
        return session
