"""
Analysis orchestration: one submitted URL, five tracked sections.

Flow for a run:

1. create the session (in_progress)
2. seed a pending ledger row for every section
3. run the bulk landing page analysis (blocking)
4. record each section the analysis produced as completed
5. hand competitors to the background enhancement, without waiting
6. finalize the session and return the analysis plus the session id

Only a failed bulk analysis fails the run. Sections the analysis did not
produce stay pending; the ledger is the record of what actually succeeded.
"""

from typing import Any, Dict
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import OrchestrationError, StageExecutorError
from app.models.analysis import ProgressStatus, SectionName
from app.services.analysis.dispatch import EnhancementDispatcher
from app.services.analysis.progress_ledger import ProgressLedger, utcnow
from app.services.analysis.sections import competitors_of, extract_sections
from app.services.analysis.session_service import AnalysisSessionService
from app.services.analysis.stage_executor import StageExecutor

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Drives a single analysis run against the session and progress ledger"""

    def __init__(self, db: Session, executor: StageExecutor, dispatcher: EnhancementDispatcher):
        self.db = db
        self.executor = executor
        self.dispatcher = dispatcher
        self.sessions = AnalysisSessionService(db)
        self.ledger = ProgressLedger(db)

    async def run(self, url: str) -> Dict[str, Any]:
        logger.info(f"Starting analysis for URL: {url}")

        session = self.sessions.create(url)
        session_id = session.id
        logger.info(f"Created session: {session_id}")

        try:
            self.ledger.seed_all(session_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Seeding progress for session {session_id} failed: {e}")
            self.sessions.fail(session_id, "Could not initialize progress tracking")
            raise OrchestrationError("Could not initialize progress tracking")
        logger.info(f"Initialized progress tracking for session {session_id}")

        result = await self._run_bulk_analysis(session_id, url)

        try:
            recorded = self._record_sections(session_id, result.get("analysis"))
            self._dispatch_enhancement(session_id, recorded)
        except Exception as e:
            # The bulk analysis succeeded, so the run still finishes as completed
            self.db.rollback()
            logger.exception(f"Post-processing for session {session_id} failed: {e}")

        self.sessions.complete(session_id)
        return {**result, "sessionId": session_id}

    async def _run_bulk_analysis(self, session_id: str, url: str) -> Dict[str, Any]:
        logger.info(f"Calling landing page analysis for session {session_id}")
        try:
            result = await self.executor.analyze(url)
            if not isinstance(result, dict) or not result.get("success"):
                error = result.get("error") if isinstance(result, dict) else None
                raise StageExecutorError(error or "Analysis failed")
        except Exception as e:
            message = e.message if isinstance(e, StageExecutorError) else (str(e) or "Analysis failed")
            logger.error(f"Analysis failed for session {session_id}: {message}")
            self._fail_run(session_id, message)
            if isinstance(e, StageExecutorError):
                raise
            raise StageExecutorError(message) from e

        logger.info(f"Analysis completed successfully for session {session_id}")
        return result

    def _fail_run(self, session_id: str, message: str) -> None:
        # No partial credit: every section fails along with the session
        self.db.rollback()
        try:
            self.ledger.mark_all_failed(session_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failing sections for session {session_id} failed: {e}")
        finally:
            self.sessions.fail(session_id, message)

    def _record_sections(self, session_id: str, analysis: Any) -> Dict[SectionName, Dict[str, Any]]:
        recorded = {}
        for section, data in extract_sections(analysis).items():
            try:
                self.ledger.update(
                    session_id, section,
                    status=ProgressStatus.COMPLETED,
                    progress_percentage=100,
                    data=data,
                    completed_at=utcnow(),
                )
            except SQLAlchemyError as e:
                # The row stays pending; the rest of the run still counts
                self.db.rollback()
                logger.error(f"Recording {section.value} for session {session_id} failed: {e}")
                continue
            recorded[section] = data

        logger.info(
            f"Updated section progress for session {session_id}: "
            f"{', '.join(s.value for s in recorded) or 'no sections produced'}"
        )
        return recorded

    def _dispatch_enhancement(self, session_id: str,
                              recorded: Dict[SectionName, Dict[str, Any]]) -> None:
        competitors = competitors_of(recorded.get(SectionName.COMPETITIVE_ANALYSIS))
        if not competitors:
            return

        logger.info(f"Triggering competitor enhancement in background for session {session_id}")
        try:
            self.dispatcher.dispatch(session_id, competitors)
        except Exception as e:
            logger.error(f"Competitor enhancement dispatch failed for session {session_id} (non-fatal): {e}")
