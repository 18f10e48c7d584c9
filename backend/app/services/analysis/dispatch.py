"""
Fire-and-forget dispatch of the competitor enhancement.

The orchestrator hands competitors to a dispatcher and moves on. Nothing is
returned to it; the outcome is only visible through the progress ledger.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Set
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)


class EnhancementDispatcher(ABC):
    """Starts a competitor enhancement without waiting for it"""

    @abstractmethod
    def dispatch(self, session_id: str, competitors: List[Dict[str, Any]]) -> None:
        pass

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for enhancements started by this process, if any are tracked"""
        return None


class InProcessEnhancementDispatcher(EnhancementDispatcher):
    """Runs the enhancement as a detached asyncio task on the current loop.

    The task is not tied to the request that started it: it keeps running after
    the response is sent and is only awaited by ``drain`` (app shutdown, tests).
    Work is lost if the process exits first; use the Celery dispatcher when that
    matters.
    """

    def __init__(self,
                 session_factory: Callable[[], Session] = SessionLocal,
                 worker_kwargs: Optional[Dict[str, Any]] = None):
        self.session_factory = session_factory
        self.worker_kwargs = worker_kwargs or {}
        # Strong references so running tasks are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, session_id: str, competitors: List[Dict[str, Any]]) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(session_id, competitors),
            name=f"enhance-competitors-{session_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Dispatched background enhancement for session {session_id}")

    async def _run(self, session_id: str, competitors: List[Dict[str, Any]]) -> None:
        from app.services.research.enhancement_worker import EnhancementWorker

        db = self.session_factory()
        try:
            result = await EnhancementWorker(db, **self.worker_kwargs).run(session_id, competitors)
        finally:
            db.close()

        if result.success:
            logger.info(
                f"Background enhancement finished for session {session_id} "
                f"({result.enriched_count} competitors enriched)"
            )
        else:
            logger.warning(f"Background enhancement failed for session {session_id} (non-fatal): {result.error}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} background enhancements still running after {timeout}s")


class CeleryEnhancementDispatcher(EnhancementDispatcher):
    """Queues the enhancement on the Celery broker so it survives API restarts"""

    def dispatch(self, session_id: str, competitors: List[Dict[str, Any]]) -> None:
        from app.tasks.research_tasks import enhance_competitive_analysis

        async_result = enhance_competitive_analysis.delay(session_id, competitors)
        logger.info(f"Queued background enhancement for session {session_id} as task {async_result.id}")


def build_dispatcher(backend: str = None) -> EnhancementDispatcher:
    backend = (backend or settings.ENHANCEMENT_BACKEND).lower()
    if backend == "celery":
        return CeleryEnhancementDispatcher()
    if backend == "inprocess":
        return InProcessEnhancementDispatcher()
    raise ValueError(f"Unknown enhancement backend: {backend}")
