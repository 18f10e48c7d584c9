"""
Trigger endpoint for an analysis run.
"""

from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.core.exceptions import CampaignAssistantException, error_body
from app.core.rate_limiting import limiter, RATE_LIMITS
from app.schemas.analysis import AnalyzeRequest
from app.services.analysis.dispatch import EnhancementDispatcher
from app.services.analysis.orchestrator import AnalysisOrchestrator
from app.services.analysis.stage_executor import StageExecutor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze")
@limiter.limit(RATE_LIMITS["analysis"])
async def analyze_url(
    request: Request,
    payload: AnalyzeRequest,
    db: Session = Depends(deps.get_db),
    executor: StageExecutor = Depends(deps.get_stage_executor),
    dispatcher: EnhancementDispatcher = Depends(deps.get_enhancement_dispatcher),
) -> Dict[str, Any]:
    """
    Run the landing page analysis for a URL and track it section by section.

    Returns the analysis with its ``sessionId``; progress can be read from
    ``/sessions/{sessionId}/progress`` while competitor enhancement finishes.
    """
    orchestrator = AnalysisOrchestrator(db, executor, dispatcher)
    try:
        return await orchestrator.run(payload.url)
    except CampaignAssistantException as e:
        logger.error(f"Orchestration failed for {payload.url}: {e.message}")
        return JSONResponse(status_code=500, content=error_body(e.message))
    except Exception as e:
        logger.exception(f"Orchestration failed for {payload.url}")
        return JSONResponse(status_code=500, content=error_body(str(e) or "Orchestration failed"))
