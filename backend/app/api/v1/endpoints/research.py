from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.analysis import EnhanceRequest, EnhanceResponse
from app.services.research.enhancement_worker import EnhancementWorker

router = APIRouter()


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance_competitors(
    payload: EnhanceRequest,
    db: Session = Depends(deps.get_db),
    scraper_factory=Depends(deps.get_scraper_factory),
):
    """
    Enrich a session's competitors with scraped product listings.

    Waits for the enrichment to finish; the orchestrator never calls this path
    synchronously, it dispatches the same worker in the background.
    """
    competitors = [c.model_dump() for c in payload.competitors]
    worker = EnhancementWorker(db, scraper_factory=scraper_factory)
    result = await worker.run(payload.sessionId, competitors)

    if not result.success:
        return JSONResponse(status_code=500, content=result.to_dict())

    return EnhanceResponse(success=True, enrichedCount=result.enriched_count)
