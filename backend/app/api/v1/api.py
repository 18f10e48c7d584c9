from fastapi import APIRouter

from app.api.v1.endpoints import orchestrator, research, sessions

api_router = APIRouter()

api_router.include_router(orchestrator.router, prefix="/orchestrator", tags=["orchestrator"])
api_router.include_router(research.router, prefix="/research", tags=["research"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
