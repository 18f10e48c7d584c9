from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from slowapi.errors import RateLimitExceeded
from contextlib import asynccontextmanager
import logging

from app.core.config import settings
from app.core.cors import PermissiveCORSMiddleware
from app.core.logging import setup_logging
from app.core.exceptions import (
    CampaignAssistantException, campaign_assistant_exception_handler,
    validation_exception_handler, sqlalchemy_exception_handler, general_exception_handler
)
from app.core.rate_limiting import limiter, custom_rate_limit_exceeded_handler
from app.services.analysis.dispatch import build_dispatcher
from app.api.v1.api import api_router

# Set up logging
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Startup
    if getattr(app.state, "enhancement_dispatcher", None) is None:
        app.state.enhancement_dispatcher = build_dispatcher()
    logger.info(f"Enhancement backend: {settings.ENHANCEMENT_BACKEND}")

    yield

    # Shutdown: give in-flight enhancements a chance to finish
    await app.state.enhancement_dispatcher.drain(timeout=settings.ENHANCEMENT_SHUTDOWN_GRACE)


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Landing page analysis and campaign planning",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# Add rate limiter to app
app.state.limiter = limiter

# Exception handlers
app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)
app.add_exception_handler(CampaignAssistantException, campaign_assistant_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(PermissiveCORSMiddleware)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
