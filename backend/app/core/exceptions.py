from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

class CampaignAssistantException(Exception):
    """Base exception for the Campaign Assistant application"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class SessionNotFoundError(CampaignAssistantException):
    """Raised when an analysis session does not exist"""
    def __init__(self, message: str = "Analysis session not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class ProgressEntryNotFoundError(CampaignAssistantException):
    """Raised when a (session, section) row was never seeded"""
    def __init__(self, message: str = "Progress entry not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)

class InvalidSectionError(CampaignAssistantException):
    """Raised for a section name outside the fixed section set"""
    def __init__(self, message: str = "Unknown analysis section"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)

class InvalidTransitionError(CampaignAssistantException):
    """Raised when a status change is not allowed by the state machine"""
    def __init__(self, message: str = "Invalid status transition"):
        super().__init__(message, status.HTTP_409_CONFLICT)

class StageExecutorError(CampaignAssistantException):
    """Raised when the bulk landing page analysis fails"""
    def __init__(self, message: str = "Analysis failed"):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)

class OrchestrationError(CampaignAssistantException):
    """Raised when an orchestration run cannot be set up or finalized"""
    def __init__(self, message: str = "Orchestration failed"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def campaign_assistant_exception_handler(request: Request, exc: CampaignAssistantException):
    """Handle application exceptions"""
    logger.error(f"Application exception: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message)
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request body/query validation failures"""
    errors = exc.errors()
    message = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', []))}: {err.get('msg')}"
        for err in errors
    ) or "Invalid request"
    return JSONResponse(
        status_code=422,
        content=error_body(message)
    )

async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle SQLAlchemy database exceptions"""
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Database error occurred")
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.exception(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error")
    )
