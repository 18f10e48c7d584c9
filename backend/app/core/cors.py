from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings
from app.core.exceptions import general_exception_handler


def cors_headers() -> dict:
    return {
        "Access-Control-Allow-Origin": settings.CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Headers": settings.CORS_ALLOW_HEADERS,
    }


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    """Answers every pre-flight probe and stamps CORS headers on all responses.

    Browsers calling the trigger endpoint send an OPTIONS request first, with or
    without the Access-Control-Request-* headers depending on the client, so
    every OPTIONS is short-circuited with an empty 200.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=cors_headers())

        try:
            response: Response = await call_next(request)
        except Exception as exc:
            # Unhandled errors would otherwise be rendered outside this middleware
            response = await general_exception_handler(request, exc)
        for name, value in cors_headers().items():
            response.headers[name] = value
        return response
