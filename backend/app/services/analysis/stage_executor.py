"""
Client for the bulk landing page analysis.

The analysis itself (scraping the landing page and prompting the LLM for each
section) lives in a separate service. The orchestrator only depends on its
request/response contract::

    request:  {"url": str}
    response: {"success": bool, "analysis": {...}?, "error": str?}
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.core.exceptions import StageExecutorError

logger = logging.getLogger(__name__)


class StageExecutor(ABC):
    """Runs every analysis stage for a URL in one blocking call"""

    @abstractmethod
    async def analyze(self, url: str) -> Dict[str, Any]:
        """Return the analysis contract dict, or raise StageExecutorError"""


class HttpStageExecutor(StageExecutor):
    """Calls the landing page analysis function over HTTP"""

    def __init__(self,
                 endpoint: str = None,
                 api_key: Optional[str] = None,
                 timeout: float = None,
                 max_attempts: int = None,
                 retry_wait=None,
                 client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint or settings.STAGE_EXECUTOR_URL
        self.api_key = api_key if api_key is not None else settings.STAGE_EXECUTOR_API_KEY
        self.timeout = timeout or settings.STAGE_EXECUTOR_TIMEOUT
        self.max_attempts = max_attempts or settings.STAGE_EXECUTOR_MAX_ATTEMPTS
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    async def analyze(self, url: str) -> Dict[str, Any]:
        try:
            response = await self._post({"url": url})
        except RetryError as e:
            raise StageExecutorError(f"Analysis service unreachable: {e.last_attempt.exception()}")
        except httpx.HTTPError as e:
            raise StageExecutorError(f"Analysis service unreachable: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = None
            if isinstance(body, dict):
                message = body.get("error")
            raise StageExecutorError(message or f"Analysis service returned HTTP {response.status_code}")

        if not isinstance(body, dict):
            raise StageExecutorError("Analysis service returned an invalid response")

        return body

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        # Only transport failures are retried; an error body is a real answer
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.INFO),
        )
        async for attempt in retrying:
            with attempt:
                if self._client is not None:
                    return await self._client.post(self.endpoint, json=payload, headers=self._headers())
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    return await client.post(self.endpoint, json=payload, headers=self._headers())
