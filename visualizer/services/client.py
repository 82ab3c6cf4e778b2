"""HTTP client for the read-only visualizer query service."""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from visualizer.core.config import settings
from visualizer.models.query import VisualizerQueryRequest, VisualizerQueryResult
from visualizer.models.schema import VisualizerSchema
from visualizer.services.retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


class VisualizerClientError(Exception):
    """Base exception for query service client errors."""
    pass


class VisualizerAPIError(VisualizerClientError):
    """The query service rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


def _is_retryable(error: Exception) -> bool:
    # 4xx responses will not improve on retry; network errors and 5xx may
    return not (isinstance(error, VisualizerAPIError) and error.is_client_error)


class VisualizerClient:
    """
    Client for the schema and query endpoints.

    Both endpoints are read-only, so every call is safe to retry and to cache.
    Responses are wrapped as ``{"data": ...}``; errors carry ``{"message": ...}``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        verify_ssl: Optional[bool] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Query service base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
            max_retries: Retries after the first failed attempt (defaults to settings)
            verify_ssl: Verify TLS certificates (defaults to settings)
            retry_config: Full retry configuration; overrides max_retries
        """
        self.base_url = (base_url or settings.VISUALIZER_API_BASE_URL).rstrip('/')
        if not self.base_url:
            raise ValueError("Visualizer API base URL is required")

        self.timeout = timeout if timeout is not None else settings.VISUALIZER_REQUEST_TIMEOUT
        retries = max_retries if max_retries is not None else settings.VISUALIZER_MAX_RETRIES
        self.retry_config = retry_config or RetryConfig(max_attempts=retries + 1)
        self.verify_ssl = settings.VISUALIZER_VERIFY_SSL if verify_ssl is None else verify_ssl

        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            verify=self.verify_ssl,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def __aenter__(self) -> "VisualizerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(self, method: str, url: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.request(method, url, json=json_data)
        except httpx.RequestError as e:
            raise VisualizerAPIError(f"Network error: {str(e)}") from e

        if response.status_code >= 400:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("error")
            except ValueError:
                pass
            raise VisualizerAPIError(
                message or f"Request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            content_type = response.headers.get('content-type', 'unknown')
            raise VisualizerAPIError(
                f"Expected JSON response but received {content_type}",
                status_code=response.status_code,
            ) from e

        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    async def _request(self, method: str, path: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a request with retry/backoff.

        Raises:
            VisualizerAPIError: If the request fails after retries
        """
        url = self._url(path)
        logger.debug(f"Making {method} request to: {url}")
        return await retry_with_backoff(
            self._send,
            method,
            url,
            json_data,
            config=self.retry_config,
            retryable_exceptions=(VisualizerAPIError,),
            should_retry=_is_retryable,
        )

    async def get_schema(self) -> VisualizerSchema:
        """Fetch the field catalog."""
        data = await self._request("GET", settings.VISUALIZER_SCHEMA_PATH)
        try:
            schema = VisualizerSchema.model_validate(data)
        except ValidationError as e:
            raise VisualizerAPIError(f"Malformed schema response: {e.error_count()} validation error(s)") from e
        logger.info(f"Loaded visualizer schema: {len(schema.fields)} fields")
        return schema

    async def run_query(self, request: VisualizerQueryRequest) -> VisualizerQueryResult:
        """Execute a read-only query and return its tabular result."""
        data = await self._request("POST", settings.VISUALIZER_QUERY_PATH, json_data=request.to_wire())
        try:
            result = VisualizerQueryResult.model_validate(data)
        except ValidationError as e:
            raise VisualizerAPIError(f"Malformed query response: {e.error_count()} validation error(s)") from e
        logger.debug(f"Query returned {result.row_count} rows in {result.execution_ms}ms (truncated: {result.truncated})")
        return result
