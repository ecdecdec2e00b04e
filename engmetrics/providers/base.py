"""
Provider Client Base

Shared request loop for the GitHub, GitLab, Jira and SonarQube clients, with retry
logic and error handling:

- Rate limiting (429) waits for Retry-After and retries
- Server errors (500, 502, 503, 504) retry with exponential backoff
- Network errors retry with exponential backoff
- Authentication errors (401, 403) fail fast
- Every failure surfaces as the provider's ProviderApiError subclass

API calls, retries and rate limit hits are reported to the active
RunMetricsTracker.
"""

import asyncio
from typing import Any

import httpx

from engmetrics.async_http_client import AsyncSecureHTTPClient
from engmetrics.core.logging_config import get_logger
from engmetrics.core.run_metrics import get_current_tracker
from engmetrics.utils.error_handling import log_and_continue

logger = get_logger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60
RETRYABLE_STATUS_CODES = (500, 502, 503, 504)
AUTH_STATUS_CODES = (401, 403)


class ProviderApiError(Exception):
    """
    A provider API call failed.

    Attributes:
        status_code: HTTP status, None for network failures
        response_body: Raw response text, when there was a response
    """

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ProviderClient:
    """
    Base class for provider REST clients.

    Subclasses set error_class and build auth headers; they call request()
    or get_json()/post_json() with paths relative to base_url.
    """

    error_class: type[ProviderApiError] = ProviderApiError
    provider_name = "Provider"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int = 3,
    ):
        """
        Args:
            base_url: API root without trailing slash
            headers: Auth and accept headers sent with every request
            transport: Optional httpx transport (tests use httpx.MockTransport)
            max_retries: Maximum attempts for transient errors
        """
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.transport = transport
        self.max_retries = max_retries

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Execute an API call with retry logic and error handling.

        Args:
            method: HTTP method (GET, POST)
            path: Path relative to base_url, or an absolute URL (pagination links)
            **kwargs: Additional arguments for the HTTP client (params, json)

        Returns:
            The successful httpx.Response

        Raises:
            ProviderApiError: Provider-specific subclass for auth errors,
                non-retryable statuses and exhausted retries
        """
        url = self.url(path)
        headers = {**self.headers, **kwargs.pop("headers", {})}
        last_error: Exception | None = None
        tracker = get_current_tracker()

        for attempt in range(self.max_retries):
            try:
                if tracker:
                    tracker.record_api_call()

                async with AsyncSecureHTTPClient(transport=self.transport) as client:
                    response = await client.request(method, url, headers=headers, **kwargs)
                    response.raise_for_status()
                    return response

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code

                if status_code in AUTH_STATUS_CODES:
                    logger.error(f"{self.provider_name} authentication failed (HTTP {status_code}): {url}")
                    raise self.error_class(
                        f"{self.provider_name} authentication failed (HTTP {status_code})",
                        status_code=status_code,
                        response_body=e.response.text,
                    ) from e

                if status_code == 429:
                    if tracker:
                        tracker.record_rate_limit_hit()
                    retry_after = _retry_after_seconds(e.response)
                    logger.warning(
                        f"Rate limited by {self.provider_name}, retrying after {retry_after}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(retry_after)
                    last_error = e
                    continue

                if status_code in RETRYABLE_STATUS_CODES:
                    if tracker:
                        tracker.record_retry()
                    backoff = 2**attempt
                    logger.warning(
                        f"{self.provider_name} server error (HTTP {status_code}), retrying in {backoff}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(backoff)
                    last_error = e
                    continue

                logger.error(f"{self.provider_name} HTTP error {status_code}: {url}")
                raise self.error_class(
                    f"{self.provider_name} API error (HTTP {status_code}): {e.response.text[:200]}",
                    status_code=status_code,
                    response_body=e.response.text,
                ) from e

            except httpx.RequestError as e:
                if tracker:
                    tracker.record_retry()
                backoff = 2**attempt
                logger.warning(
                    f"{self.provider_name} network error, retrying in {backoff}s "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                await asyncio.sleep(backoff)
                last_error = e
                continue

        if last_error:
            log_and_continue(
                logger,
                last_error,
                context={"url": url, "max_retries": self.max_retries},
                error_type=f"{self.provider_name} API call (retries exhausted)",
            )
            status_code = None
            body = None
            if isinstance(last_error, httpx.HTTPStatusError):
                status_code = last_error.response.status_code
                body = last_error.response.text
            raise self.error_class(
                f"{self.provider_name} API call failed after {self.max_retries} attempts: {last_error}",
                status_code=status_code,
                response_body=body,
            ) from last_error

        raise RuntimeError("API call failed with no error recorded")

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        response = await self.request("GET", path, **kwargs)
        return response.json()

    async def post_json(self, path: str, payload: dict[str, Any], **kwargs: Any) -> Any:
        response = await self.request("POST", path, json=payload, **kwargs)
        return response.json()


def _retry_after_seconds(response: httpx.Response) -> int:
    try:
        return int(response.headers.get("Retry-After", DEFAULT_RETRY_AFTER_SECONDS))
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS
