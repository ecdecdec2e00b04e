"""
Async Secure HTTP Client Wrapper

Provides async HTTP methods with enforced SSL verification and timeouts.
Built on httpx for connection pooling and HTTP/2.

Usage:
    from engmetrics.async_http_client import AsyncSecureHTTPClient

    async with AsyncSecureHTTPClient() as client:
        response = await client.get(url, params={"per_page": 100})
        response = await client.post(url, json=payload)

Security Features:
    - SSL verification always enabled (verify=True)
    - Default 30-second timeout on all requests
    - Connection pooling for efficient requests
    - HTTP/2 support
"""

import httpx


class AsyncSecureHTTPClient:
    """
    Async HTTP client with enforced SSL verification and connection pooling.

    A custom transport may be supplied (e.g. httpx.MockTransport in tests);
    SSL verification is still forced on the client.
    """

    DEFAULT_TIMEOUT = 30  # seconds
    DEFAULT_MAX_CONNECTIONS = 100
    DEFAULT_MAX_KEEPALIVE = 20

    def __init__(
        self,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        max_keepalive_connections: int = DEFAULT_MAX_KEEPALIVE,
        timeout: float = DEFAULT_TIMEOUT,
        http2: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize async HTTP client.

        Args:
            max_connections: Maximum number of concurrent connections (default: 100)
            max_keepalive_connections: Max persistent connections (default: 20)
            timeout: Default timeout in seconds (default: 30)
            http2: Enable HTTP/2 support (default: True)
            transport: Optional transport override
        """
        self.limits = httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_keepalive_connections)
        self.timeout = httpx.Timeout(timeout)
        self.http2 = http2
        self.transport = transport
        self.client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AsyncSecureHTTPClient":
        """Context manager entry - create async client"""
        self.client = httpx.AsyncClient(
            limits=self.limits,
            timeout=self.timeout,
            verify=True,  # CRITICAL: Force SSL verification
            http2=self.http2,
            follow_redirects=True,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, *args):
        """Context manager exit - close connections"""
        if self.client:
            await self.client.aclose()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Async request with SSL verification enforced.

        Args:
            method: HTTP method (GET, POST, ...)
            url: Absolute URL
            **kwargs: Additional arguments passed to httpx.AsyncClient.request()

        Returns:
            httpx.Response: HTTP response

        Raises:
            RuntimeError: If used outside the async context manager
        """
        if not self.client:
            raise RuntimeError("Client not initialized. Use 'async with AsyncSecureHTTPClient()' context manager")

        kwargs.setdefault("timeout", self.DEFAULT_TIMEOUT)
        return await self.client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)
