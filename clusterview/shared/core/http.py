"""
Async HTTP Client Shared Infrastructure

One httpx.AsyncClient is shared by every monitoring client so that concurrent
requests reuse a single connection pool.
"""

from typing import Optional
import httpx
import structlog

logger = structlog.get_logger()

_client: Optional[httpx.AsyncClient] = None


def get_http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Returns the global shared httpx.AsyncClient, creating it lazily."""
    global _client

    if _client is None:
        logger.info("http_client_lazy_initialized")
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or 20.0, connect=5.0),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            headers={"User-Agent": "ClusterView/0.1"},
        )
    return _client


async def close_http_client() -> None:
    """Gracefully shuts down the global client, flushing its connection pool."""
    global _client

    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("http_client_closed")
