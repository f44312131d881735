"""Shared HTTP client for upstream provider calls.

The client is opened in the application lifespan and reused by the provider
so connections to the image and text APIs are pooled.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from briefgate.app.core.config import settings


_shared_http_client: Optional[httpx.AsyncClient] = None


def build_timeout() -> httpx.Timeout:
    """Granular timeouts from settings.

    Read timeout dominates: image generation holds the response for tens of
    seconds before the first byte arrives.
    """
    return httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=settings.httpx_read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )


def build_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client instance.

    Raises:
        RuntimeError: If the HTTP client has not been initialized.
    """
    if _shared_http_client is None:
        raise RuntimeError(
            "HTTP client not initialized. Ensure lifespan context is active."
        )
    return _shared_http_client


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    Used in the FastAPI lifespan:

        async with init_http_client() as client:
            yield
    """
    global _shared_http_client

    _shared_http_client = httpx.AsyncClient(timeout=build_timeout(), limits=build_limits())

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None
