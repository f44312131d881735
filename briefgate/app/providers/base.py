from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx


class BaseProvider(ABC):
    """Base class for generative AI providers.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own per call if not provided.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds (per-call client only)
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a per-call client closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider name for logs and health output."""

    @abstractmethod
    async def generate_text(self, system: str, user: str) -> str:
        """Run a text completion and return the assistant message content.

        Args:
            system: System instructions
            user: User message

        Returns:
            Raw text produced by the model
        """

    @abstractmethod
    async def generate_image(self, prompt: str, size: str) -> bytes:
        """Generate one image and return its PNG bytes.

        Args:
            prompt: Image prompt
            size: ``WIDTHxHEIGHT`` accepted by the provider

        Returns:
            PNG image bytes
        """

    @abstractmethod
    async def health_check(self, timeout: float = 2.0) -> bool:
        """Check if the provider is reachable and accepts our credentials."""
