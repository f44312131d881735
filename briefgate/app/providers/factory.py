"""Provider factory.

Builds the provider selected by configuration: the offline mock when
``BRIEFGATE_MOCK_PROVIDER`` is set, OpenAI otherwise.
"""

from enum import Enum
from typing import Optional

import httpx

from briefgate.app.core.config import settings
from briefgate.app.core.logging import get_logger
from briefgate.app.providers.base import BaseProvider
from briefgate.app.providers.mock import MockProvider
from briefgate.app.providers.openai import OpenAIProvider
from briefgate.app.providers.retry import RetryPolicy

logger = get_logger(__name__)


class ProviderType(str, Enum):
    """Supported provider types."""
    OPENAI = "openai"
    MOCK = "mock"


def create_provider(
    provider_type: Optional[ProviderType] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BaseProvider:
    """Create a provider instance from settings.

    A missing API key is not fatal here: the provider raises
    ``ConfigurationError`` on first use so the failure is reported per request.
    """
    if provider_type is None:
        provider_type = ProviderType.MOCK if settings.mock_provider else ProviderType.OPENAI

    if provider_type == ProviderType.MOCK:
        logger.warning("Using mock provider - no upstream calls will be made")
        return MockProvider()

    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY is not configured; generation requests will fail")

    return OpenAIProvider(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        organization=settings.openai_organization,
        http_client=http_client,
        timeout=settings.httpx_timeout,
        text_model=settings.openai_text_model,
        image_model=settings.openai_image_model,
        temperature=settings.openai_temperature,
        retry_policy=RetryPolicy(max_retries=settings.upstream_max_retries),
    )


_provider: Optional[BaseProvider] = None


def get_provider(http_client: Optional[httpx.AsyncClient] = None) -> BaseProvider:
    """Get the process-wide provider, creating it on first use."""
    global _provider
    if _provider is None:
        _provider = create_provider(http_client=http_client)
    return _provider


def set_provider(provider: Optional[BaseProvider]) -> None:
    """Replace the process-wide provider (``None`` resets it)."""
    global _provider
    _provider = provider
