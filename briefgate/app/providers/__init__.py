"""Generative AI providers package.

This package provides:
- Base provider interface (BaseProvider)
- Provider implementations (OpenAIProvider, MockProvider)
- Provider factory (ProviderType, create_provider, get_provider)
- Retry mechanism (RetryPolicy, with_retry)
"""

from briefgate.app.providers.base import BaseProvider
from briefgate.app.providers.factory import (
    ProviderType,
    create_provider,
    get_provider,
    set_provider,
)
from briefgate.app.providers.mock import MockProvider
from briefgate.app.providers.openai import OpenAIProvider
from briefgate.app.providers.retry import RetryPolicy, call_with_retry, with_retry

__all__ = [
    "BaseProvider",
    "MockProvider",
    "OpenAIProvider",
    "ProviderType",
    "RetryPolicy",
    "call_with_retry",
    "create_provider",
    "get_provider",
    "set_provider",
    "with_retry",
]
