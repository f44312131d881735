"""OpenAI API provider implementation.

Text briefs go through ``/chat/completions`` in JSON mode; images through
``/images/generations``, which answers with base64-encoded PNG data.
"""

import base64
import binascii
from typing import Any, Dict, Optional

import httpx

from briefgate.app.core.logging import get_logger
from briefgate.app.exceptions import (
    ConfigurationError,
    InvalidUpstreamResponseError,
    UpstreamError,
    UpstreamTimeoutError,
)
from briefgate.app.providers.base import BaseProvider
from briefgate.app.providers.retry import RetryPolicy, with_retry

logger = get_logger(__name__)


class OpenAIProvider(BaseProvider):
    """OpenAI provider with support for a shared HTTP client.

    Transport failures are translated into the service's upstream errors:
    timeouts raise ``UpstreamTimeoutError``, HTTP and network errors raise
    ``UpstreamError``, bodies without usable content raise
    ``InvalidUpstreamResponseError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        organization: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
        text_model: str = "gpt-4.1-mini",
        image_model: str = "gpt-image-1",
        temperature: float = 0.7,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.organization = organization
        self.text_model = text_model
        self.image_model = image_model
        self.temperature = temperature
        self.retry_policy = retry_policy or RetryPolicy()
        self._post_with_retry = with_retry(self.retry_policy)(self._post)

        if organization:
            self.headers["OpenAI-Organization"] = organization

    @property
    def name(self) -> str:
        return "openai"

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Missing OPENAI_API_KEY in environment variables.")

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self._get_endpoint_url(endpoint)
        async with self._client_context() as client:
            resp = await client.post(url, headers=self.headers, json=payload)
            resp.raise_for_status()
            return resp.json()

    async def _call(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST with retries, mapping transport failures to upstream errors."""
        self._require_api_key()
        try:
            return await self._post_with_retry(endpoint, payload)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(
                f"OpenAI {endpoint} timed out ({type(e).__name__})"
            ) from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"OpenAI {endpoint} returned HTTP {e.response.status_code}: "
                f"{_error_message(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"OpenAI {endpoint} request failed: {e}") from e
        except ValueError as e:
            # resp.json() on a non-JSON body
            raise InvalidUpstreamResponseError(f"OpenAI {endpoint} returned non-JSON body") from e

    async def generate_text(self, system: str, user: str) -> str:
        payload = {
            "model": self.text_model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        data = await self._call("/chat/completions", payload)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidUpstreamResponseError("No completion returned.") from e
        if not content:
            raise InvalidUpstreamResponseError("Empty completion returned.")
        return content

    async def generate_image(self, prompt: str, size: str) -> bytes:
        payload = {"model": self.image_model, "prompt": prompt, "size": size}
        data = await self._call("/images/generations", payload)
        try:
            b64 = data["data"][0]["b64_json"]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidUpstreamResponseError("No image returned.") from e
        if not b64:
            raise InvalidUpstreamResponseError("No image returned.")
        try:
            return base64.b64decode(b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidUpstreamResponseError("Image data is not valid base64.") from e

    async def health_check(self, timeout: float = 2.0) -> bool:
        """Call the /models endpoint with a short timeout."""
        if not self.api_key:
            return False
        try:
            url = self._get_endpoint_url("/models")
            async with self._client_context() as client:
                resp = await client.get(url, headers=self.headers, timeout=timeout)
                return resp.status_code == 200
        except Exception:
            return False


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of OpenAI's ``error.message``."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message", ""))[:200]
    return str(body)[:200]
