"""Mock provider for local development and load testing.

Simulates the text and image APIs without network calls or spend.

Enable by setting environment variable:
    BRIEFGATE_MOCK_PROVIDER=true
"""

import asyncio
import base64
import json
import random
from typing import Any, Optional

from briefgate.app.exceptions import UpstreamError
from briefgate.app.providers.base import BaseProvider

# 1x1 transparent PNG
_PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class MockProvider(BaseProvider):
    """Mock provider returning canned briefs and a placeholder PNG.

    Features:
    - Configurable response delay to exercise cooldown behavior
    - Configurable failure rate for testing the error path
    """

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        http_client: Optional[Any] = None,
        timeout: float = 60.0,
        min_delay: float = 0.05,
        max_delay: float = 0.2,
        failure_rate: float = 0.0,
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate

    @property
    def name(self) -> str:
        return "mock"

    async def _simulate(self) -> None:
        await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))
        if random.random() < self.failure_rate:
            raise UpstreamError("Simulated provider failure")

    def _brief_for(self, request: dict) -> dict:
        content = request.get("content") or {}
        direction = request.get("direction") or {}
        headline = content.get("headline") or "Your Next Home Starts Here"
        return {
            "mode": request.get("mode", "brief"),
            "designType": request.get("designType", "flyer"),
            "flyerFold": request.get("flyerFold"),
            "format": request.get("format", ""),
            "renderSize": request.get("renderSize", {"width": 1024, "height": 1536}),
            "location": request.get("location", ""),
            "audience": request.get("audience", "buyer"),
            "theme": {
                "seasonContext": request.get("seasonContext", "General"),
                "holidayReasoning": request.get("holidayHints", []),
                "takeItOrLeaveItSuggestions": ["Keep the palette restrained."],
            },
            "copy": {
                "headline": headline,
                "subhead": content.get("subhead", ""),
                "cta": content.get("cta") or "Scan to book a tour",
                "dateTime": content.get("dateTime", ""),
                "keyPoints": content.get("keyPoints") or ["Move-in ready", "Great schools"],
            },
            "design": {
                "tone": direction.get("tone", "Bold Modern"),
                "density": direction.get("density", "balanced"),
                "palette": "Charcoal with one warm accent",
                "imageryStyle": "Abstract architectural shapes",
                "layoutStyle": "Strong top headline, three-column highlights",
            },
            "prompt": f"Flat print design, headline '{headline}', generous margins, modern sans-serif.",
            "designerNotes": {"quickSummary": "Mock brief for development."},
            "promptTransparency": {"whatTheModelOptimizedFor": ["Readability"]},
        }

    async def generate_text(self, system: str, user: str) -> str:
        await self._simulate()
        try:
            request = json.loads(user)
        except json.JSONDecodeError:
            request = {}
        return json.dumps(self._brief_for(request if isinstance(request, dict) else {}))

    async def generate_image(self, prompt: str, size: str) -> bytes:
        await self._simulate()
        return _PLACEHOLDER_PNG

    async def health_check(self, timeout: float = 2.0) -> bool:
        return True
