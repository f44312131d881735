"""Tests for image and concept-pack generation."""

import base64
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from briefgate.app.exceptions import UpstreamError
from briefgate.app.services.image import (
    CONCEPT_SIZE,
    DEFAULT_SIZE,
    ConceptRequest,
    ImageRequest,
    build_concept,
    generate_concepts,
    generate_image,
    normalize_size,
)


class TestImageRequest:
    """Tests for prompt and size handling."""

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}, {"prompt": 7}, None, []])
    def test_missing_prompt(self, body):
        with pytest.raises(ValidationError) as exc_info:
            ImageRequest.from_payload(body)
        assert "Missing prompt." in str(exc_info.value)

    def test_default_size(self):
        assert ImageRequest.from_payload({"prompt": "x"}).size == DEFAULT_SIZE == "1024x1536"

    @pytest.mark.parametrize(
        ("size", "expected"),
        [("1024x1024", "1024x1024"), ("1536x1024", "1536x1024"), ("512x512", DEFAULT_SIZE), (None, DEFAULT_SIZE)],
    )
    def test_size_normalization(self, size, expected):
        assert normalize_size(size) == expected
        assert ImageRequest.from_payload({"prompt": "x", "size": size}).size == expected


class TestGenerateImage:
    """Tests for the single-image flow."""

    @pytest.mark.asyncio
    async def test_returns_base64_and_cooldown(self):
        provider = MagicMock()
        provider.generate_image = AsyncMock(return_value=b"\x89PNG")

        result = await generate_image(provider, ImageRequest(prompt="flat flyer", size="1024x1024"), 60)

        assert result == {
            "b64": base64.b64encode(b"\x89PNG").decode("ascii"),
            "size": "1024x1024",
            "cooldownSeconds": 60,
        }
        provider.generate_image.assert_awaited_once_with("flat flyer", "1024x1024")


class TestConcepts:
    """Tests for the legacy flyer + newsletter concept pack."""

    def test_request_defaults_and_mapping(self):
        request = ConceptRequest.from_payload({"locationScope": "Davis, CA", "qrPlacement": "Top-left", "audience": None})

        assert request.location_scope == "Davis, CA"
        assert request.qr_placement == "Top-left"
        assert request.audience == "Seller/Buyer/Realtor"
        assert request.month_theme == "Market Momentum"

    def test_values_are_clamped(self):
        assert len(ConceptRequest.from_payload({"eventType": "e" * 500}).event_type) == 200

    def test_prompts_embed_context(self):
        concept = build_concept(ConceptRequest(location_scope="Davis, CA"), "Concept A", "editorial-geometry")

        assert concept["style"] == "editorial-geometry"
        assert "Location: Davis, CA" in concept["flyerPrompt"]
        assert "Concept label: Concept A" in concept["newsletterPrompt"]

    @pytest.mark.asyncio
    async def test_generates_four_images(self):
        provider = MagicMock()
        provider.generate_image = AsyncMock(side_effect=[b"f1", b"n1", b"f2", b"n2"])

        result = await generate_concepts(provider, ConceptRequest())

        assert provider.generate_image.await_count == 4
        assert all(call.args[1] == CONCEPT_SIZE for call in provider.generate_image.await_args_list)
        titles = [r["title"] for r in result["results"]]
        assert titles == ["Concept A", "Concept B"]
        assert result["results"][0]["flyerB64"] == base64.b64encode(b"f1").decode("ascii")
        assert result["results"][1]["newsletterB64"] == base64.b64encode(b"n2").decode("ascii")

    @pytest.mark.asyncio
    async def test_any_failure_fails_the_pack(self):
        provider = MagicMock()
        provider.generate_image = AsyncMock(side_effect=[b"f1", UpstreamError("boom"), b"f2", b"n2"])

        with pytest.raises(UpstreamError):
            await generate_concepts(provider, ConceptRequest())
