"""Image generation from a brief prompt, plus the two-concept layout pack."""

import asyncio
import base64
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator

from briefgate.app.core.logging import get_logger
from briefgate.app.providers.base import BaseProvider

logger = get_logger(__name__)

ALLOWED_SIZES = ("1024x1024", "1024x1536", "1536x1024")
DEFAULT_SIZE = "1024x1536"  # portrait suits print layouts
CONCEPT_SIZE = "1024x1024"


def normalize_size(size: Any) -> str:
    """Allowed sizes pass through; anything else becomes the portrait default."""
    if isinstance(size, str) and size in ALLOWED_SIZES:
        return size
    return DEFAULT_SIZE


class ImageRequest(BaseModel):
    prompt: str = Field(default="", validate_default=True)
    size: str = Field(default=DEFAULT_SIZE, validate_default=True)

    @field_validator("prompt", mode="before")
    @classmethod
    def require_prompt(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Missing prompt.")
        return v

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, v: Any) -> str:
        return normalize_size(v)

    @classmethod
    def from_payload(cls, body: Any) -> "ImageRequest":
        return cls.model_validate(body if isinstance(body, dict) else {})


async def generate_image(provider: BaseProvider, request: ImageRequest, cooldown_seconds: int) -> Dict[str, Any]:
    """Generate one image.

    Returns:
        ``{"b64": ..., "size": ..., "cooldownSeconds": ...}``
    """
    png = await provider.generate_image(request.prompt, request.size)
    logger.debug(f"Generated {request.size} image ({len(png)} bytes)")
    return {
        "b64": base64.b64encode(png).decode("ascii"),
        "size": request.size,
        "cooldownSeconds": cooldown_seconds,
    }


class ConceptRequest(BaseModel):
    """Inputs for the flyer + newsletter concept pack. Every field has a default."""
    audience: str = "Seller/Buyer/Realtor"
    location_scope: str = "Sacramento, CA"
    event_type: str = "Open House / Community Event"
    brand_mode: str = "SAC Platinum branded"
    fold_type: str = "Single page"
    qr_placement: str = "Bottom-right"
    month_theme: str = "Market Momentum"

    @classmethod
    def from_payload(cls, body: Any) -> "ConceptRequest":
        body = body if isinstance(body, dict) else {}
        fields = {
            "audience": "audience",
            "location_scope": "locationScope",
            "event_type": "eventType",
            "brand_mode": "brandMode",
            "fold_type": "foldType",
            "qr_placement": "qrPlacement",
            "month_theme": "monthTheme",
        }
        values = {
            name: str(body[key])[:200]
            for name, key in fields.items()
            if body.get(key) is not None
        }
        return cls(**values)


def build_concept(request: ConceptRequest, label: str, style: str) -> Dict[str, str]:
    flyer_prompt = f"""
Create a FLAT graphic design (not a photo mockup) of an A4 portrait real-estate FLYER.
The design must look original and uncommon (avoid generic real estate templates and house-photo collages).

Context:
- Location: {request.location_scope}
- Audience: {request.audience}
- Event: {request.event_type}
- Brand mode: {request.brand_mode}
- Format: {request.fold_type}
- Concept label: {label}
- Visual style direction: {style}

Hard layout requirements:
- A4 portrait layout grid with clear hierarchy.
- Headline + subhead.
- 3 short bullet highlights.
- A clearly reserved QR scan zone (blank square) at {request.qr_placement}.
- Footer strip with placeholders: Agent Name, Phone, Email, Website.

Look & feel:
- Premium, modern, lots of negative space.
- If branded: neutral gray + 1 accent color. If unbranded: restrained modern palette.
- Use abstract shapes or local-inspired geometry instead of typical home-photo layouts.

Output only the flyer design.
"""

    newsletter_prompt = f"""
Create a FLAT graphic design (not a photo mockup) of a modern EMAIL NEWSLETTER layout for real estate.
Make it original and uncommon (avoid typical newsletter templates).

Context:
- Location: {request.location_scope}
- Audience: {request.audience}
- Theme of the month: {request.month_theme}
- Brand mode: {request.brand_mode}
- Concept label: {label}
- Visual style direction: {style}

Must include sections:
1) Header: newsletter title + month
2) Short intro paragraph
3) Market stats section: 3 stat cards (placeholders)
4) Real Estate Tip of the Month
5) Featured listing OR featured neighborhood (placeholder)
6) CTA section with a reserved blank QR square
7) Footer with contact placeholders

Look & feel:
- Strong grid, editorial spacing, premium typography.
- Stats section visible but not overpowering.

Output only the newsletter layout.
"""
    return {"style": style, "flyerPrompt": flyer_prompt, "newsletterPrompt": newsletter_prompt}


CONCEPTS = (("Concept A", "editorial-geometry"), ("Concept B", "symbolic-motif"))


async def generate_concepts(provider: BaseProvider, request: ConceptRequest) -> Dict[str, Any]:
    """Generate a flyer and a newsletter image for each of two concepts.

    The four upstream calls run concurrently; any failure fails the pack.
    """
    concepts = [(label, build_concept(request, label, style)) for label, style in CONCEPTS]
    calls = []
    for _, concept in concepts:
        calls.append(provider.generate_image(concept["flyerPrompt"], CONCEPT_SIZE))
        calls.append(provider.generate_image(concept["newsletterPrompt"], CONCEPT_SIZE))
    images = await asyncio.gather(*calls)

    results: List[Dict[str, Any]] = []
    for index, (label, concept) in enumerate(concepts):
        flyer, newsletter = images[2 * index], images[2 * index + 1]
        results.append({
            "title": label,
            "style": concept["style"],
            "flyerB64": base64.b64encode(flyer).decode("ascii"),
            "newsletterB64": base64.b64encode(newsletter).decode("ascii"),
            "flyerPrompt": concept["flyerPrompt"],
            "newsletterPrompt": concept["newsletterPrompt"],
        })
    return {"results": results}
