"""Services package.

This package provides:
- The per-client request gate (daily quota + cooldown) in ``gate``
- Brief normalization, prompting and parsing
- Image and concept-pack generation
"""

from briefgate.app.services.brief import BriefRequest, generate_brief, parse_model_json
from briefgate.app.services.image import (
    ConceptRequest,
    ImageRequest,
    generate_concepts,
    generate_image,
)

__all__ = [
    "BriefRequest",
    "ConceptRequest",
    "ImageRequest",
    "generate_brief",
    "generate_concepts",
    "generate_image",
    "parse_model_json",
]
