"""Image endpoints: single image from a prompt, and the legacy concept pack."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from briefgate.app.api.deps import (
    ensure_json,
    get_image_handler,
    get_provider_dependency,
    read_json_body,
)
from briefgate.app.middleware.request_id import get_request_id
from briefgate.app.providers.base import BaseProvider
from briefgate.app.services.gate import GatedRequestHandler
from briefgate.app.services.image import (
    ConceptRequest,
    ImageRequest,
    generate_concepts,
    generate_image,
)

router = APIRouter(tags=["generate"])


def validate_image(payload: Any) -> ImageRequest:
    return ImageRequest.from_payload(ensure_json(payload))


def validate_concepts(payload: Any) -> ConceptRequest:
    return ConceptRequest.from_payload(ensure_json(payload))


@router.get("/api/generate")
async def image_usage() -> Dict[str, Any]:
    return {
        "ok": True,
        "message": "POST /api/generate with JSON body: { prompt: '...', size?: '1024x1536' }",
    }


@router.post("/api/generate", response_model=None)
async def create_image(
    request: Request,
    handler: GatedRequestHandler = Depends(get_image_handler),
    provider: BaseProvider = Depends(get_provider_dependency),
) -> JSONResponse:
    """Generate one image from a prompt (``image`` operation gate)."""
    payload = await read_json_body(request)

    async def invoke(image_request: ImageRequest) -> Dict[str, Any]:
        return await generate_image(provider, image_request, handler.gate.cooldown_seconds)

    response = await handler.handle(
        headers=request.headers,
        payload=payload,
        validate=validate_image,
        invoke=invoke,
        request_id=get_request_id(request),
    )
    return response.to_json_response()


@router.get("/generate")
async def concepts_usage() -> Dict[str, Any]:
    return {"ok": True, "message": "POST JSON to generate flyer + newsletter images."}


@router.post("/generate", response_model=None)
async def create_concepts(
    request: Request,
    handler: GatedRequestHandler = Depends(get_image_handler),
    provider: BaseProvider = Depends(get_provider_dependency),
) -> JSONResponse:
    """Legacy concept pack: two concepts, each a flyer and a newsletter image.

    Shares the ``image`` gate with ``/api/generate`` and counts as one request.
    """
    payload = await read_json_body(request)

    async def invoke(concept_request: ConceptRequest) -> Dict[str, Any]:
        return await generate_concepts(provider, concept_request)

    response = await handler.handle(
        headers=request.headers,
        payload=payload,
        validate=validate_concepts,
        invoke=invoke,
        request_id=get_request_id(request),
    )
    return response.to_json_response()
