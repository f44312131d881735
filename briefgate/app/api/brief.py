"""Brief endpoint: structured creative brief (or copy) from the text model."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from briefgate.app.api.deps import (
    ensure_json,
    get_brief_handler,
    get_provider_dependency,
    read_json_body,
)
from briefgate.app.middleware.request_id import get_request_id
from briefgate.app.providers.base import BaseProvider
from briefgate.app.services.brief import BriefRequest, generate_brief
from briefgate.app.services.gate import GatedRequestHandler

router = APIRouter(tags=["brief"])


def validate_brief(payload: Any) -> BriefRequest:
    return BriefRequest.model_validate(ensure_json(payload))


@router.post("/api/brief", response_model=None)
async def create_brief(
    request: Request,
    handler: GatedRequestHandler = Depends(get_brief_handler),
    provider: BaseProvider = Depends(get_provider_dependency),
) -> JSONResponse:
    """Generate a design brief.

    Gated per client: daily quota then cooldown (``brief`` operation).
    """
    payload = await read_json_body(request)

    async def invoke(brief_request: BriefRequest) -> Dict[str, Any]:
        return await generate_brief(provider, brief_request)

    response = await handler.handle(
        headers=request.headers,
        payload=payload,
        validate=validate_brief,
        invoke=invoke,
        request_id=get_request_id(request),
    )
    return response.to_json_response()
