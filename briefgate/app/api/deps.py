"""FastAPI dependencies: gates, gated handlers, provider, request body."""

import json
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from briefgate.app.core.config import settings
from briefgate.app.core.http_client import get_http_client
from briefgate.app.core.utils import Clock
from briefgate.app.exceptions import BadRequestError
from briefgate.app.providers.base import BaseProvider
from briefgate.app.providers.factory import get_provider
from briefgate.app.services.gate import (
    GatedRequestHandler,
    GateStore,
    RequestGate,
    get_gate_store,
)

BRIEF_OPERATION = "brief"
IMAGE_OPERATION = "image"

_gates: Dict[str, RequestGate] = {}


class _InvalidJSON:
    """Marker for a request body that could not be decoded."""


INVALID_JSON = _InvalidJSON()


def build_gate(
    operation: str,
    store: Optional[GateStore] = None,
    clock: Optional[Clock] = None,
) -> RequestGate:
    """Gate for a known operation with limits and messages from settings."""
    if operation == BRIEF_OPERATION:
        daily_limit = settings.brief_daily_limit
        cooldown = settings.brief_cooldown_seconds
        message = "Daily brief limit reached ({limit}/day). Try again tomorrow."
    elif operation == IMAGE_OPERATION:
        daily_limit = settings.image_daily_limit
        cooldown = settings.image_cooldown_seconds
        message = (
            "Daily image limit reached ({limit}/day). "
            "Create briefs freely, then generate images tomorrow."
        )
    else:
        raise ValueError(f"Unknown gated operation: {operation}")

    return RequestGate(
        operation=operation,
        store=store if store is not None else get_gate_store(),
        daily_limit=daily_limit,
        cooldown_seconds=cooldown,
        cooldown_policy=settings.cooldown_assignment_policy,
        concurrency=settings.gate_concurrency,
        clock=clock,
        limit_message=message,
    )


def get_gate(operation: str) -> RequestGate:
    """Process-wide gate for ``operation``, built from settings on first use."""
    gate = _gates.get(operation)
    if gate is None:
        gate = build_gate(operation)
        _gates[operation] = gate
    return gate


def reset_gates() -> None:
    _gates.clear()


def get_brief_gate() -> RequestGate:
    return get_gate(BRIEF_OPERATION)


def get_image_gate() -> RequestGate:
    return get_gate(IMAGE_OPERATION)


def get_brief_handler(gate: RequestGate = Depends(get_brief_gate)) -> GatedRequestHandler:
    return GatedRequestHandler(gate, validation_order=settings.validation_order)


def get_image_handler(gate: RequestGate = Depends(get_image_gate)) -> GatedRequestHandler:
    return GatedRequestHandler(gate, validation_order=settings.validation_order)


def get_provider_dependency() -> BaseProvider:
    """Provider using the shared HTTP client when the lifespan opened one."""
    try:
        http_client: Optional[Any] = get_http_client()
    except RuntimeError:
        http_client = None
    return get_provider(http_client)


async def read_json_body(request: Request) -> Any:
    """Decode the JSON body without raising.

    Returns ``None`` for an empty body and ``INVALID_JSON`` for undecodable
    content, so rejection happens inside the gated handler's validation step.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return INVALID_JSON


def ensure_json(payload: Any) -> Any:
    if payload is INVALID_JSON:
        raise BadRequestError("Invalid JSON in request body.")
    return payload
