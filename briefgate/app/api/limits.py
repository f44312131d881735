"""Read-only view of the caller's gate state."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from briefgate.app.api.deps import get_brief_gate, get_image_gate
from briefgate.app.services.gate import RequestGate, resolve_client_identity

router = APIRouter(tags=["limits"])


@router.get("/api/limits")
async def get_limits(
    request: Request,
    brief_gate: RequestGate = Depends(get_brief_gate),
    image_gate: RequestGate = Depends(get_image_gate),
) -> Dict[str, Any]:
    """Remaining quota, cooldown wait and state per operation.

    Never consumes quota or starts a cooldown.
    """
    identity = resolve_client_identity(request.headers)
    return {
        "ok": True,
        "resetInSeconds": brief_gate.seconds_until_reset(),
        "limits": {
            brief_gate.operation: await brief_gate.status(identity),
            image_gate.operation: await image_gate.status(identity),
        },
    }
