"""HTTP routes."""

from briefgate.app.api.brief import router as brief_router
from briefgate.app.api.generate import router as generate_router
from briefgate.app.api.limits import router as limits_router

__all__ = ["brief_router", "generate_router", "limits_router"]
