from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from briefgate.app.api import brief_router, generate_router, limits_router
from briefgate.app.api.deps import get_provider_dependency, reset_gates
from briefgate.app.core.config import settings
from briefgate.app.core.http_client import init_http_client
from briefgate.app.core.logging import get_logger, setup_logging
from briefgate.app.exceptions import GatewayException
from briefgate.app.middleware import RequestIdMiddleware, RequestSizeLimitMiddleware
from briefgate.app.providers.factory import create_provider, set_provider
from briefgate.app.services.gate import get_gate_store, reset_gate_store


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Open the shared HTTP client, provider and gate store; close them on shutdown."""
        async with init_http_client() as http_client:
            provider = create_provider(http_client=http_client)
            set_provider(provider)
            store = get_gate_store()

            logger.info(
                "Application startup complete",
                extra={
                    "provider": provider.name,
                    "gate_store": type(store).__name__,
                    "cooldown_policy": settings.cooldown_assignment_policy,
                    "validation_order": settings.validation_order,
                    "gate_concurrency": settings.gate_concurrency,
                    "debug_mode": settings.debug,
                },
            )

            yield {"http_client": http_client}

            set_provider(None)

        await store.close()
        reset_gates()
        reset_gate_store()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Briefgate",
        description="Per-client quota and cooldown gate in front of text and image generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware order: last added = first executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
        max_age=600,
    )
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(brief_router)
    app.include_router(generate_router)
    app.include_router(limits_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Gate store and provider status."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        store = get_gate_store()
        store_ok = await store.ping()
        if not store_ok:
            health_status["status"] = "degraded"
        health_status["components"]["gate_store"] = {
            "status": "ok" if store_ok else "error",
            "type": "redis" if type(store).__name__ == "RedisGateStore" else "memory",
        }

        provider = get_provider_dependency()
        provider_ok = await provider.health_check()
        if not provider_ok:
            health_status["status"] = "degraded"
        health_status["components"]["provider"] = {
            "status": "ok" if provider_ok else "error",
            "name": provider.name,
        }

        return health_status

    @app.exception_handler(GatewayException)
    async def gateway_exception_handler(request: Request, exc: GatewayException) -> JSONResponse:
        """Service errors raised outside the gated handler."""
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": message, "code": "BAD_REQUEST"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "BAD_REQUEST" if 400 <= exc.status_code < 500 else "SERVER_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": str(exc.detail), "code": code},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Unhandled exceptions: log server-side, never return a traceback."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={"request_id": request_id, "path": request.url.path, "method": request.method},
        )
        message = str(exc) if settings.debug and str(exc) else "Internal server error"
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": message, "code": "SERVER_ERROR"},
        )

    return app


# Create the application instance
app = create_app()
