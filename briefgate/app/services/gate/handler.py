"""Gated request handler.

Wraps an upstream generative call with the request gate and shapes every
outcome into a structured JSON response. No exception escapes ``handle``.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

from fastapi.responses import JSONResponse
from pydantic import ValidationError

from briefgate.app.core.config import ValidationOrder, settings
from briefgate.app.core.logging import get_log_context, get_logger
from briefgate.app.exceptions import (
    BadRequestError,
    ConfigurationError,
    CooldownActiveError,
    GatewayException,
    InvalidUpstreamResponseError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from briefgate.app.services.gate.gate import RequestGate
from briefgate.app.services.gate.identity import resolve_client_identity
from briefgate.app.services.gate.models import Admission

logger = get_logger(__name__)

T = TypeVar("T")

GATE_FIRST = "gate-first"
VALIDATE_FIRST = "validate-first"


@dataclass
class GatedResponse:
    """Status, body and headers produced by the handler."""
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.body.get("ok"))

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.body, headers=self.headers)


def format_validation_error(exc: ValidationError) -> str:
    """First pydantic error as a short human-readable message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    message = first.get("msg", "Invalid value")
    # pydantic prefixes errors raised from validators with "Value error, "
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    if loc and first.get("type") == "missing":
        return f"Missing {loc}."
    return message


class GatedRequestHandler:
    """Resolve identity, consult the gate, validate, call upstream, shape."""

    def __init__(self, gate: RequestGate, validation_order: ValidationOrder = GATE_FIRST):
        if validation_order not in (GATE_FIRST, VALIDATE_FIRST):
            raise ValueError(f"Unknown validation order: {validation_order}")
        self.gate = gate
        self.validation_order = validation_order

    async def handle(
        self,
        headers: Mapping[str, str],
        payload: Any,
        validate: Callable[[Any], T],
        invoke: Callable[[T], Awaitable[Dict[str, Any]]],
        request_id: Optional[str] = None,
    ) -> GatedResponse:
        """Run one gated request end to end.

        Args:
            headers: Inbound request headers
            payload: Decoded JSON body (may be anything the client sent)
            validate: Normalizes the payload or raises ``BadRequestError``
            invoke: Performs the upstream call and returns the result payload
            request_id: Request ID for log correlation

        Returns:
            GatedResponse with the success or failure body
        """
        identity = resolve_client_identity(headers)
        log_ctx = get_log_context(
            request_id=request_id, client_id=identity, operation=self.gate.operation
        )
        admission: Optional[Admission] = None
        start = time.perf_counter()

        try:
            validated: Any = None
            if self.validation_order == VALIDATE_FIRST:
                validated = self._validate(validate, payload)

            admission = await self.gate.admit(identity)

            if self.validation_order == GATE_FIRST:
                validated = self._validate(validate, payload)

            result = await invoke(validated)
            await self.gate.record_success(admission)

        except RateLimitedError as exc:
            logger.info(
                f"Gate rejected {self.gate.operation} request: {exc.code}",
                extra={**log_ctx, "code": exc.code},
            )
            return self._rate_limited(exc)

        except BadRequestError as exc:
            logger.info(
                f"Invalid {self.gate.operation} request: {exc.message}",
                extra={**log_ctx, "code": exc.code},
            )
            return self._failure(exc, admission)

        except ConfigurationError as exc:
            logger.error(f"Configuration fault: {exc.message}", extra={**log_ctx, "code": exc.code})
            return self._failure(exc, admission)

        except UpstreamTimeoutError as exc:
            logger.warning(
                f"Upstream {self.gate.operation} call timed out after "
                f"{(time.perf_counter() - start) * 1000:.0f}ms",
                extra={**log_ctx, "code": exc.code},
            )
            return self._failure(exc, admission)

        except InvalidUpstreamResponseError as exc:
            logger.warning(
                f"Upstream {self.gate.operation} returned unusable content: {exc.message}",
                extra={**log_ctx, "code": exc.code},
            )
            return self._failure(exc, admission)

        except UpstreamError as exc:
            logger.warning(
                f"Upstream {self.gate.operation} call failed: {exc.message}",
                extra={**log_ctx, "code": exc.code},
            )
            return self._failure(exc, admission)

        except GatewayException as exc:
            logger.warning(f"{type(exc).__name__}: {exc.message}", extra={**log_ctx, "code": exc.code})
            return self._failure(exc, admission)

        except Exception as exc:
            logger.exception(
                f"Unhandled error in {self.gate.operation} request",
                extra={**log_ctx, "code": "SERVER_ERROR"},
            )
            message = str(exc) if settings.debug and str(exc) else "Internal server error"
            return self._failure(UpstreamError(message), admission)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{self.gate.operation} request served",
            extra={**log_ctx, "duration_ms": round(duration_ms, 1), "status_code": 200},
        )
        return GatedResponse(
            status_code=200,
            body={"ok": True, "remainingToday": admission.remaining, **result},
            headers=self._quota_headers(admission.limit, admission.remaining),
        )

    @staticmethod
    def _validate(validate: Callable[[Any], T], payload: Any) -> T:
        try:
            return validate(payload)
        except ValidationError as exc:
            raise BadRequestError(format_validation_error(exc)) from exc

    def _quota_headers(self, limit: int, remaining: int) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(remaining),
        }

    def _rate_limited(self, exc: RateLimitedError) -> GatedResponse:
        if isinstance(exc, CooldownActiveError):
            retry_after = max(1, exc.cooldown_seconds)
        else:
            retry_after = self.gate.seconds_until_reset()
        headers = {"Retry-After": str(retry_after)}
        if not isinstance(exc, CooldownActiveError):
            headers.update(self._quota_headers(self.gate.daily_limit, 0))
        return GatedResponse(status_code=exc.status_code, body=exc.to_response(), headers=headers)

    def _failure(self, exc: GatewayException, admission: Optional[Admission]) -> GatedResponse:
        body = exc.to_response()
        headers: Dict[str, str] = {}
        if admission is not None:
            body.setdefault("remainingToday", admission.remaining)
            headers = self._quota_headers(admission.limit, admission.remaining)
        return GatedResponse(status_code=exc.status_code, body=body, headers=headers)
