"""Request body size limit middleware.

Briefs and prompts are small; anything larger is rejected with 413 before
it reaches the gate. Enforced for both Content-Length and chunked bodies.
"""

import json

from starlette.types import Message, Receive, Scope, Send


class BodyTooLargeError(Exception):
    """Raised when the streamed request body exceeds the limit."""


class SizeLimitedStream:
    """Wraps the ASGI receive callable and counts body bytes as they arrive."""

    def __init__(self, receive: Receive, max_size: int):
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    async def receive(self) -> Message:
        message = await self._receive()
        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise BodyTooLargeError(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )
        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware returning HTTP 413 for oversized request bodies.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=1024 * 1024)
    """

    def __init__(self, app, max_body_size: int = 1024 * 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                try:
                    if int(value.decode()) > self.max_body_size:
                        await self._send_413(send)
                        return
                except ValueError:
                    # Invalid Content-Length, fall through to the stream check
                    pass
                break

        limited = SizeLimitedStream(receive, self.max_body_size)
        try:
            await self.app(scope, limited.receive, send)
        except BodyTooLargeError as exc:
            await self._send_413(send, str(exc))

    async def _send_413(self, send: Send, detail: str | None = None) -> None:
        body = json.dumps({
            "ok": False,
            "code": "BAD_REQUEST",
            "error": detail or f"Request body too large. Maximum allowed: {self.max_body_size} bytes",
        }).encode()
        await send({
            "type": "http.response.start",
            "status": 413,
            "headers": [
                [b"content-type", b"application/json"],
                [b"content-length", str(len(body)).encode()],
            ],
        })
        await send({"type": "http.response.body", "body": body})
