"""Tests for request ID middleware."""

import uuid

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from briefgate.app.middleware.request_id import RequestIdMiddleware, get_request_id


def make_client() -> TestClient:
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/whoami")
    async def whoami(request: Request):
        return {"request_id": get_request_id(request)}

    return TestClient(app)


class TestRequestIdMiddleware:
    """Test X-Request-ID propagation."""

    def test_generates_request_id(self):
        resp = make_client().get("/whoami")

        request_id = resp.headers["X-Request-ID"]
        assert uuid.UUID(request_id)
        assert resp.json()["request_id"] == request_id

    def test_preserves_incoming_request_id(self):
        resp = make_client().get("/whoami", headers={"X-Request-ID": "abc-123"})

        assert resp.headers["X-Request-ID"] == "abc-123"
        assert resp.json()["request_id"] == "abc-123"

    def test_get_request_id_without_middleware(self):
        app = FastAPI()

        @app.get("/whoami")
        async def whoami(request: Request):
            return {"request_id": get_request_id(request)}

        assert TestClient(app).get("/whoami").json() == {"request_id": "unknown"}
