"""Middleware package for the service."""

from briefgate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from briefgate.app.middleware.request_size import RequestSizeLimitMiddleware

__all__ = [
    "RequestIdMiddleware",
    "RequestSizeLimitMiddleware",
    "get_request_id",
]
