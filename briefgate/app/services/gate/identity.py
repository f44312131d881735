"""Client identity resolution for the request gate."""

from typing import Mapping

UNKNOWN_IDENTITY = "unknown"
FORWARDED_FOR_HEADER = "x-forwarded-for"


def resolve_client_identity(headers: Mapping[str, str]) -> str:
    """Return the client identity used to bucket gate state.

    The first entry of ``X-Forwarded-For`` is used as-is, without validating
    the address. Requests without the header all share the ``"unknown"``
    bucket. The value is spoofable; the gate is a soft spend control.

    Args:
        headers: Request headers. Starlette ``Headers`` look up
            case-insensitively; plain dicts are searched by lowercased key.

    Returns:
        Non-empty identity string
    """
    forwarded = headers.get(FORWARDED_FOR_HEADER)
    if forwarded is None:
        for name, value in headers.items():
            if name.lower() == FORWARDED_FOR_HEADER:
                forwarded = value
                break

    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_IDENTITY
