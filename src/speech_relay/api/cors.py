"""
CORS preflight handling.

Browsers send an OPTIONS probe before a cross-origin POST. Every relay
answers it first, before the method, credential or body are looked at,
with an empty 200 and permissive headers.
"""
from __future__ import annotations

from starlette.responses import Response

PREFLIGHT_METHOD = "OPTIONS"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, apikey",
}


def is_preflight(method: str) -> bool:
    return method.upper() == PREFLIGHT_METHOD


def preflight_response() -> Response:
    """Empty 200 response carrying CORS_HEADERS."""
    return Response(status_code=200, headers=dict(CORS_HEADERS))
